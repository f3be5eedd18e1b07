"""Command-line interface for Movebeam."""
