"""Movebeam - break reminder timers driven by a background daemon."""

__version__ = "0.1.0"

APP_NAME = "movebeam"
DAEMON_NAME = "moved"
ACTIVITY_DAEMON_NAME = "actived"
