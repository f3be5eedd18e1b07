"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest  # type: ignore[import-not-found]


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest."""
    config.addinivalue_line("markers", "integration: Integration tests over real sockets")
    config.addinivalue_line("markers", "slow: Slow tests")


@pytest.fixture
def fake_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point ~ at a temporary directory so PID and log files stay out of the real home."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return home
