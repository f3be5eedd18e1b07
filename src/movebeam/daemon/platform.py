"""Platform-specific paths for daemon operations."""

import os
import platform
from enum import Enum
from pathlib import Path
from typing import Tuple

from movebeam import ACTIVITY_DAEMON_NAME, APP_NAME, DAEMON_NAME


class Platform(Enum):
    """Supported platforms."""

    LINUX = "linux"
    MACOS = "darwin"
    WINDOWS = "windows"
    UNKNOWN = "unknown"


def get_platform() -> Platform:
    """Detect the current platform.

    Returns:
        Platform enum value
    """
    system = platform.system().lower()
    if system == "linux":
        return Platform.LINUX
    elif system == "darwin":
        return Platform.MACOS
    elif system == "windows":
        return Platform.WINDOWS
    else:
        return Platform.UNKNOWN


def get_runtime_dir() -> Path:
    """Get the per-user runtime directory for sockets.

    Uses ``$XDG_RUNTIME_DIR/movebeam`` when set, otherwise a per-user
    directory under the system temp dir.
    """
    runtime_dir = os.environ.get("XDG_RUNTIME_DIR")
    if runtime_dir:
        return Path(runtime_dir) / APP_NAME
    return Path("/tmp") / f"{APP_NAME}-{os.getuid()}"


def get_daemon_socket_path() -> Path:
    """Get the socket path of the timer daemon."""
    return get_runtime_dir() / DAEMON_NAME


def get_activity_socket_path() -> Path:
    """Get the socket path of the activity daemon.

    The activity daemon is shared between users, so it lives under
    ``/run/movebeam`` when that location is usable; otherwise it falls back
    to the per-user runtime directory.
    """
    system_dir = Path("/run") / APP_NAME
    if system_dir.is_dir() or os.access("/run", os.W_OK):
        return system_dir / ACTIVITY_DAEMON_NAME
    return get_runtime_dir() / ACTIVITY_DAEMON_NAME


def get_pid_file_path(name: str = DAEMON_NAME) -> Path:
    """Get the PID file path for a daemon.

    Args:
        name: Daemon name

    Returns:
        Path to PID file
    """
    runtime_dir = Path.home() / f".{APP_NAME}" / "runtime"
    runtime_dir.mkdir(parents=True, exist_ok=True)
    return runtime_dir / f"{name}.pid"


def get_log_file_path(name: str = DAEMON_NAME) -> Path:
    """Get the log file path for a daemon.

    Args:
        name: Daemon name

    Returns:
        Path to daemon log file
    """
    log_dir = Path.home() / f".{APP_NAME}" / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir / f"{name}.log"


def is_daemon_supported() -> Tuple[bool, str]:
    """Check if the daemons can run on this platform.

    Returns:
        Tuple of (is_supported, reason)
    """
    plat = get_platform()

    if plat in (Platform.LINUX, Platform.MACOS):
        return True, "Platform supported"
    return False, f"Unsupported platform: {platform.system()} (Unix domain sockets required)"
