"""Idle time detection: time since the last user input."""

import logging
import platform
import subprocess
from datetime import timedelta
from typing import Optional

logger = logging.getLogger(__name__)


class IdleDetector:
    """Read the time since the last keyboard or mouse input."""

    def __init__(self) -> None:
        self._system = platform.system()

    def get_idle_time(self) -> Optional[float]:
        """Get seconds since last user input.

        Returns:
            Seconds of idle time, or None if no backend is available

        Platform-specific implementation:
        - Linux X11: xprintidle
        - Linux Wayland: org.freedesktop.ScreenSaver
        - macOS: CGEventSourceSecondsSinceLastEventType
        - Windows: GetLastInputInfo
        """
        if self._system == "Linux":
            return self._get_idle_time_linux()
        elif self._system == "Darwin":
            return self._get_idle_time_macos()
        elif self._system == "Windows":
            return self._get_idle_time_windows()
        return None

    def inactivity(self) -> Optional[timedelta]:
        """Get the idle time as a duration, None if unknown."""
        idle_seconds = self.get_idle_time()
        if idle_seconds is None:
            return None
        return timedelta(seconds=max(idle_seconds, 0.0))

    def _get_idle_time_linux(self) -> Optional[float]:
        """Get idle time on Linux."""
        # Try xprintidle first (most reliable for X11)
        try:
            result = subprocess.run(["xprintidle"], capture_output=True, text=True, timeout=1)
            if result.returncode == 0:
                return int(result.stdout.strip()) / 1000  # Convert ms to seconds
        except (FileNotFoundError, subprocess.TimeoutExpired, ValueError) as e:
            logger.debug(f"xprintidle unavailable: {e}")

        # Try D-Bus for Wayland
        try:
            import dbus  # type: ignore[import-not-found]

            bus = dbus.SessionBus()
            screensaver = bus.get_object("org.freedesktop.ScreenSaver", "/ScreenSaver")
            return int(screensaver.GetSessionIdleTime()) / 1000
        except Exception as e:
            logger.debug(f"D-Bus idle time unavailable: {e}")

        return None

    def _get_idle_time_macos(self) -> Optional[float]:
        """Get idle time on macOS."""
        try:
            from Quartz import (  # type: ignore[import-not-found]
                CGEventSourceSecondsSinceLastEventType,
                kCGEventSourceStateHIDSystemState,
            )

            return float(
                CGEventSourceSecondsSinceLastEventType(kCGEventSourceStateHIDSystemState, 0xFFFFFFFF)
            )
        except ImportError:
            logger.debug("pyobjc Quartz bindings not installed")
            return None

    def _get_idle_time_windows(self) -> Optional[float]:
        """Get idle time on Windows."""
        try:
            import ctypes

            class LASTINPUTINFO(ctypes.Structure):
                _fields_ = [
                    ("cbSize", ctypes.c_uint),
                    ("dwTime", ctypes.c_uint),
                ]

            lastInputInfo = LASTINPUTINFO()
            lastInputInfo.cbSize = ctypes.sizeof(lastInputInfo)
            ctypes.windll.user32.GetLastInputInfo(ctypes.byref(lastInputInfo))  # type: ignore[attr-defined]

            millis = ctypes.windll.kernel32.GetTickCount() - lastInputInfo.dwTime  # type: ignore[attr-defined]
            return millis / 1000
        except Exception as e:
            logger.debug(f"GetLastInputInfo unavailable: {e}")
            return None
