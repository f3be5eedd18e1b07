"""Shared daemon state and PID file handling."""

import logging
import threading
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Callable, Optional

import psutil  # type: ignore[import-untyped]

from movebeam.core.timers import FiredTimer, TimerRegistry, suspend_aware_clock

logger = logging.getLogger(__name__)


@dataclass
class DaemonState:
    """Timer registry shared by the heartbeat loop and the IPC handlers.

    Every read or write of ``registry`` must hold ``lock``. The default
    clock counts through suspend so a long sleep shows up as one large
    tick delta; a clock stepping backwards yields a zero delta.
    """

    registry: TimerRegistry
    clock: Callable[[], float] = suspend_aware_clock
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    last_tick: float = field(init=False)
    last_inactivity: Optional[timedelta] = None

    def __post_init__(self) -> None:
        self.last_tick = self.clock()

    def advance(self, inactivity: Optional[timedelta]) -> list[FiredTimer]:
        """Run one heartbeat against the registry.

        Args:
            inactivity: Time since the last user input, None if unknown

        Returns:
            Timers that went off on this tick
        """
        with self.lock:
            now = self.clock()
            delta = timedelta(seconds=max(now - self.last_tick, 0.0))
            self.last_tick = now
            self.last_inactivity = inactivity
            return self.registry.tick(delta, inactivity)


class PIDFileManager:
    """Manages daemon PID file."""

    def __init__(self, pid_file: Path):
        """Initialize PID file manager.

        Args:
            pid_file: Path to PID file
        """
        self.pid_file = pid_file

    def write(self, pid: int) -> None:
        """Write PID to file.

        Args:
            pid: Process ID to write
        """
        try:
            self.pid_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.pid_file, "w") as f:
                f.write(str(pid))
            logger.debug(f"PID {pid} written to {self.pid_file}")
        except OSError as e:
            logger.error(f"Failed to write PID file: {e}")

    def read(self) -> Optional[int]:
        """Read PID from file.

        Returns:
            PID or None if file doesn't exist or is invalid
        """
        if not self.pid_file.exists():
            return None

        try:
            with open(self.pid_file, "r") as f:
                pid = int(f.read().strip())
            return pid
        except (ValueError, OSError) as e:
            logger.error(f"Failed to read PID file: {e}")
            return None

    def remove(self) -> None:
        """Remove PID file."""
        if self.pid_file.exists():
            try:
                self.pid_file.unlink()
                logger.debug(f"PID file {self.pid_file} removed")
            except OSError as e:
                logger.error(f"Failed to remove PID file: {e}")

    def is_running(self) -> bool:
        """Check if process with PID in file is running.

        Returns:
            True if process is running, False otherwise
        """
        pid = self.read()
        if pid is None:
            return False
        return bool(psutil.pid_exists(pid))
