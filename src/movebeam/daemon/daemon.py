"""Main timer daemon implementation."""

import logging
import os
import signal
import sys
import threading
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

from movebeam import DAEMON_NAME
from movebeam.automation import IdleDetector, Notifier
from movebeam.core.config import ConfigManager
from movebeam.core.timers import FiredTimer, TimerRegistry
from movebeam.daemon.activity import ActivityClient
from movebeam.daemon.dispatcher import CommandDispatcher
from movebeam.daemon.ipc import IPCError, IPCServer
from movebeam.daemon.platform import (
    get_daemon_socket_path,
    get_log_file_path,
    get_pid_file_path,
    is_daemon_supported,
)
from movebeam.daemon.state import DaemonState, PIDFileManager

logger = logging.getLogger(__name__)


class DaemonError(Exception):
    """Daemon-related error."""

    pass


class MovebeamDaemon:
    """Movebeam background daemon.

    Runs two loops over one shared ``DaemonState``:
    - the heartbeat, advancing every timer once per period and sending
      notifications for timers that went off
    - the IPC accept loop, answering client requests
    """

    def __init__(
        self,
        config: Optional[ConfigManager] = None,
        socket_path: Optional[Path] = None,
        notifier: Optional[Notifier] = None,
        activity_source: Optional[Any] = None,
        heartbeat: Optional[float] = None,
        pid_file: Optional[Path] = None,
        poll_interval: float = 1.0,
    ):
        """Initialize daemon.

        Args:
            config: Configuration manager (default: load from default location)
            socket_path: Socket to serve on (default: from config, else runtime dir)
            notifier: Notification sink (default: from config)
            activity_source: Object with an ``inactivity()`` method returning the
                time since the last input (default: from config)
            heartbeat: Heartbeat period in seconds (default: from config)
            pid_file: PID file path (default: ~/.movebeam/runtime/moved.pid)
            poll_interval: How often the IPC loops check for shutdown

        Raises:
            DaemonError: If the platform is unsupported or the config is invalid
        """
        supported, reason = is_daemon_supported()
        if not supported:
            raise DaemonError(reason)

        self.config = config or ConfigManager()
        configured_socket = self.config.get("daemon.socket_path")
        self.socket_path = socket_path or (
            Path(configured_socket).expanduser() if configured_socket else get_daemon_socket_path()
        )
        self.heartbeat = heartbeat if heartbeat is not None else self.config.heartbeat

        try:
            registry = TimerRegistry(self.config.timers, self.config.inactivity_policy)
        except ValueError as e:
            raise DaemonError(str(e))
        self.state = DaemonState(registry)
        self.dispatcher = CommandDispatcher(self.state)

        self.notifier = notifier or Notifier(enabled=self.config.get("notifications.enabled", True))
        self.activity_source = (
            activity_source if activity_source is not None else self._init_activity_source()
        )
        self.pid_manager = PIDFileManager(pid_file or get_pid_file_path(DAEMON_NAME))

        self.running = False
        self._shutdown_event = threading.Event()
        self.ipc_server = IPCServer(
            self.socket_path,
            self.dispatcher,
            shutdown_event=self._shutdown_event,
            poll_interval=poll_interval,
        )

    def _init_activity_source(self) -> Optional[Any]:
        """Create the activity source named by the configuration."""
        if not self.config.activity_enabled:
            logger.info("Activity tracking disabled")
            return None

        if self.config.get("activity.source", "daemon") == "idle":
            logger.info("Using local idle detection")
            return IdleDetector()

        configured_socket = self.config.get("activity.socket_path")
        logger.info("Using activity daemon")
        return ActivityClient(Path(configured_socket).expanduser() if configured_socket else None)

    def start(self, foreground: bool = False) -> None:
        """Start the daemon and block until it stops.

        Args:
            foreground: Run in foreground (don't daemonize)

        Raises:
            DaemonError: If daemon is already running or fails to start
        """
        if self.pid_manager.is_running():
            raise DaemonError("Daemon is already running")

        self._setup_logging()
        logger.info("Starting Movebeam daemon...")

        if not foreground:
            self._daemonize()

        self.pid_manager.write(os.getpid())
        self._setup_signal_handlers()

        try:
            self.serve()
        finally:
            self.cleanup()

    def serve(self) -> None:
        """Serve IPC requests and run the heartbeat until ``stop()`` is called.

        Raises:
            DaemonError: If the IPC socket cannot be bound
        """
        try:
            self.ipc_server.start()
        except IPCError as e:
            logger.error(f"Failed to start IPC server: {e}")
            raise DaemonError(f"Failed to start IPC server: {e}")

        self.running = True
        logger.info(f"Daemon started (PID: {os.getpid()})")
        try:
            self._heartbeat_loop()
        finally:
            self.running = False
            self.ipc_server.stop()

    def stop(self) -> None:
        """Ask both loops to finish."""
        logger.info("Stopping daemon...")
        self._shutdown_event.set()

    def cleanup(self) -> None:
        """Clean up daemon resources."""
        if isinstance(self.activity_source, ActivityClient):
            self.activity_source.close()
        self.pid_manager.remove()
        logger.info("Daemon stopped")

    def tick(self) -> list[FiredTimer]:
        """Run one heartbeat.

        The activity source is queried before the state lock is taken and
        notifications are sent after it is released.

        Returns:
            Timers that went off on this tick
        """
        inactivity = self._read_inactivity()
        fired = self.state.advance(inactivity)
        for timer in fired:
            if timer.notify:
                self.notifier.notify_timer(timer.name, timer.break_duration)
        return fired

    def _read_inactivity(self) -> Optional[timedelta]:
        if self.activity_source is None:
            return None
        try:
            return self.activity_source.inactivity()  # type: ignore[no-any-return]
        except Exception as e:
            logger.warning(f"Activity source unavailable: {e}")
            return None

    def _heartbeat_loop(self) -> None:
        """Tick once per heartbeat until shutdown."""
        logger.info("Heartbeat loop started")
        while not self._shutdown_event.is_set():
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Error in heartbeat: {e}")
            self._shutdown_event.wait(self.heartbeat)
        logger.info("Heartbeat loop stopped")

    def _setup_logging(self) -> None:
        """Setup daemon logging."""
        log_file = get_log_file_path(DAEMON_NAME)
        log_level = getattr(logging, self.config.get("daemon.log_level", "INFO"))

        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)

        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

        # File handler
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

        # Console handler (for foreground mode)
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    def _daemonize(self) -> None:
        """Daemonize the process (Unix double-fork)."""
        try:
            # First fork
            pid = os.fork()
            if pid > 0:
                sys.exit(0)

            # Decouple from parent environment
            os.chdir("/")
            os.setsid()
            os.umask(0o022)

            # Second fork
            pid = os.fork()
            if pid > 0:
                sys.exit(0)

            # Redirect standard file descriptors
            sys.stdout.flush()
            sys.stderr.flush()
            with open(os.devnull, "r") as devnull:
                os.dup2(devnull.fileno(), sys.stdin.fileno())
            with open(os.devnull, "a+") as devnull:
                os.dup2(devnull.fileno(), sys.stdout.fileno())
            with open(os.devnull, "a+") as devnull:
                os.dup2(devnull.fileno(), sys.stderr.fileno())

        except OSError as e:
            logger.error(f"Failed to daemonize: {e}")
            sys.exit(1)

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

    def _signal_handler(self, signum: int, frame: Any) -> None:
        """Handle shutdown signals.

        Args:
            signum: Signal number
            frame: Current stack frame
        """
        logger.info(f"Received signal {signum}, shutting down...")
        self.stop()
