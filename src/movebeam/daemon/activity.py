"""Activity daemon and the client the timer daemon uses to query it."""

import logging
import signal
import threading
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

from movebeam.automation.idle_detector import IdleDetector
from movebeam.daemon.ipc import IPCClient, IPCError, IPCServer, ProtocolError, ServerError
from movebeam.daemon.platform import get_activity_socket_path
from movebeam.daemon.protocol import Request, RequestKind, Response, ResponseKind

logger = logging.getLogger(__name__)


class ActivityClient:
    """Query the activity daemon for the time since the last user input.

    Keeps one connection open and reconnects on the next query after a
    failure. An unreachable daemon reads as "unknown" (None).
    """

    def __init__(self, socket_path: Optional[Path] = None, timeout: float = 1.0):
        self.ipc = IPCClient(
            socket_path or get_activity_socket_path(), timeout=timeout, persistent=True
        )
        self._available = True

    def inactivity(self) -> Optional[timedelta]:
        """Get the time since the last input, None if the daemon is unavailable."""
        try:
            response = Response.decode(self.ipc.send(Request.inactivity_duration().encode()))
        except ServerError:
            # Daemon is up but has no reading
            self._available = True
            return None
        except IPCError as e:
            if self._available:
                logger.warning(f"Activity source unavailable: {e}")
            self._available = False
            return None

        if not self._available:
            logger.info("Activity source available again")
        self._available = True

        if response.kind is not ResponseKind.DURATION:
            logger.warning(f"Unexpected {response.kind.name} response from activity daemon")
            return None
        return response.duration

    def close(self) -> None:
        self.ipc.close()


class ActivityDaemon:
    """Serve the local idle time to timer daemons of any user."""

    def __init__(
        self,
        socket_path: Optional[Path] = None,
        detector: Optional[IdleDetector] = None,
        poll_interval: float = 1.0,
    ):
        self.socket_path = socket_path or get_activity_socket_path()
        self.detector = detector or IdleDetector()
        self._shutdown_event = threading.Event()
        self.ipc_server = IPCServer(
            self.socket_path,
            self.handle_request,
            shutdown_event=self._shutdown_event,
            world_writable=True,
            poll_interval=poll_interval,
        )

    def handle_request(self, payload: bytes) -> Optional[bytes]:
        """Answer ``InactivityDuration``; anything else gets no response."""
        try:
            request = Request.decode(payload)
        except ProtocolError as e:
            logger.warning(f"Ignoring malformed request: {e}")
            return None

        if request.kind is not RequestKind.INACTIVITY_DURATION:
            logger.debug(f"Unsupported request {request.kind.name}")
            return None

        inactivity = self.detector.inactivity()
        if inactivity is None:
            return None
        return Response.from_duration(inactivity).encode()

    def start(self) -> None:
        """Bind the socket and serve until stopped (blocking).

        Raises:
            IPCError: If the socket cannot be bound
        """
        self._setup_signal_handlers()
        with self.ipc_server:
            logger.info(f"Activity daemon serving on {self.socket_path}")
            self._shutdown_event.wait()
        logger.info("Activity daemon stopped")

    def stop(self) -> None:
        self._shutdown_event.set()

    def _setup_signal_handlers(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            return
        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

    def _signal_handler(self, signum: int, frame: Any) -> None:
        logger.info(f"Received signal {signum}, shutting down...")
        self.stop()
