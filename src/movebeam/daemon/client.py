"""Typed client for the timer daemon."""

from datetime import timedelta
from pathlib import Path
from typing import Optional

from movebeam.core.timers import TimerSnapshot
from movebeam.daemon.ipc import IPCClient, IPCError, ProtocolError
from movebeam.daemon.platform import get_daemon_socket_path
from movebeam.daemon.protocol import Request, Response, ResponseKind


class TimerNotFoundError(Exception):
    """The daemon has no timer with the requested name."""

    def __init__(self, name: str):
        super().__init__(f"Timer not found: {name}")
        self.name = name


class DaemonClient:
    """Send requests to the timer daemon and decode its responses.

    Usable as a context manager to keep one connection open across calls.
    """

    def __init__(
        self,
        socket_path: Optional[Path] = None,
        timeout: float = 5.0,
        persistent: bool = False,
    ):
        self.ipc = IPCClient(
            socket_path or get_daemon_socket_path(), timeout=timeout, persistent=persistent
        )

    def __enter__(self) -> "DaemonClient":
        self.ipc.persistent = True
        self.ipc.connect()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self.ipc.close()

    def request(self, request: Request) -> Response:
        """Send a request and return the decoded response.

        Raises:
            IPCError: If communication fails or the response is malformed
        """
        return Response.decode(self.ipc.send(request.encode()))

    def _expect(self, response: Response, kind: ResponseKind) -> Response:
        if response.kind is not kind:
            raise ProtocolError(f"Unexpected {response.kind.name} response")
        return response

    def list_timers(self) -> list[tuple[str, TimerSnapshot]]:
        response = self._expect(self.request(Request.list()), ResponseKind.LIST)
        return list(response.timers)

    def get(self, name: str) -> TimerSnapshot:
        """Get one timer.

        Raises:
            TimerNotFoundError: If the daemon has no such timer
        """
        response = self.request(Request.get(name))
        if response.is_error:
            raise TimerNotFoundError(name)
        timer = self._expect(response, ResponseKind.TIMER).timer
        if timer is None:
            raise ProtocolError("TIMER response without a snapshot")
        return timer

    def reset(self, name: str) -> None:
        """Reset one timer.

        Raises:
            TimerNotFoundError: If the daemon has no such timer
        """
        response = self.request(Request.reset(name))
        if response.is_error:
            raise TimerNotFoundError(name)
        self._expect(response, ResponseKind.OK)

    def reset_all(self) -> None:
        self._expect(self.request(Request.reset_all()), ResponseKind.OK)

    def uptime(self) -> timedelta:
        duration = self._expect(self.request(Request.uptime()), ResponseKind.DURATION).duration
        if duration is None:
            raise ProtocolError("DURATION response without a duration")
        return duration

    def inactivity(self) -> Optional[timedelta]:
        """Last inactivity reading of the daemon, None if it has none."""
        response = self.request(Request.inactivity_duration())
        if response.is_error:
            return None
        return self._expect(response, ResponseKind.DURATION).duration

    def is_daemon_running(self) -> bool:
        """Check if daemon is running.

        Returns:
            True if daemon is accessible, False otherwise
        """
        try:
            self.uptime()
            return True
        except IPCError:
            return False
