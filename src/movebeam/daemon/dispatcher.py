"""Maps decoded requests onto the shared timer registry."""

import logging
from typing import Optional

from movebeam.daemon.ipc import ProtocolError
from movebeam.daemon.protocol import Request, RequestKind, Response
from movebeam.daemon.state import DaemonState

logger = logging.getLogger(__name__)


class CommandDispatcher:
    """Answer client requests against a ``DaemonState``.

    Each request is handled under the state lock; the lock is never held
    while the connection is read or written.
    """

    def __init__(self, state: DaemonState):
        self.state = state

    def __call__(self, payload: bytes) -> Optional[bytes]:
        """Handle one raw request payload.

        Returns:
            Encoded response, or None if the payload is not a valid request
        """
        try:
            request = Request.decode(payload)
        except ProtocolError as e:
            logger.warning(f"Ignoring malformed request: {e}")
            return None
        return self.dispatch(request).encode()

    def dispatch(self, request: Request) -> Response:
        """Apply a request and build its response."""
        logger.debug(f"Handling {request.kind.name} request")
        with self.state.lock:
            registry = self.state.registry

            if request.kind is RequestKind.LIST:
                return Response.from_list(registry.list())

            if request.kind is RequestKind.GET:
                snapshot = registry.get(request.name or "")
                if snapshot is None:
                    return Response.not_found()
                return Response.from_timer(snapshot)

            if request.kind is RequestKind.RESET:
                if not registry.reset(request.name or ""):
                    return Response.not_found()
                return Response.ok()

            if request.kind is RequestKind.RESET_ALL:
                registry.reset_all()
                logger.info("Reset all timers")
                return Response.ok()

            if request.kind is RequestKind.UPTIME:
                return Response.from_duration(registry.uptime())

            # RequestKind.INACTIVITY_DURATION
            if self.state.last_inactivity is None:
                return Response.not_found()
            return Response.from_duration(self.state.last_inactivity)
