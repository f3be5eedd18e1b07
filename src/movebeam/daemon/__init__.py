"""
Movebeam daemons - background services behind the CLI.

The daemon package provides:
- The timer daemon (heartbeat loop + IPC interface)
- The activity daemon serving the time since the last user input
- Frame-based IPC over Unix domain sockets
"""

from movebeam.daemon.activity import ActivityClient, ActivityDaemon
from movebeam.daemon.client import DaemonClient, TimerNotFoundError
from movebeam.daemon.daemon import DaemonError, MovebeamDaemon
from movebeam.daemon.dispatcher import CommandDispatcher
from movebeam.daemon.ipc import IPCClient, IPCError, IPCServer, ProtocolError, ServerError
from movebeam.daemon.state import DaemonState

__all__ = [
    "ActivityClient",
    "ActivityDaemon",
    "CommandDispatcher",
    "DaemonClient",
    "DaemonError",
    "DaemonState",
    "IPCClient",
    "IPCError",
    "IPCServer",
    "MovebeamDaemon",
    "ProtocolError",
    "ServerError",
    "TimerNotFoundError",
]
