"""Tests for the activity daemon and its client."""

import threading
import time
from datetime import timedelta
from pathlib import Path
from unittest.mock import Mock

import pytest  # type: ignore[import-not-found]

from movebeam.daemon.activity import ActivityClient, ActivityDaemon
from movebeam.daemon.ipc import IPCClient, ServerError
from movebeam.daemon.protocol import Request, Response


@pytest.fixture
def detector() -> Mock:
    detector = Mock()
    detector.inactivity.return_value = timedelta(seconds=7)
    return detector


@pytest.fixture
def activity_daemon(tmp_path: Path, detector: Mock):
    """Run an activity daemon on a background thread."""
    daemon = ActivityDaemon(tmp_path / "a.sock", detector=detector, poll_interval=0.05)
    thread = threading.Thread(target=daemon.start, daemon=True)
    thread.start()

    deadline = time.monotonic() + 5
    while not daemon.ipc_server.running and time.monotonic() < deadline:
        time.sleep(0.02)

    yield daemon
    daemon.stop()
    thread.join(timeout=5)


class TestActivityDaemon:
    """Test ActivityDaemon request handling."""

    def test_handle_inactivity_request(self, tmp_path: Path, detector: Mock) -> None:
        daemon = ActivityDaemon(tmp_path / "a.sock", detector=detector)

        raw = daemon.handle_request(Request.inactivity_duration().encode())

        assert raw is not None
        assert Response.decode(raw) == Response.from_duration(timedelta(seconds=7))

    def test_other_requests_get_no_response(self, tmp_path: Path, detector: Mock) -> None:
        """Test timer requests are not answered by the activity daemon."""
        daemon = ActivityDaemon(tmp_path / "a.sock", detector=detector)

        assert daemon.handle_request(Request.list().encode()) is None
        assert daemon.handle_request(Request.get("move").encode()) is None
        assert daemon.handle_request(b"\xff") is None

    def test_unknown_idle_time(self, tmp_path: Path, detector: Mock) -> None:
        detector.inactivity.return_value = None
        daemon = ActivityDaemon(tmp_path / "a.sock", detector=detector)

        assert daemon.handle_request(Request.inactivity_duration().encode()) is None

    def test_socket_accepts_other_users(self, activity_daemon: ActivityDaemon) -> None:
        """Test the shared socket is writable by everyone."""
        assert activity_daemon.socket_path.stat().st_mode & 0o777 == 0o722

    def test_unsupported_request_over_socket(self, activity_daemon: ActivityDaemon) -> None:
        client = IPCClient(activity_daemon.socket_path, timeout=2)

        with pytest.raises(ServerError):
            client.send(Request.uptime().encode())

    def test_stop_removes_socket(self, tmp_path: Path, detector: Mock) -> None:
        daemon = ActivityDaemon(tmp_path / "a.sock", detector=detector, poll_interval=0.05)
        thread = threading.Thread(target=daemon.start, daemon=True)
        thread.start()
        deadline = time.monotonic() + 5
        while not daemon.ipc_server.running and time.monotonic() < deadline:
            time.sleep(0.02)

        daemon.stop()
        thread.join(timeout=5)

        assert not thread.is_alive()
        assert not daemon.socket_path.exists()


class TestActivityClient:
    """Test ActivityClient."""

    def test_query(self, activity_daemon: ActivityDaemon) -> None:
        client = ActivityClient(activity_daemon.socket_path)

        assert client.inactivity() == timedelta(seconds=7)
        assert client.inactivity() == timedelta(seconds=7)
        client.close()

    def test_connection_is_reused(self, activity_daemon: ActivityDaemon) -> None:
        client = ActivityClient(activity_daemon.socket_path)

        client.inactivity()
        sock = client.ipc._socket
        client.inactivity()

        assert sock is not None
        assert client.ipc._socket is sock
        client.close()

    def test_no_reading(self, activity_daemon: ActivityDaemon, detector: Mock) -> None:
        """Test a daemon without a reading reports unknown inactivity."""
        detector.inactivity.return_value = None
        client = ActivityClient(activity_daemon.socket_path)

        assert client.inactivity() is None
        client.close()

    def test_unavailable_daemon(self, tmp_path: Path) -> None:
        """Test an unreachable daemon reads as unknown."""
        client = ActivityClient(tmp_path / "missing.sock", timeout=0.2)

        assert client.inactivity() is None
        assert client.inactivity() is None

    def test_reconnects_after_restart(self, tmp_path: Path, detector: Mock) -> None:
        """Test the client recovers once the daemon comes back."""
        socket_path = tmp_path / "a.sock"
        client = ActivityClient(socket_path, timeout=1)
        assert client.inactivity() is None

        daemon = ActivityDaemon(socket_path, detector=detector, poll_interval=0.05)
        thread = threading.Thread(target=daemon.start, daemon=True)
        thread.start()
        try:
            deadline = time.monotonic() + 5
            while not daemon.ipc_server.running and time.monotonic() < deadline:
                time.sleep(0.02)

            assert client.inactivity() == timedelta(seconds=7)
        finally:
            client.close()
            daemon.stop()
            thread.join(timeout=5)
