"""Tests for request dispatching."""

from datetime import timedelta

import pytest  # type: ignore[import-not-found]

from movebeam.core.timers import TimerConfig, TimerRegistry
from movebeam.daemon.dispatcher import CommandDispatcher
from movebeam.daemon.protocol import ErrorKind, Request, Response, ResponseKind
from movebeam.daemon.state import DaemonState


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def state(clock: FakeClock) -> DaemonState:
    registry = TimerRegistry(
        [
            TimerConfig("move", timedelta(minutes=20)),
            TimerConfig("break", timedelta(hours=2)),
        ],
        clock=clock,
    )
    return DaemonState(registry, clock=clock)


@pytest.fixture
def dispatcher(state: DaemonState) -> CommandDispatcher:
    return CommandDispatcher(state)


class TestCommandDispatcher:
    """Test CommandDispatcher."""

    def test_list_in_config_order(self, dispatcher: CommandDispatcher) -> None:
        response = dispatcher.dispatch(Request.list())

        assert response.kind is ResponseKind.LIST
        assert [name for name, _ in response.timers] == ["move", "break"]

    def test_get(self, dispatcher: CommandDispatcher, state: DaemonState, clock: FakeClock) -> None:
        """Test GET reports elapsed and interval."""
        clock.now += 30
        state.advance(timedelta())

        response = dispatcher.dispatch(Request.get("move"))

        assert response.kind is ResponseKind.TIMER
        assert response.timer is not None
        assert response.timer.elapsed == timedelta(seconds=30)
        assert response.timer.interval == timedelta(minutes=20)

    def test_get_unknown(self, dispatcher: CommandDispatcher) -> None:
        response = dispatcher.dispatch(Request.get("nope"))

        assert response.is_error
        assert response.error is ErrorKind.NOT_FOUND

    def test_reset(self, dispatcher: CommandDispatcher, state: DaemonState, clock: FakeClock) -> None:
        """Test RESET zeroes only the named timer."""
        clock.now += 30
        state.advance(timedelta())

        assert dispatcher.dispatch(Request.reset("move")) == Response.ok()

        timers = dict(dispatcher.dispatch(Request.list()).timers)
        assert timers["move"].elapsed == timedelta()
        assert timers["break"].elapsed == timedelta(seconds=30)

    def test_reset_unknown(self, dispatcher: CommandDispatcher) -> None:
        assert dispatcher.dispatch(Request.reset("nope")) == Response.not_found()

    def test_reset_all(self, dispatcher: CommandDispatcher, state: DaemonState, clock: FakeClock) -> None:
        clock.now += 30
        state.advance(timedelta())

        assert dispatcher.dispatch(Request.reset_all()) == Response.ok()

        for _, snapshot in dispatcher.dispatch(Request.list()).timers:
            assert snapshot.elapsed == timedelta()

    def test_uptime(self, dispatcher: CommandDispatcher, clock: FakeClock) -> None:
        clock.now += 90

        response = dispatcher.dispatch(Request.uptime())

        assert response == Response.from_duration(timedelta(seconds=90))

    def test_inactivity_before_first_reading(self, dispatcher: CommandDispatcher) -> None:
        """Test INACTIVITY_DURATION without a reading is NotFound."""
        assert dispatcher.dispatch(Request.inactivity_duration()) == Response.not_found()

    def test_inactivity_last_reading(self, dispatcher: CommandDispatcher, state: DaemonState) -> None:
        state.advance(timedelta(seconds=4))

        response = dispatcher.dispatch(Request.inactivity_duration())

        assert response == Response.from_duration(timedelta(seconds=4))

    def test_call_with_bytes(self, dispatcher: CommandDispatcher) -> None:
        """Test the raw entry point decodes and encodes."""
        raw = dispatcher(Request.get("nope").encode())

        assert raw is not None
        assert Response.decode(raw) == Response.not_found()

    def test_call_with_malformed_payload(self, dispatcher: CommandDispatcher) -> None:
        """Test malformed requests produce no response."""
        assert dispatcher(b"\xff") is None
        assert dispatcher(b"") is None
        assert dispatcher(Request.list().encode() + b"\x00") is None
