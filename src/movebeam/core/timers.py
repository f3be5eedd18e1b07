"""Timer registry: configured timers and their running clocks."""

import logging
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Iterable, Optional

from movebeam.core.policy import InactivityPolicy, PolicyDecision

logger = logging.getLogger(__name__)


def suspend_aware_clock() -> float:
    """Seconds on a clock that keeps counting while the machine is suspended.

    CLOCK_BOOTTIME where the platform has it, wall-clock time elsewhere.
    """
    if hasattr(time, "CLOCK_BOOTTIME"):
        return time.clock_gettime(time.CLOCK_BOOTTIME)
    return time.time()


@dataclass(frozen=True)
class TimerConfig:
    """Static configuration of one timer."""

    name: str
    interval: timedelta
    break_duration: Optional[timedelta] = None
    notify: bool = True


@dataclass
class TimerState:
    """Mutable runtime clock of one timer."""

    clock: timedelta = field(default_factory=timedelta)
    went_off: bool = False

    def reset(self) -> None:
        """Zero the clock and re-arm the notification."""
        self.clock = timedelta()
        self.went_off = False


@dataclass(frozen=True)
class TimerSnapshot:
    """Read-only view of a timer returned to clients."""

    elapsed: timedelta
    interval: timedelta


@dataclass(frozen=True)
class FiredTimer:
    """A timer that crossed its interval during a tick."""

    name: str
    notify: bool
    break_duration: Optional[timedelta] = None


class TimerRegistry:
    """Ordered collection of timers.

    The registry does no locking of its own; callers serialize access
    (see ``movebeam.daemon.state.DaemonState``).
    """

    def __init__(
        self,
        timers: Iterable[TimerConfig],
        policy: Optional[InactivityPolicy] = None,
        clock: Callable[[], float] = suspend_aware_clock,
    ):
        """Initialize registry.

        Args:
            timers: Timer configurations, in display order
            policy: Inactivity policy (default: no pause or reset thresholds)
            clock: Clock in seconds, used for uptime

        Raises:
            ValueError: If two timers share a name
        """
        self._configs: list[TimerConfig] = list(timers)
        names = [t.name for t in self._configs]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate timer names: {', '.join(duplicates)}")

        self._states: list[TimerState] = [TimerState() for _ in self._configs]
        self._index: dict[str, int] = {name: i for i, name in enumerate(names)}
        self.policy = policy or InactivityPolicy()
        self._clock = clock
        self._startup = clock()

    def __len__(self) -> int:
        return len(self._configs)

    def __contains__(self, name: object) -> bool:
        return name in self._index

    @property
    def names(self) -> list[str]:
        """Timer names in configuration order."""
        return [t.name for t in self._configs]

    def tick(self, delta: timedelta, inactivity: Optional[timedelta]) -> list[FiredTimer]:
        """Advance every timer by one heartbeat.

        Args:
            delta: Wall-clock time since the previous tick
            inactivity: Time since the last user input, None if unknown

        Returns:
            Timers that crossed their interval on this tick, in config order
        """
        decision = self.policy.decide(delta, inactivity)
        if decision is PolicyDecision.RESET:
            logger.info(f"Inactivity reset (inactivity: {inactivity}, delta: {delta})")
            self.reset_all()
            return []

        fired = []
        for config, state in zip(self._configs, self._states):
            logger.debug(
                f"Update {config.name}, clock: {state.clock}, interval: {config.interval}"
            )
            if (
                config.break_duration is not None
                and inactivity is not None
                and inactivity > config.break_duration
            ):
                # Strictly longer than the break; an exact tie keeps accruing
                if state.clock or state.went_off:
                    logger.info(f"Reset timer {config.name} after a break of {inactivity}")
                state.reset()
                continue

            if decision is PolicyDecision.ADVANCE:
                state.clock += delta

            if not state.went_off and state.clock > config.interval:
                logger.info(f"Timer {config.name} went off")
                state.went_off = True
                fired.append(
                    FiredTimer(
                        name=config.name,
                        notify=config.notify,
                        break_duration=config.break_duration,
                    )
                )

        return fired

    def reset(self, name: str) -> bool:
        """Reset one timer.

        Args:
            name: Timer name

        Returns:
            False if no timer has that name
        """
        index = self._index.get(name)
        if index is None:
            return False
        self._states[index].reset()
        logger.info(f"Reset timer {name}")
        return True

    def reset_all(self) -> None:
        """Reset every timer."""
        for state in self._states:
            state.reset()

    def get(self, name: str) -> Optional[TimerSnapshot]:
        """Get a snapshot of one timer, or None if it does not exist."""
        index = self._index.get(name)
        if index is None:
            return None
        return self._snapshot(index)

    def list(self) -> list[tuple[str, TimerSnapshot]]:
        """Get snapshots of all timers in configuration order."""
        return [(config.name, self._snapshot(i)) for i, config in enumerate(self._configs)]

    def state(self, name: str) -> Optional[TimerState]:
        """Get the live state of a timer (for inspection)."""
        index = self._index.get(name)
        if index is None:
            return None
        return self._states[index]

    def uptime(self) -> timedelta:
        """Time since the registry was created."""
        return timedelta(seconds=max(self._clock() - self._startup, 0.0))

    def _snapshot(self, index: int) -> TimerSnapshot:
        return TimerSnapshot(
            elapsed=self._states[index].clock,
            interval=self._configs[index].interval,
        )
