"""Inactivity policy deciding whether timers advance, pause or reset."""

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Optional


class PolicyDecision(Enum):
    """Outcome of the inactivity policy for one tick."""

    ADVANCE = "advance"
    PAUSE = "pause"
    RESET = "reset"


def _reached(value: Optional[timedelta], threshold: Optional[timedelta]) -> bool:
    """Check ``value >= threshold`` where a missing side never matches."""
    if value is None or threshold is None:
        return False
    return value >= threshold


@dataclass(frozen=True)
class InactivityPolicy:
    """Pause and reset thresholds applied to every timer once per tick.

    A threshold left as None disables that behaviour, so a policy with
    neither threshold set lets timers accrue unconditionally.
    """

    pause_threshold: Optional[timedelta] = None
    reset_threshold: Optional[timedelta] = None

    def decide(self, delta: timedelta, inactivity: Optional[timedelta]) -> PolicyDecision:
        """Decide what happens to the timers on this tick.

        Args:
            delta: Wall-clock time since the previous tick
            inactivity: Time since the last user input, None if unknown

        Returns:
            RESET when the user has been away (or the machine asleep) for at
            least the reset threshold, PAUSE when the user has been away for
            at least the pause threshold, ADVANCE otherwise
        """
        # A long delta means the process itself was suspended
        if _reached(inactivity, self.reset_threshold) or _reached(delta, self.reset_threshold):
            return PolicyDecision.RESET
        if _reached(inactivity, self.pause_threshold):
            return PolicyDecision.PAUSE
        return PolicyDecision.ADVANCE

    @property
    def enabled(self) -> bool:
        """Whether any threshold is configured."""
        return self.pause_threshold is not None or self.reset_threshold is not None
