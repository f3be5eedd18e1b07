"""Tests for the inactivity policy."""

from datetime import timedelta

from movebeam.core.policy import InactivityPolicy, PolicyDecision

PAUSE = timedelta(seconds=10)
RESET = timedelta(minutes=5)
TICK = timedelta(seconds=1)


class TestInactivityPolicy:
    """Test InactivityPolicy."""

    def test_default_policy_always_advances(self) -> None:
        """Test a policy without thresholds never pauses or resets."""
        policy = InactivityPolicy()

        assert not policy.enabled
        assert policy.decide(TICK, timedelta(days=1)) is PolicyDecision.ADVANCE
        assert policy.decide(timedelta(days=1), None) is PolicyDecision.ADVANCE

    def test_active_user_advances(self) -> None:
        """Test short inactivity advances the timers."""
        policy = InactivityPolicy(PAUSE, RESET)

        assert policy.decide(TICK, timedelta(seconds=3)) is PolicyDecision.ADVANCE

    def test_pause_at_threshold(self) -> None:
        """Test pause applies once inactivity reaches the threshold."""
        policy = InactivityPolicy(PAUSE, RESET)

        assert policy.decide(TICK, PAUSE - timedelta(microseconds=1)) is PolicyDecision.ADVANCE
        assert policy.decide(TICK, PAUSE) is PolicyDecision.PAUSE

    def test_reset_on_inactivity(self) -> None:
        """Test reset applies once inactivity reaches the reset threshold."""
        policy = InactivityPolicy(PAUSE, RESET)

        assert policy.decide(TICK, RESET) is PolicyDecision.RESET

    def test_reset_on_long_delta(self) -> None:
        """Test a long gap between ticks (suspend) resets even with no reading."""
        policy = InactivityPolicy(PAUSE, RESET)

        assert policy.decide(RESET, None) is PolicyDecision.RESET
        assert policy.decide(RESET, timedelta()) is PolicyDecision.RESET

    def test_missing_reading_never_pauses(self) -> None:
        """Test an absent inactivity reading is below every threshold."""
        policy = InactivityPolicy(PAUSE, RESET)

        assert policy.decide(TICK, None) is PolicyDecision.ADVANCE

    def test_pause_only_policy(self) -> None:
        """Test a policy with only a pause threshold never resets."""
        policy = InactivityPolicy(pause_threshold=PAUSE)

        assert policy.enabled
        assert policy.decide(timedelta(hours=8), timedelta(hours=8)) is PolicyDecision.PAUSE
