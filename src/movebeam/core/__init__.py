"""Core timer state machine and configuration."""

from movebeam.core.policy import InactivityPolicy, PolicyDecision
from movebeam.core.timers import FiredTimer, TimerConfig, TimerRegistry, TimerSnapshot, TimerState

__all__ = [
    "FiredTimer",
    "InactivityPolicy",
    "PolicyDecision",
    "TimerConfig",
    "TimerRegistry",
    "TimerSnapshot",
    "TimerState",
]
