"""Activity and notification integrations."""

from movebeam.automation.idle_detector import IdleDetector
from movebeam.automation.notifier import Notifier

__all__ = ["IdleDetector", "Notifier"]
