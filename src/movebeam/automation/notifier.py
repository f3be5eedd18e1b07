"""Desktop notifications for Movebeam."""

import logging
import threading
from datetime import timedelta
from typing import Any, Optional

from movebeam import APP_NAME
from movebeam.core.config import format_duration

logger = logging.getLogger(__name__)


class Notifier:
    """Send desktop notifications."""

    def __init__(self, enabled: bool = True, timeout: int = 5):
        """Initialize notifier.

        Args:
            enabled: Whether notifications are enabled
            timeout: Display duration in seconds
        """
        self.enabled = enabled
        self.timeout = timeout
        self._notifier = self._init_notifier()

    def _init_notifier(self) -> Any:
        """Initialize the plyer notification facade.

        Returns:
            Notification handler or None if not available
        """
        if not self.enabled:
            return None

        try:
            from plyer import notification  # type: ignore[import-not-found]

            return notification  # type: ignore[no-any-return]
        except ImportError:
            logger.warning("plyer is not available, notifications disabled")
            return None

    def notify(self, title: str, message: str) -> None:
        """Send a desktop notification and wait for the backend.

        Failures are logged and never raised.

        Args:
            title: Notification title
            message: Notification message
        """
        if not self.enabled or not self._notifier:
            return

        try:
            self._notifier.notify(  # type: ignore[attr-defined]
                title=title,
                message=message,
                app_name=APP_NAME,
                timeout=self.timeout,
            )
        except Exception as e:
            logger.error(f"Failed to send notification: {e}")

    def notify_async(self, title: str, message: str) -> Optional[threading.Thread]:
        """Send a notification from a background thread.

        Returns:
            The delivery thread, or None if notifications are off
        """
        if not self.enabled or not self._notifier:
            return None

        thread = threading.Thread(target=self.notify, args=(title, message), daemon=True)
        thread.start()
        return thread

    def notify_timer(
        self, name: str, break_duration: Optional[timedelta] = None
    ) -> Optional[threading.Thread]:
        """Announce that a timer went off.

        Args:
            name: Timer name
            break_duration: Suggested break length, if configured
        """
        message = "Time to take a break!"
        if break_duration:
            message = f"Time to take a {format_duration(break_duration)} break!"
        return self.notify_async(f"Timer {name} went off", message)
