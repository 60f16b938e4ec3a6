"""Logging notification adapter.

Surfaces user-facing errors through the application log, which is the
default sink when no webhook is configured.
"""

from __future__ import annotations

import logging

from adapters.notification_formatting import format_notification

LOGGER = logging.getLogger("tabgrouper.notifications")


class LogNotifier:
    """Notifier adapter that writes notifications as warnings."""

    def __init__(self, logger: logging.Logger = LOGGER) -> None:
        self._logger = logger

    async def notify(self, title: str, message: str) -> None:
        self._logger.warning(format_notification(title, message, mode="text"))
