"""Webhook notification adapter.

Posts notifications as JSON so they can be routed to chat tools or desktop
notifiers that accept incoming webhooks.
"""

from __future__ import annotations

import asyncio
import logging
import urllib.error
import urllib.request

from adapters.notification_formatting import format_notification

LOGGER = logging.getLogger(__name__)


class WebhookNotifier:
    """Notifier adapter that sends notifications to a webhook URL."""

    def __init__(self, url: str, timeout: float = 10) -> None:
        self._url = url
        self._timeout = timeout

    async def notify(self, title: str, message: str) -> None:
        """Send the notification; delivery errors are logged, not raised."""

        body = format_notification(title, message, mode="json")
        try:
            await asyncio.to_thread(self._post, body)
        except RuntimeError:
            LOGGER.exception("Webhook notification failed")

    def _post(self, body: str) -> None:
        request = urllib.request.Request(self._url, data=body.encode("utf-8"), method="POST")
        request.add_header("Content-Type", "application/json")
        try:
            with urllib.request.urlopen(request, timeout=self._timeout):
                pass
        except urllib.error.HTTPError as e:
            detail = e.read().decode("utf-8", errors="replace")
            raise RuntimeError(f"Webhook error {e.code}: {detail}") from e
        except (urllib.error.URLError, OSError) as e:
            raise RuntimeError(f"Webhook unreachable: {e}") from e
