"""Shared notification formatting helpers.

Keeping formatting here prevents drift between adapters and keeps messages
consistent regardless of delivery channel.
"""

from __future__ import annotations

from datetime import datetime
import json
from typing import Optional

MAX_MESSAGE_CHARS = 500


def _clip(message: str) -> str:
    message = " ".join(message.split())
    if len(message) <= MAX_MESSAGE_CHARS:
        return message
    return message[: MAX_MESSAGE_CHARS - 1].rstrip() + "…"


def _format_text(title: str, message: str, timestamp: datetime) -> str:
    stamp = timestamp.astimezone().strftime("%H:%M:%S %d-%m-%Y")
    return f"[{stamp}] {title}: {_clip(message)}"


def _format_json(title: str, message: str, timestamp: datetime) -> str:
    return json.dumps(
        {
            "title": title,
            "message": _clip(message),
            "timestamp": timestamp.isoformat(),
        },
        ensure_ascii=False,
    )


def format_notification(
    title: str,
    message: str,
    mode: str,
    timestamp: Optional[datetime] = None,
) -> str:
    """Return the notification formatted for the requested mode."""

    timestamp = timestamp or datetime.now().astimezone()
    if mode == "text":
        return _format_text(title, message, timestamp)
    if mode == "json":
        return _format_json(title, message, timestamp)
    raise ValueError(f"Unsupported notification format: {mode}")
