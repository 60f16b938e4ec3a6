"""Core configuration dataclasses.

We keep file handling outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely. Reading
goes through ``settings_from_dict`` which backfills missing fields, so older
config files keep working after new options are added.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, List, Tuple

MIN_INTERVAL_MINUTES = 5
LEGACY_INTERVAL_MINUTES = 30

DEFAULT_SETTINGS: dict[str, Any] = {
    "autoGroupEnabled": True,
    "aiEnabled": True,
    "aiGroupingInterval": 60,
    "autoReschedule": True,
    "aiProvider": {
        "endpoint": "https://api.openai.com",
        "apiKey": "",
        "model": "gpt-3.5-turbo",
        "systemPrompt": "",
        "timeoutSeconds": 60,
    },
    "customColors": [],
}

DEFAULT_RULES: list[dict[str, Any]] = [
    {
        "id": "default-social",
        "name": "Social Media",
        "type": "domain",
        "pattern": "facebook.com,twitter.com,instagram.com,weibo.com",
        "enabled": True,
        "color": "blue",
    },
    {
        "id": "default-search",
        "name": "Search Engines",
        "type": "domain",
        "pattern": "google.com,bing.com,baidu.com",
        "enabled": True,
        "color": "green",
    },
    {
        "id": "default-localhost",
        "name": "Local Development",
        "type": "domain",
        "pattern": "localhost,127.0.0.1",
        "enabled": True,
        "color": "purple",
    },
]


@dataclass(frozen=True)
class AIProviderConfig:
    """Connection settings for the chat-completion classifier."""

    endpoint: str
    api_key: str
    model: str
    system_prompt: str
    timeout_seconds: float

    @property
    def configured(self) -> bool:
        return bool(self.api_key)


@dataclass(frozen=True)
class ColorOption:
    """A user-defined color shown next to the built-in palette."""

    name: str
    value: str
    label: str
    origin: str = "custom"


@dataclass(frozen=True)
class UserSettings:
    """Snapshot of user settings consumed by the scheduler and pipeline."""

    auto_group_enabled: bool
    ai_enabled: bool
    ai_grouping_interval: int
    auto_reschedule: bool
    ai_provider: AIProviderConfig
    custom_colors: List[ColorOption] = field(default_factory=list)

    @property
    def periodic_regroup_enabled(self) -> bool:
        return self.ai_enabled and self.auto_reschedule


def migrate_settings(raw: dict[str, Any] | None) -> Tuple[dict[str, Any], bool]:
    """Backfill missing fields and upgrade legacy values.

    Returns the migrated document and whether anything changed, so callers
    can decide to write it back.
    """

    if not raw:
        return copy.deepcopy(DEFAULT_SETTINGS), True

    data = copy.deepcopy(raw)
    changed = False

    for key, default in DEFAULT_SETTINGS.items():
        if key not in data or data[key] is None:
            data[key] = copy.deepcopy(default)
            changed = True

    provider = data["aiProvider"]
    for key, default in DEFAULT_SETTINGS["aiProvider"].items():
        if key not in provider:
            provider[key] = default
            changed = True

    # The interval default was raised from 30 to 60 minutes.
    if data["aiGroupingInterval"] == LEGACY_INTERVAL_MINUTES:
        data["aiGroupingInterval"] = DEFAULT_SETTINGS["aiGroupingInterval"]
        changed = True

    return data, changed


def settings_from_dict(raw: dict[str, Any] | None) -> UserSettings:
    """Build a UserSettings snapshot from a (possibly partial) dict."""

    data, _ = migrate_settings(raw)
    provider = data["aiProvider"]
    interval = max(MIN_INTERVAL_MINUTES, int(data["aiGroupingInterval"]))
    return UserSettings(
        auto_group_enabled=bool(data["autoGroupEnabled"]),
        ai_enabled=bool(data["aiEnabled"]),
        ai_grouping_interval=interval,
        auto_reschedule=bool(data["autoReschedule"]),
        ai_provider=AIProviderConfig(
            endpoint=str(provider["endpoint"]).rstrip("/"),
            api_key=str(provider["apiKey"] or ""),
            model=str(provider["model"]),
            system_prompt=str(provider["systemPrompt"] or ""),
            timeout_seconds=float(provider["timeoutSeconds"]),
        ),
        custom_colors=[
            ColorOption(
                name=entry.get("name", ""),
                value=entry.get("value", ""),
                label=entry.get("label", entry.get("name", "")),
                origin=entry.get("origin", "custom"),
            )
            for entry in data["customColors"]
            if isinstance(entry, dict)
        ],
    )
