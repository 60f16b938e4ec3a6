"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any store-specific record types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
from urllib.parse import urlsplit

# Browsers report ungrouped tabs with this group id.
NO_GROUP = -1

DEFAULT_COLOR = "blue"


class RuleKind(str, Enum):
    DOMAIN = "domain"
    CUSTOM = "custom"
    AI = "ai"


class GroupSource(str, Enum):
    RULE = "rule"
    AI = "ai"
    DOMAIN = "domain"


@dataclass(frozen=True)
class Tab:
    """Read-only snapshot of a single open tab."""

    id: int
    title: str
    url: Optional[str] = None
    group_id: Optional[int] = None
    pinned: bool = False

    @property
    def is_grouped(self) -> bool:
        return self.group_id is not None and self.group_id != NO_GROUP

    @property
    def hostname(self) -> Optional[str]:
        """Return the URL hostname, or None when the URL cannot be parsed."""

        if not self.url:
            return None
        try:
            return urlsplit(self.url).hostname
        except ValueError:
            return None


@dataclass(frozen=True)
class Rule:
    """User-authored grouping rule as stored in the rule store."""

    id: str
    name: str
    kind: RuleKind
    pattern: Optional[str] = None
    enabled: bool = True
    color: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: dict) -> "Rule":
        return cls(
            id=str(raw["id"]),
            name=raw.get("name") or str(raw["id"]),
            kind=RuleKind(raw.get("type", RuleKind.DOMAIN.value)),
            pattern=raw.get("pattern"),
            enabled=bool(raw.get("enabled", True)),
            color=raw.get("color"),
        )

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "type": self.kind.value,
            "enabled": self.enabled,
        }
        if self.pattern is not None:
            data["pattern"] = self.pattern
        if self.color is not None:
            data["color"] = self.color
        return data


@dataclass(frozen=True)
class CandidateGroup:
    """A grouping proposal produced by one pipeline stage."""

    id: str
    name: str
    color: str
    source: GroupSource
    tabs: tuple[Tab, ...] = field(default_factory=tuple)

    @property
    def tab_ids(self) -> list[int]:
        return [tab.id for tab in self.tabs]


@dataclass(frozen=True)
class LiveGroup:
    """A tab group as currently recorded by the tab store."""

    id: int
    title: str
    color: str
    member_tab_ids: frozenset[int] = frozenset()


@dataclass(frozen=True)
class OperationResult:
    """Outcome reported back to inbound commands."""

    success: bool
    message: str

    def to_dict(self) -> dict:
        return {"success": self.success, "message": self.message}
