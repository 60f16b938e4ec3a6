"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for the tab store, configuration,
classifier and notification adapters so that the core can be reused with
different backends.
"""

from __future__ import annotations

from typing import List, Optional, Protocol

from core.config import AIProviderConfig, UserSettings
from core.models import LiveGroup, Rule, Tab


class TabStorePort(Protocol):
    """Tab and tab-group operations required by the pipeline."""

    def query_tabs(self) -> List[Tab]:
        ...

    def query_groups(self) -> List[LiveGroup]:
        ...

    def query_tabs_in_group(self, group_id: int) -> List[Tab]:
        ...

    def group_tabs(self, tab_ids: List[int], group_id: Optional[int] = None) -> int:
        ...

    def update_group(self, group_id: int, *, title: str, color: str) -> None:
        ...

    def ungroup(self, tab_ids: List[int]) -> None:
        ...

    def update_tab(self, tab_id: int, *, pinned: bool) -> None:
        ...


class ConfigPort(Protocol):
    """Settings and rule persistence."""

    def load_settings(self) -> UserSettings:
        ...

    def get_rules(self) -> List[Rule]:
        ...

    def save_rules(self, rules: List[Rule]) -> None:
        ...


class ClassifierPort(Protocol):
    """Chat-completion call returning the raw assistant message content."""

    async def complete(self, provider: AIProviderConfig, system_prompt: str, user_prompt: str) -> str:
        ...


class NotifierPort(Protocol):
    """User-facing, fire-and-forget notifications."""

    async def notify(self, title: str, message: str) -> None:
        ...
