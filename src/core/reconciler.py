"""Group reconciliation against the live tab store.

Candidate groups are merged into the store by (title, color) identity, so
applying the same candidates twice never creates duplicate groups.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Iterable, List, Optional, Protocol

from core.models import CandidateGroup, LiveGroup, OperationResult
from core.ports import NotifierPort, TabStorePort

LOGGER = logging.getLogger(__name__)


class UngroupStrategy(Protocol):
    def detach(self, store: TabStorePort, tab_ids: List[int]) -> None:
        ...


class ToggleUngroup:
    """Degraded mode: pinning a tab detaches it from its group.

    Best effort; failures are logged and never raised.
    """

    def detach(self, store: TabStorePort, tab_ids: List[int]) -> None:
        for tab_id in tab_ids:
            try:
                store.update_tab(tab_id, pinned=True)
                store.update_tab(tab_id, pinned=False)
            except Exception:
                LOGGER.exception("Toggle ungroup failed for tab %s", tab_id)


class PrimitiveUngroup:
    """Use the store's ungroup command, falling back when it is rejected."""

    def __init__(self, fallback: Optional[UngroupStrategy] = None) -> None:
        self._fallback = fallback or ToggleUngroup()

    def detach(self, store: TabStorePort, tab_ids: List[int]) -> None:
        try:
            store.ungroup(tab_ids)
        except Exception:
            LOGGER.exception("Ungroup failed, trying fallback")
            self._fallback.detach(store, tab_ids)


def select_ungroup_strategy(store: TabStorePort) -> UngroupStrategy:
    """Pick the ungroup strategy once, based on what the store supports."""

    if callable(getattr(store, "ungroup", None)):
        return PrimitiveUngroup()
    LOGGER.info("Tab store has no ungroup command; using toggle fallback")
    return ToggleUngroup()


@dataclass
class ApplyReport:
    created: int = 0
    merged: int = 0
    failed: int = 0


def _find_group(groups: Iterable[LiveGroup], title: str, color: str) -> Optional[LiveGroup]:
    for group in groups:
        if group.title == title and group.color == color:
            return group
    return None


class GroupReconciler:
    """Diffs candidate groups against the store and issues group commands."""

    def __init__(
        self,
        store: TabStorePort,
        notifier: NotifierPort,
        ungroup_strategy: Optional[UngroupStrategy] = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._ungroup = ungroup_strategy or select_ungroup_strategy(store)

    async def apply(self, candidates: Iterable[CandidateGroup]) -> ApplyReport:
        """Merge or create one live group per candidate.

        A failure on one candidate is reported and the rest still apply.
        """

        report = ApplyReport()
        for candidate in candidates:
            if not candidate.tabs:
                continue
            try:
                # Re-query per candidate so same-named candidates in one batch merge.
                existing = _find_group(self._store.query_groups(), candidate.name, candidate.color)
                if existing is not None:
                    new_ids = [tab_id for tab_id in candidate.tab_ids if tab_id not in existing.member_tab_ids]
                    if new_ids:
                        self._store.group_tabs(new_ids, group_id=existing.id)
                    report.merged += 1
                    LOGGER.info("Added %s tab(s) to existing group %r", len(new_ids), candidate.name)
                else:
                    group_id = self._store.group_tabs(candidate.tab_ids)
                    self._store.update_group(group_id, title=candidate.name, color=candidate.color)
                    report.created += 1
                    LOGGER.info("Created group %r with %s tab(s)", candidate.name, len(candidate.tabs))
            except Exception as exc:
                report.failed += 1
                LOGGER.exception("Failed to apply group %r", candidate.name)
                await self._notify("Grouping failed", f"Could not apply group {candidate.name!r}: {exc}")
        return report

    async def delete_all(self) -> OperationResult:
        """Dissolve every live group; partial leftovers still count as success."""

        try:
            groups = self._store.query_groups()
        except Exception as exc:
            LOGGER.exception("Failed to list tab groups")
            await self._notify("Delete groups failed", f"Could not delete tab groups: {exc}")
            return OperationResult(False, f"Delete failed: {exc}")

        if not groups:
            return OperationResult(True, "No tab groups found")

        LOGGER.info("Dissolving %s tab group(s)", len(groups))
        for group in groups:
            try:
                tabs = self._store.query_tabs_in_group(group.id)
                if tabs:
                    self._ungroup.detach(self._store, [tab.id for tab in tabs])
            except Exception as exc:
                LOGGER.exception("Failed to dissolve group %s", group.id)
                await self._notify("Delete group failed", f"Could not dissolve group {group.id}: {exc}")

        try:
            leftover = self._store.query_groups()
        except Exception:
            LOGGER.exception("Failed to re-check tab groups")
            leftover = []
        if leftover:
            LOGGER.warning("%s tab group(s) could not be dissolved", len(leftover))

        return OperationResult(True, "All tab groups deleted")

    async def _notify(self, title: str, message: str) -> None:
        try:
            await self._notifier.notify(title, message)
        except Exception:
            LOGGER.exception("Notification failed")
