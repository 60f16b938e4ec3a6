"""Grouping service: the entry points used by the scheduler, watcher and commands.

This module is integration-agnostic. It only relies on ports for the tab
store, configuration and notifications, and serializes every run that
touches the store behind one lock so a periodic regroup and a fast-path run
never race on the same tabs.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from core.models import OperationResult, Tab
from core.orchestrator import GroupingOrchestrator
from core.ports import ConfigPort, NotifierPort, TabStorePort
from core.reconciler import GroupReconciler
from core.scheduler import CallLater, Debouncer

LOGGER = logging.getLogger(__name__)

FAST_PATH_DEBOUNCE_SECONDS = 0.2


class GroupingService:
    """Orchestrates classification, reconciliation, and notifications."""

    def __init__(
        self,
        store: TabStorePort,
        config: ConfigPort,
        orchestrator: GroupingOrchestrator,
        reconciler: GroupReconciler,
        notifier: NotifierPort,
        debounce_seconds: float = FAST_PATH_DEBOUNCE_SECONDS,
        call_later: Optional[CallLater] = None,
    ) -> None:
        self._store = store
        self._config = config
        self._orchestrator = orchestrator
        self._reconciler = reconciler
        self._notifier = notifier
        self._debouncer = Debouncer(debounce_seconds, call_later=call_later)
        self._lock = asyncio.Lock()

    @property
    def debouncer(self) -> Debouncer:
        return self._debouncer

    async def regroup_all(self) -> OperationResult:
        """Classify every tab, dissolve existing groups, then apply."""

        async with self._lock:
            try:
                LOGGER.info("Regrouping all tabs")
                tabs = self._store.query_tabs()
                # Classify before dissolving so tabs are not left ungrouped
                # while the AI call is in flight.
                candidates = await self._orchestrator.generate(tabs)
                deleted = await self._reconciler.delete_all()
                if not deleted.success:
                    return deleted
                report = await self._reconciler.apply(candidates)
            except Exception as exc:
                LOGGER.exception("Regrouping all tabs failed")
                await self._notify("Grouping failed", f"Regrouping all tabs failed: {exc}")
                return OperationResult(False, f"Grouping failed: {exc}")

        message = f"Grouped all tabs into {report.created + report.merged} group(s)"
        if report.failed:
            message += f", {report.failed} group(s) failed"
        LOGGER.info(message)
        return OperationResult(True, message)

    async def scheduled_regroup(self) -> bool:
        result = await self.regroup_all()
        return result.success

    async def delete_all_groups(self) -> OperationResult:
        async with self._lock:
            return await self._reconciler.delete_all()

    def on_tab_loaded(self, tab: Tab) -> bool:
        """Fast path for a newly loaded tab.

        Returns True when a debounced grouping run was scheduled.
        """

        if not tab.url:
            return False
        # Already grouped tabs never enter the debounce window.
        if tab.is_grouped:
            LOGGER.debug("Tab %s already in group %s, skipping", tab.id, tab.group_id)
            return False
        try:
            settings = self._config.load_settings()
        except Exception:
            LOGGER.exception("Failed to load settings for tab %s", tab.id)
            return False
        if not settings.auto_group_enabled:
            return False

        self._debouncer.trigger(self.group_ungrouped_tabs)
        return True

    async def group_ungrouped_tabs(self) -> None:
        """Run the pipeline over every currently ungrouped tab and apply it."""

        async with self._lock:
            try:
                tabs = [tab for tab in self._store.query_tabs() if not tab.is_grouped]
                LOGGER.info("Grouping %s ungrouped tab(s)", len(tabs))
                candidates = await self._orchestrator.generate(tabs)
                await self._reconciler.apply(candidates)
            except Exception as exc:
                LOGGER.exception("Grouping new tabs failed")
                await self._notify("Grouping failed", f"Grouping new tabs failed: {exc}")

    async def handle_command(self, message: dict[str, Any]) -> dict[str, Any]:
        """Dispatch an inbound ``{"action": ...}`` message."""

        action = message.get("action")
        if action == "deleteAllGroups":
            result = await self.delete_all_groups()
        elif action == "regroupAllTabs":
            result = await self.regroup_all()
        else:
            result = OperationResult(False, f"Unknown action: {action}")
        return result.to_dict()

    async def _notify(self, title: str, message: str) -> None:
        try:
            await self._notifier.notify(title, message)
        except Exception:
            LOGGER.exception("Notification failed")
