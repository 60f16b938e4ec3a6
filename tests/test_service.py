from __future__ import annotations

import asyncio
from typing import Callable, List, Optional

from adapters.sqlite_tab_store import SQLiteTabStore
from core.classifier import AIClassificationAdapter
from core.config import UserSettings, settings_from_dict
from core.models import Rule, RuleKind, Tab
from core.orchestrator import GroupingOrchestrator
from core.reconciler import GroupReconciler
from core.service import GroupingService


class FakeConfig:
    def __init__(self, settings: UserSettings, rules: Optional[List[Rule]] = None) -> None:
        self.settings = settings
        self.rules = rules or []

    def load_settings(self) -> UserSettings:
        return self.settings

    def get_rules(self) -> List[Rule]:
        return list(self.rules)

    def save_rules(self, rules: List[Rule]) -> None:
        self.rules = list(rules)


class UnusedClassifier:
    async def complete(self, provider, system_prompt: str, user_prompt: str) -> str:
        raise AssertionError("AI is disabled in these tests")


class CountingOrchestrator(GroupingOrchestrator):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.runs: list[list[int]] = []

    async def generate(self, tabs):
        self.runs.append([tab.id for tab in tabs])
        return await super().generate(tabs)


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    async def notify(self, title: str, message: str) -> None:
        self.sent.append((title, message))


class FakeHandle:
    def __init__(self, callback: Callable[[], None]) -> None:
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeTimers:
    def __init__(self) -> None:
        self.handles: list[FakeHandle] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeHandle:
        handle = FakeHandle(callback)
        self.handles.append(handle)
        return handle

    def fire_pending(self) -> None:
        for handle in list(self.handles):
            if not handle.cancelled:
                handle.cancelled = True
                handle.callback()


class Harness:
    def __init__(self, tmp_path, *, auto_group: bool = True) -> None:
        self.store = SQLiteTabStore(str(tmp_path / "tabs.db"))
        self.store.init_db()
        settings = settings_from_dict({"aiEnabled": False, "autoGroupEnabled": auto_group})
        rules = [Rule(id="work", name="Work", kind=RuleKind.DOMAIN, pattern="a.com,b.com", color="red")]
        self.config = FakeConfig(settings, rules)
        self.notifier = RecordingNotifier()
        self.timers = FakeTimers()
        self.orchestrator = CountingOrchestrator(self.config, AIClassificationAdapter(UnusedClassifier()))
        self.service = GroupingService(
            self.store,
            self.config,
            self.orchestrator,
            GroupReconciler(self.store, self.notifier),
            self.notifier,
            call_later=self.timers.call_later,
        )

    def add(self, url: str) -> Tab:
        tab_id = self.store.add_tab(url, url)
        return next(tab for tab in self.store.query_tabs() if tab.id == tab_id)

    def groups(self) -> dict[str, set[int]]:
        return {group.title: set(group.member_tab_ids) for group in self.store.query_groups()}


def test_regroup_all_replaces_existing_groups(tmp_path) -> None:
    harness = Harness(tmp_path)
    tabs = [harness.add(url) for url in ("https://a.com/x", "https://b.com/y", "https://c.com/z", "https://c.com/w")]
    stale = harness.store.group_tabs([tabs[0].id, tabs[2].id])
    harness.store.update_group(stale, title="Old", color="grey")

    result = asyncio.run(harness.service.regroup_all())

    assert result.success is True
    assert harness.groups() == {"Work": {tabs[0].id, tabs[1].id}, "c.com": {tabs[2].id, tabs[3].id}}


def test_repeated_regroup_is_stable(tmp_path) -> None:
    harness = Harness(tmp_path)
    for url in ("https://a.com/x", "https://b.com/y", "https://c.com/z", "https://c.com/w"):
        harness.add(url)

    asyncio.run(harness.service.regroup_all())
    first = harness.groups()
    asyncio.run(harness.service.regroup_all())

    assert harness.groups() == first
    assert len(harness.store.query_groups()) == 2


def test_commands_return_success_and_message(tmp_path) -> None:
    harness = Harness(tmp_path)
    harness.add("https://a.com/x")

    regrouped = asyncio.run(harness.service.handle_command({"action": "regroupAllTabs"}))
    deleted = asyncio.run(harness.service.handle_command({"action": "deleteAllGroups"}))
    unknown = asyncio.run(harness.service.handle_command({"action": "explode"}))

    assert regrouped["success"] is True
    assert deleted == {"success": True, "message": "All tab groups deleted"}
    assert harness.store.query_groups() == []
    assert unknown["success"] is False
    assert "explode" in unknown["message"]


def test_regroup_failure_is_reported(tmp_path) -> None:
    harness = Harness(tmp_path)

    def broken_query():
        raise RuntimeError("store offline")

    harness.store.query_tabs = broken_query

    result = asyncio.run(harness.service.regroup_all())
    succeeded = asyncio.run(harness.service.scheduled_regroup())

    assert result.success is False
    assert "store offline" in result.message
    assert succeeded is False
    assert harness.notifier.sent


def test_fast_path_collapses_bursts_into_one_run(tmp_path) -> None:
    harness = Harness(tmp_path)
    tabs = [harness.add(url) for url in ("https://a.com/1", "https://c.com/1", "https://c.com/2")]

    async def scenario() -> None:
        for tab in tabs:
            assert harness.service.on_tab_loaded(tab) is True
        harness.timers.fire_pending()
        await harness.service.debouncer.drain()

    asyncio.run(scenario())

    assert len(harness.orchestrator.runs) == 1
    assert harness.groups() == {"Work": {tabs[0].id}, "c.com": {tabs[1].id, tabs[2].id}}


def test_fast_path_only_considers_ungrouped_tabs(tmp_path) -> None:
    harness = Harness(tmp_path)
    grouped = [harness.add("https://c.com/1"), harness.add("https://c.com/2")]
    existing = harness.store.group_tabs([tab.id for tab in grouped])
    harness.store.update_group(existing, title="Mine", color="pink")
    fresh = [harness.add("https://b.com/1"), harness.add("https://d.com/1")]

    async def scenario() -> None:
        harness.service.on_tab_loaded(fresh[0])
        harness.timers.fire_pending()
        await harness.service.debouncer.drain()

    asyncio.run(scenario())

    assert harness.orchestrator.runs == [[fresh[0].id, fresh[1].id]]
    assert harness.groups() == {"Mine": {grouped[0].id, grouped[1].id}, "Work": {fresh[0].id}}


def test_fast_path_merges_into_existing_rule_group(tmp_path) -> None:
    harness = Harness(tmp_path)
    first = harness.add("https://a.com/1")
    asyncio.run(harness.service.regroup_all())
    second = harness.add("https://b.com/1")

    async def scenario() -> None:
        harness.service.on_tab_loaded(second)
        harness.timers.fire_pending()
        await harness.service.debouncer.drain()

    asyncio.run(scenario())

    assert harness.groups() == {"Work": {first.id, second.id}}


def test_fast_path_skips_grouped_tabs_and_disabled_setting(tmp_path) -> None:
    harness = Harness(tmp_path)
    grouped = Tab(id=1, title="x", url="https://a.com", group_id=7)
    no_url = Tab(id=2, title="new tab", url=None)

    assert harness.service.on_tab_loaded(grouped) is False
    assert harness.service.on_tab_loaded(no_url) is False
    assert harness.timers.handles == []

    (tmp_path / "off").mkdir()
    disabled = Harness(tmp_path / "off", auto_group=False)
    assert disabled.service.on_tab_loaded(Tab(id=3, title="x", url="https://a.com")) is False
    assert disabled.timers.handles == []


class GatedOrchestrator(CountingOrchestrator):
    """Holds its first run open until ``gate`` is set."""

    def __init__(self, log: list[str], *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.log = log
        self.gate: Optional[asyncio.Event] = None

    async def generate(self, tabs):
        self.log.append("generate")
        gate, self.gate = self.gate, None
        if gate is not None:
            await gate.wait()
        return await super().generate(tabs)


class LoggingReconciler(GroupReconciler):
    def __init__(self, log: list[str], *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.log = log

    async def apply(self, candidates):
        report = await super().apply(candidates)
        self.log.append("apply")
        return report


def test_full_regroup_and_fast_path_never_overlap(tmp_path) -> None:
    harness = Harness(tmp_path)
    for url in ("https://a.com/1", "https://c.com/1", "https://c.com/2"):
        harness.add(url)
    log: list[str] = []
    orchestrator = GatedOrchestrator(log, harness.config, AIClassificationAdapter(UnusedClassifier()))
    service = GroupingService(
        harness.store,
        harness.config,
        orchestrator,
        LoggingReconciler(log, harness.store, harness.notifier),
        harness.notifier,
        call_later=harness.timers.call_later,
    )

    async def scenario() -> None:
        gate = asyncio.Event()
        orchestrator.gate = gate
        full = asyncio.ensure_future(service.regroup_all())
        await asyncio.sleep(0)
        fast = asyncio.ensure_future(service.group_ungrouped_tabs())
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        # The full regroup is parked inside generate; the fast path must wait.
        assert log == ["generate"]

        gate.set()
        result, _ = await asyncio.gather(full, fast)
        assert result.success is True

    asyncio.run(scenario())

    assert log == ["generate", "apply", "generate", "apply"]
