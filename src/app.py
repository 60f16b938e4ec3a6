"""Application entry point for tabgrouper."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import time
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv

import settings
from adapters.json_config_store import JsonConfigStore
from adapters.log_notifier import LogNotifier
from adapters.sqlite_tab_store import SQLiteTabStore
from adapters.webhook_notifier import WebhookNotifier
from client import api_key_from_env, build_client
from core.classifier import AIClassificationAdapter
from core.orchestrator import GroupingOrchestrator
from core.reconciler import GroupReconciler
from core.scheduler import PeriodicRegrouper
from core.service import GroupingService

NAME = "TABGROUPER"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict, extra: list[str]) -> list[str]:
    values = [value for value in extra if value]
    redact_cfg = config.get("redact", {}) if config else {}
    if redact_cfg.get("enabled", True):
        for name in redact_cfg.get("patterns", [settings.API_KEY_ENV]):
            value = os.getenv(name)
            if value:
                values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging(secrets: list[str]) -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", True):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    formatter = _RedactingFormatter(_collect_redaction_values(config, secrets), fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/tabgrouper.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def _build_notifier():
    if settings.NOTIFICATION_METHOD == "webhook":
        if not settings.WEBHOOK_URL:
            raise RuntimeError("notifications.webhook_url is required for webhook notifications")
        return WebhookNotifier(settings.WEBHOOK_URL)
    if settings.NOTIFICATION_METHOD == "log":
        return LogNotifier()
    raise RuntimeError("notifications.method must be 'log' or 'webhook'")


def _build_service() -> tuple[GroupingService, SQLiteTabStore, JsonConfigStore]:
    logger = logging.getLogger(__name__)

    env_key = api_key_from_env()
    config = JsonConfigStore(settings.CONFIG_PATH, api_key_override=env_key)
    provider = config.read_section("settings").get("aiProvider")
    file_key = provider.get("apiKey") if isinstance(provider, dict) else None
    # Handlers must exist before seeding so its records are not dropped.
    _configure_logging([env_key or "", str(file_key or "")])
    config.seed_defaults()

    store = SQLiteTabStore(settings.DB_PATH)
    store.init_db()

    notifier = _build_notifier()
    logger.info("Selected notification method - %s", settings.NOTIFICATION_METHOD)

    orchestrator = GroupingOrchestrator(config, AIClassificationAdapter(build_client()))
    reconciler = GroupReconciler(store, notifier)
    service = GroupingService(store, config, orchestrator, reconciler, notifier)
    logger.info("%s rules are loaded", len(config.get_rules()))
    return service, store, config


async def _watch_new_tabs(store: SQLiteTabStore, service: GroupingService, interval: float) -> None:
    """Poll the store for newly opened tabs and feed them to the fast path."""

    logger = logging.getLogger(__name__)
    existing = store.query_tabs()
    last_id = max((tab.id for tab in existing), default=0)
    while True:
        await asyncio.sleep(interval)
        try:
            new_tabs = store.query_tabs_after(last_id)
        except Exception:
            logger.exception("Failed to poll for new tabs")
            continue
        for tab in new_tabs:
            last_id = max(last_id, tab.id)
            service.on_tab_loaded(tab)


def _run() -> None:
    _print_banner()
    service, store, config = _build_service()
    logger = logging.getLogger(__name__)
    logger.info("Starting tabgrouper")

    regrouper = PeriodicRegrouper(
        load_settings=config.load_settings,
        regroup=service.scheduled_regroup,
        clock=time.monotonic,
    )

    async def _main() -> None:
        await asyncio.gather(
            regrouper.run_forever(),
            _watch_new_tabs(store, service, settings.WATCH_INTERVAL_SECONDS),
        )

    try:
        asyncio.run(_main())
    except KeyboardInterrupt:
        logger.info("Stopped")


def _command(action: str) -> None:
    service, _, _ = _build_service()
    result = asyncio.run(service.handle_command({"action": action}))
    print(json.dumps(result, ensure_ascii=False))


def _import_tabs(path: str) -> None:
    _, store, _ = _build_service()
    with open(path, "r", encoding="utf-8") as handle:
        data = json.load(handle)
    entries = data.get("tabs", []) if isinstance(data, dict) else data

    count = 0
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        store.add_tab(str(entry.get("title") or ""), entry.get("url"))
        count += 1
    print(f"Imported {count} tab(s) into {settings.DB_PATH}")


def _list() -> None:
    _, store, _ = _build_service()
    tabs = {tab.id: tab for tab in store.query_tabs()}
    for group in store.query_groups():
        print(f"{group.title or '(untitled)'} [{group.color}]")
        for tab_id in sorted(group.member_tab_ids):
            tab = tabs.get(tab_id)
            if tab:
                print(f"  {tab.id}. {tab.title} | {tab.url or ''}")
    ungrouped = [tab for tab in tabs.values() if not tab.is_grouped]
    if ungrouped:
        print("(ungrouped)")
        for tab in ungrouped:
            print(f"  {tab.id}. {tab.title} | {tab.url or ''}")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="tabgrouper")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the scheduler and new-tab watcher")
    subparsers.add_parser("regroup", help="Regroup all tabs once")
    subparsers.add_parser("delete-groups", help="Dissolve every tab group")
    import_parser = subparsers.add_parser("import-tabs", help="Load tabs from a JSON file")
    import_parser.add_argument("path")
    subparsers.add_parser("list", help="Show groups and ungrouped tabs")

    args = parser.parse_args(argv)
    if args.command == "regroup":
        _command("regroupAllTabs")
        return
    if args.command == "delete-groups":
        _command("deleteAllGroups")
        return
    if args.command == "import-tabs":
        _import_tabs(args.path)
        return
    if args.command == "list":
        _list()
        return
    _run()


if __name__ == "__main__":
    main()
