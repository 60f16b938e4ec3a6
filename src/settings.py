"""Static configuration for tabgrouper.

Everything user-editable (grouping settings, rules, logging, notifications,
store location) lives in a single JSON file for quick edits without touching
Python. Grouping settings and rules are re-read on every run through the
config store; the sections read here only matter at startup.
"""

import json
import os

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# The config path can be moved with an environment variable, e.g. per profile.
CONFIG_PATH = os.getenv("TABGROUPER_CONFIG") or os.path.join(PROJECT_ROOT, "config.json")

# Name of the environment variable (or .env entry) holding the AI API key.
API_KEY_ENV = "TABGROUPER_API_KEY"


def _load_json_config() -> dict:
    """Load config.json; a missing file means first run and defaults apply."""

    if not os.path.exists(CONFIG_PATH):
        return {}

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _resolve_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(os.path.dirname(os.path.abspath(CONFIG_PATH)), path)


_CONFIG = _load_json_config()

# Where to store the SQLite tab store.
_store = _CONFIG.get("store", {})
DB_PATH = _resolve_path(_store.get("db_path", "tabgrouper.db"))

# How often the watcher checks the store for newly opened tabs.
_watch = _CONFIG.get("watch", {})
WATCH_INTERVAL_SECONDS = float(_watch.get("interval_seconds", 2.0))

# Notification method switches adapters without changing core logic.
# - "log": write notifications to the application log
# - "webhook": POST them as JSON to notifications.webhook_url
_notifications = _CONFIG.get("notifications", {})
NOTIFICATION_METHOD = _notifications.get("method", "log")
WEBHOOK_URL = _notifications.get("webhook_url")

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
