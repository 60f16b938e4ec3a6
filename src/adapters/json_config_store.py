"""JSON configuration adapter.

Settings and rules live in one JSON file (the same file that holds logging
and notification options) so users can edit everything in one place.
Reading migrates the ``settings`` section in place and writes it back when
fields had to be backfilled.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
import tempfile
from typing import Any, List, Optional

from core.config import DEFAULT_RULES, UserSettings, migrate_settings, settings_from_dict
from core.models import Rule

LOGGER = logging.getLogger(__name__)


class JsonConfigStore:
    """Satisfies the core ConfigPort using a single JSON document."""

    def __init__(self, path: str, api_key_override: Optional[str] = None) -> None:
        self._path = path
        self._api_key_override = api_key_override

    @property
    def path(self) -> str:
        return self._path

    def _read(self) -> dict[str, Any]:
        if not os.path.exists(self._path):
            return {}
        with open(self._path, "r", encoding="utf-8") as handle:
            return json.load(handle)

    def _write(self, document: dict[str, Any]) -> None:
        directory = os.path.dirname(os.path.abspath(self._path))
        os.makedirs(directory, exist_ok=True)
        # Write to a sibling temp file first so a crash never leaves half a config.
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2, ensure_ascii=False)
                handle.write("\n")
            os.replace(tmp_path, self._path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def read_section(self, name: str) -> dict[str, Any]:
        """Return a raw top-level section (e.g. ``logging``) or an empty dict."""

        section = self._read().get(name)
        return section if isinstance(section, dict) else {}

    def seed_defaults(self) -> bool:
        """Install default rules and settings on first run.

        Returns True when the file was written.
        """

        document = self._read()
        changed = False
        if not document.get("rules"):
            document["rules"] = [dict(rule) for rule in DEFAULT_RULES]
            changed = True
        settings, migrated = migrate_settings(document.get("settings"))
        if migrated:
            document["settings"] = settings
            changed = True
        if changed:
            self._write(document)
            LOGGER.info("Seeded defaults into %s", self._path)
        return changed

    def load_settings(self) -> UserSettings:
        document = self._read()
        raw, migrated = migrate_settings(document.get("settings"))
        if migrated:
            document["settings"] = raw
            self._write(document)

        settings = settings_from_dict(raw)
        if not settings.ai_provider.api_key and self._api_key_override:
            provider = dataclasses.replace(settings.ai_provider, api_key=self._api_key_override)
            settings = dataclasses.replace(settings, ai_provider=provider)
        return settings

    def save_settings(self, raw_settings: dict[str, Any]) -> None:
        document = self._read()
        document["settings"] = raw_settings
        self._write(document)

    def get_rules(self) -> List[Rule]:
        rules: List[Rule] = []
        for entry in self._read().get("rules", []):
            try:
                rules.append(Rule.from_dict(entry))
            except (KeyError, TypeError, ValueError):
                LOGGER.warning("Ignoring malformed rule entry: %r", entry)
        return rules

    def save_rules(self, rules: List[Rule]) -> None:
        document = self._read()
        document["rules"] = [rule.to_dict() for rule in rules]
        self._write(document)
