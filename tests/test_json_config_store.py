from __future__ import annotations

import json

from adapters.json_config_store import JsonConfigStore
from core.models import Rule, RuleKind


def _write(path, document: dict) -> None:
    path.write_text(json.dumps(document), encoding="utf-8")


def test_first_run_seeds_rules_and_settings(tmp_path) -> None:
    path = tmp_path / "config.json"
    store = JsonConfigStore(str(path))

    assert store.seed_defaults() is True
    assert store.seed_defaults() is False

    rules = store.get_rules()
    assert [rule.id for rule in rules] == ["default-social", "default-search", "default-localhost"]
    assert all(rule.enabled and rule.kind is RuleKind.DOMAIN for rule in rules)
    assert [rule.color for rule in rules] == ["blue", "green", "purple"]

    settings = store.load_settings()
    assert settings.auto_group_enabled and settings.ai_enabled and settings.auto_reschedule
    assert settings.ai_grouping_interval == 60
    assert not settings.ai_provider.configured


def test_seed_keeps_existing_rules_and_sections(tmp_path) -> None:
    path = tmp_path / "config.json"
    _write(path, {"rules": [{"id": "mine", "name": "Mine", "type": "custom", "pattern": "^x"}], "logging": {"level": "DEBUG"}})
    store = JsonConfigStore(str(path))

    store.seed_defaults()

    assert [rule.id for rule in store.get_rules()] == ["mine"]
    assert store.read_section("logging") == {"level": "DEBUG"}


def test_load_settings_migrates_on_read(tmp_path) -> None:
    path = tmp_path / "config.json"
    _write(path, {"settings": {"aiEnabled": False, "aiGroupingInterval": 30}})
    store = JsonConfigStore(str(path))

    settings = store.load_settings()

    assert settings.ai_enabled is False
    assert settings.ai_grouping_interval == 60
    assert settings.ai_provider.endpoint == "https://api.openai.com"
    assert settings.custom_colors == []

    saved = json.loads(path.read_text(encoding="utf-8"))["settings"]
    assert saved["aiGroupingInterval"] == 60
    assert saved["autoReschedule"] is True
    assert saved["aiProvider"]["model"] == "gpt-3.5-turbo"


def test_env_api_key_fills_missing_key_only(tmp_path) -> None:
    path = tmp_path / "config.json"
    _write(path, {"settings": {"aiProvider": {"apiKey": ""}}})

    assert JsonConfigStore(str(path), api_key_override="sk-env").load_settings().ai_provider.api_key == "sk-env"

    _write(path, {"settings": {"aiProvider": {"apiKey": "sk-file"}}})
    assert JsonConfigStore(str(path), api_key_override="sk-env").load_settings().ai_provider.api_key == "sk-file"


def test_save_rules_and_skip_malformed_entries(tmp_path) -> None:
    path = tmp_path / "config.json"
    store = JsonConfigStore(str(path))
    store.save_rules([Rule(id="r1", name="Docs", kind=RuleKind.CUSTOM, pattern=r"^docs\.", color="cyan")])

    document = json.loads(path.read_text(encoding="utf-8"))
    assert document["rules"] == [
        {"id": "r1", "name": "Docs", "type": "custom", "enabled": True, "pattern": r"^docs\.", "color": "cyan"}
    ]

    document["rules"].append({"name": "no id"})
    document["rules"].append({"id": "bad-kind", "type": "nonsense"})
    _write(path, document)

    assert [rule.id for rule in store.get_rules()] == ["r1"]
