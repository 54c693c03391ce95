# tests/core/test_config_management.py
import json

import pytest

from pagehealth.core.managers.config_manager import ConfigManager
from pagehealth.core.utils.path_utils import PathUtils

MOCK_SETTINGS_CONTENT = {
    "validators": [
        {"id": "markup", "label": "W3C Markup Validation"},
        {"id": "seo", "label": "SEO Analysis", "enabled": False},
        {"label": "entry without id"},
    ],
    "orchestrator": {"timeout": 90},
    "services": {"pagespeed": {"api_key_env": "PAGEHEALTH_TEST_PSI_KEY"}},
}


@pytest.fixture
def config_env(tmp_path, monkeypatch):
    """
    Points the ConfigManager singleton at a temporary settings file and
    reloads the bundled defaults afterwards.
    """
    settings_file = tmp_path / "settings.json"
    settings_file.write_text(json.dumps(MOCK_SETTINGS_CONTENT))
    monkeypatch.setenv("PAGEHEALTH_SETTINGS", str(settings_file))

    manager = ConfigManager()
    manager.reset()
    yield manager

    monkeypatch.undo()
    manager.reset()


def test_config_manager_is_a_singleton():
    assert ConfigManager() is ConfigManager()


def test_config_manager_load(config_env):
    assert config_env.get_all()["orchestrator"]["timeout"] == 90


def test_config_manager_get_nested(config_env):
    assert config_env.get_nested("orchestrator.timeout") == 90
    assert config_env.get_nested("orchestrator.missing", "fallback") == "fallback"
    assert config_env.get_nested("orchestrator.timeout.deeper", 1) == 1


def test_config_manager_set_nested_casts_to_existing_type(config_env):
    assert config_env.set_nested("orchestrator.timeout", "120")
    assert config_env.get_nested("orchestrator.timeout") == 120

    assert config_env.set_nested("auditor.seo.scoring_policy", "strict")
    assert config_env.get_nested("auditor.seo.scoring_policy") == "strict"


def test_set_nested_refuses_to_descend_into_values(config_env):
    assert config_env.set_nested("orchestrator.timeout.inner", 5) is False


def test_secrets_come_from_the_environment(config_env, monkeypatch):
    monkeypatch.delenv("PAGEHEALTH_TEST_PSI_KEY", raising=False)
    env_name = config_env.get_nested("services.pagespeed.api_key_env")
    assert ConfigManager.read_secret(env_name) is None

    monkeypatch.setenv("PAGEHEALTH_TEST_PSI_KEY", "  key-123  ")
    assert ConfigManager.read_secret(env_name) == "key-123"

    monkeypatch.setenv("PAGEHEALTH_TEST_PSI_KEY", "   ")
    assert ConfigManager.read_secret("PAGEHEALTH_TEST_PSI_KEY") is None
    assert ConfigManager.read_secret(None) is None


def test_validator_descriptors_skip_malformed_entries(config_env):
    descriptors = ConfigManager.parse_validator_descriptors(config_env.get_nested("validators"))
    assert [(d.id, d.enabled) for d in descriptors] == [("markup", True), ("seo", False)]
    assert ConfigManager.parse_validator_descriptors(["markup", None]) == []
    assert ConfigManager.parse_validator_descriptors(None) == []


def test_missing_settings_file_gives_empty_config(tmp_path, monkeypatch):
    monkeypatch.setenv("PAGEHEALTH_SETTINGS", str(tmp_path / "absent.json"))
    manager = ConfigManager()
    manager.reset()
    try:
        assert manager.get_all() == {}
    finally:
        monkeypatch.undo()
        manager.reset()


def test_bundled_settings_declare_six_validators(monkeypatch):
    monkeypatch.delenv("PAGEHEALTH_SETTINGS", raising=False)
    settings = json.loads(PathUtils.get_default_settings_file().read_text(encoding="utf-8"))
    assert [entry["id"] for entry in settings["validators"]] == [
        "markup", "accessibility", "contrast", "seo", "security", "performance",
    ]
