# tests/conftest.py
import copy
from unittest.mock import AsyncMock, MagicMock

import pytest

from pagehealth.crawler.services.snapshot_service import build_snapshot
from pagehealth.model import ValidatorDescriptor

BASE_CONFIG = {
    "validators": [],
    "orchestrator": {"timeout": 5, "show_progress": False},
    "session": {"concurrency": 2, "time_out": 5},
    "services": {
        "w3c": {"enabled": True, "endpoint": "https://validator.test/nu/?out=gnu", "timeout": 5},
        "axe": {"endpoint": "", "timeout": 5},
        "dataforseo": {
            "endpoint": "https://seo.test/v3/on_page/instant_pages",
            "login_env": "PAGEHEALTH_TEST_SEO_LOGIN",
            "password_env": "PAGEHEALTH_TEST_SEO_PASSWORD",
            "timeout": 5,
        },
        "pagespeed": {
            "endpoint": "https://psi.test/runPagespeed",
            "api_key_env": "PAGEHEALTH_TEST_PSI_KEY",
            "timeout": 5,
        },
    },
    "auditor": {},
    "logging": {"level": "WARNING"},
}


@pytest.fixture
def config(monkeypatch):
    """A fresh, isolated configuration dict without any credentials in the environment."""
    for name in ("PAGEHEALTH_TEST_SEO_LOGIN", "PAGEHEALTH_TEST_SEO_PASSWORD", "PAGEHEALTH_TEST_PSI_KEY"):
        monkeypatch.delenv(name, raising=False)
    return copy.deepcopy(BASE_CONFIG)


@pytest.fixture
def make_snapshot():
    def _make(html: str, url: str = "https://example.com/"):
        return build_snapshot(url, html)
    return _make


@pytest.fixture
def mock_http():
    """Builds an HttpRequestService stand-in whose perform_request answers with `response`."""
    def _make(response=None, side_effect=None):
        http = MagicMock()
        http.perform_request = AsyncMock(return_value=response, side_effect=side_effect)
        return http
    return _make


@pytest.fixture
def descriptor():
    def _make(validator_id: str, label: str = None, enabled: bool = True):
        return ValidatorDescriptor(id=validator_id, label=label or validator_id.title(), enabled=enabled)
    return _make
