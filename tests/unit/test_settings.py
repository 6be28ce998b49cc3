import pytest
from unittest.mock import patch
from pydantic import ValidationError

from site_inspector.config.settings import DEFAULT_RELAY_ENDPOINTS, Settings, get_settings


def test_defaults():
    with patch.dict("os.environ", {}, clear=True):
        settings = Settings(_env_file=None)
    assert settings.request_timeout_seconds == 8.0
    assert settings.pipeline_timeout_seconds == 30.0
    assert settings.max_retrieval_attempts == 4
    assert settings.max_components == 50
    assert settings.relay_endpoints == DEFAULT_RELAY_ENDPOINTS


def test_default_relay_order():
    names = [relay.name for relay in DEFAULT_RELAY_ENDPOINTS]
    assert names == ["allorigins", "corsproxy", "codetabs"]
    assert DEFAULT_RELAY_ENDPOINTS[0].response_format == "json"


def test_env_overrides():
    with patch.dict("os.environ", {
        "REQUEST_TIMEOUT_SECONDS": "2.5",
        "MAX_RETRIEVAL_ATTEMPTS": "2",
        "LOG_LEVEL": "DEBUG",
    }, clear=True):
        settings = Settings(_env_file=None)
    assert settings.request_timeout_seconds == 2.5
    assert settings.max_retrieval_attempts == 2
    assert settings.log_level == "DEBUG"


def test_relay_endpoints_from_env_json():
    relays = '[{"name": "mine", "base_url": "https://relay.test/", "param": "u"}]'
    with patch.dict("os.environ", {"RELAY_ENDPOINTS": relays}, clear=True):
        settings = Settings(_env_file=None)
    assert len(settings.relay_endpoints) == 1
    assert settings.relay_endpoints[0].name == "mine"
    assert settings.relay_endpoints[0].param == "u"


def test_negative_timeout_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, request_timeout_seconds=-1)


def test_zero_attempts_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, max_retrieval_attempts=0)


def test_effective_retrieval_budget_clamped():
    settings = Settings(_env_file=None, retrieval_budget_seconds=20, pipeline_timeout_seconds=5)
    assert settings.effective_retrieval_budget == 5


def test_get_settings_cached():
    assert get_settings() is get_settings()
