import pytest
from pydantic import ValidationError

from strompreise.settings import Settings, load_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in Settings.model_fields:
        monkeypatch.delenv("STROMPREISE_" + name.upper(), raising=False)


def test_defaults():
    settings = load_settings({})
    assert settings == Settings()
    assert settings.moving_average_window == 9
    assert settings.fallback_shift == 96


def test_environment_overrides_defaults(monkeypatch):
    monkeypatch.setenv("STROMPREISE_API_BASE_URL", "http://api")
    monkeypatch.setenv("STROMPREISE_REQUEST_TIMEOUT", "5")
    monkeypatch.setenv("STROMPREISE_CLIENT_LOG_ENABLED", "false")
    settings = load_settings({})
    assert settings.api_base_url == "http://api"
    assert settings.request_timeout == 5.0
    assert settings.client_log_enabled is False


def test_secrets_win_over_environment(monkeypatch):
    monkeypatch.setenv("STROMPREISE_API_BASE_URL", "http://env")
    settings = load_settings({"api_base_url": "http://secret", "client_log_enabled": True})
    assert settings.api_base_url == "http://secret"
    assert settings.client_log_enabled is True


def test_unrelated_secrets_are_ignored():
    settings = load_settings({"other_section": {"token": "x"}, "log_level": "DEBUG"})
    assert settings.log_level == "DEBUG"


def test_blank_values_are_ignored(monkeypatch):
    monkeypatch.setenv("STROMPREISE_LOG_LEVEL", "")
    assert load_settings({"fallback_shift": ""}).log_level == "INFO"


def test_invalid_value():
    with pytest.raises(ValidationError, match="fallback_shift"):
        load_settings({"fallback_shift": "viele"})


def test_misspelled_boolean_is_rejected(monkeypatch):
    monkeypatch.setenv("STROMPREISE_CLIENT_LOG_ENABLED", "treu")
    with pytest.raises(ValidationError, match="client_log_enabled"):
        load_settings({})


def test_settings_are_frozen():
    settings = load_settings({})
    with pytest.raises(ValidationError):
        settings.fallback_shift = 4
