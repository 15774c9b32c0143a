from __future__ import annotations

from typing import Any, Mapping, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "STROMPREISE_"


class Settings(BaseSettings):
    api_base_url: str = "http://localhost:3000"
    request_timeout: float = 30.0
    client_log_enabled: bool = True
    log_level: str = "INFO"
    resize_debounce_s: float = 0.12
    moving_average_window: int = 9
    fallback_shift: int = 96

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX, env_ignore_empty=True, extra="ignore", frozen=True
    )


def load_settings(secrets: Optional[Mapping[str, Any]] = None) -> Settings:
    """
    Resolve settings: streamlit secrets > ``STROMPREISE_*`` env vars > defaults.

    Keys are the field names, lower case in secrets and upper case in the
    environment (``api_base_url`` / ``STROMPREISE_API_BASE_URL``). Blank
    values count as unset; invalid ones raise ``pydantic.ValidationError``.
    """
    overrides = {
        name: value
        for name, value in (secrets or {}).items()
        if name in Settings.model_fields and value not in (None, "")
    }
    return Settings(**overrides)
