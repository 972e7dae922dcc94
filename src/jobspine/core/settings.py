"""Runtime settings for jobspine.

Configuration is explicit, validated, and environment-driven. Every field can
be overridden with a ``JOBSPINE_`` prefixed environment variable or a ``.env``
file in the working directory.

Fields
──────
log_level             : Level passed to ``configure_logging``
log_json              : Force JSON (True) or console (False) rendering;
                        unset means auto-detect from the TTY
service_name          : ``service`` field added to every log record
poll_interval         : Seconds between predicate polls in ``wait_until``
default_wait_timeout  : Bound used by ``Pipeline.add_wait_until`` when the
                        caller does not give one

Examples:
    >>> from jobspine.core.settings import get_settings
    >>> get_settings().poll_interval
    0.01

    $ JOBSPINE_POLL_INTERVAL=0.05 python -m my_game

Tags:
    settings, configuration, pydantic, environment, jobspine

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class JobSpineSettings(BaseSettings):
    """Engine-wide settings."""

    model_config = SettingsConfigDict(
        env_prefix="JOBSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool | None = None
    service_name: str = "jobspine"

    # ── Scheduling ───────────────────────────────────────────────
    poll_interval: float = Field(default=0.01, gt=0)
    default_wait_timeout: float = Field(default=30.0, gt=0)

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level


_settings: JobSpineSettings | None = None


def get_settings(*, _force_reload: bool = False) -> JobSpineSettings:
    """Load, validate, and cache the settings."""
    global _settings
    if _settings is None or _force_reload:
        _settings = JobSpineSettings()
    return _settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    global _settings
    _settings = None


__all__ = ["JobSpineSettings", "clear_settings_cache", "get_settings"]
