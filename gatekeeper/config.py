"""
Gatekeeper — Application Configuration
=======================================

What:  Centralized configuration management using Pydantic Settings.
How:   Pydantic Settings reads environment variables (or a .env file),
       coerces and validates them, and exposes a module-level `settings`
       singleton. Every value is optional; an absent variable takes the
       default listed below.

Environment variables (case-insensitive):
    RATE_LIMIT          Max hits per (client, path) before a ban      10
    INACTIVITY_LENGTH   ms without activity before a counter is stale 10000
    BAN_LENGTH          ms a ban lasts once triggered                 300000
    SWEEP_INTERVAL      ms between maintenance passes                 60000
    TRACKER_CAP         Rate counters kept before forced eviction     10000
    URL_BLOCKLIST       Comma-separated paths that are always denied  /admin
    DENIED_METHODS      Comma-separated methods refused outright      POST
    ALLOWLIST           Comma-separated client identities exempted    (empty)
    ADMISSION_MODE      "middleware" or "combined"                    middleware
    SECURITY_HEADERS    Add hardening headers to delegated responses  true
    DEBUG               Verbose maintenance logging                   false
    LOG_LEVEL           DEBUG, INFO, WARNING, ERROR, CRITICAL         INFO
    HOST / PORT         Listener address for `python -m gatekeeper`   0.0.0.0:8000
"""

from typing import FrozenSet, List, Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from gatekeeper.exceptions import ConfigurationError


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """
    Gatekeeper settings loaded from environment variables.

    Durations are in milliseconds. List-valued settings are plain
    comma-separated strings in the environment and are exposed as
    parsed collections through properties.
    """

    # ── Rate limiting & bans ──────────────────────────────────────────────
    rate_limit: int = Field(default=10, ge=1, le=1_000_000)
    inactivity_length: int = Field(default=10_000, ge=1)
    ban_length: int = Field(default=300_000, ge=0)
    sweep_interval: int = Field(default=60_000, ge=1)

    # What: Hard bound on the number of live (client, path) counters.
    # The sweep evicts the single oldest counter while above it.
    tracker_cap: int = Field(default=10_000, ge=1)

    # ── Admission policy ──────────────────────────────────────────────────
    url_blocklist: str = Field(default="/admin")
    denied_methods: str = Field(default="POST")
    allowlist: str = Field(default="")
    admission_mode: Literal["middleware", "combined"] = Field(default="middleware")

    @property
    def url_blocklist_set(self) -> FrozenSet[str]:
        return frozenset(_split_csv(self.url_blocklist))

    @property
    def denied_methods_set(self) -> FrozenSet[str]:
        return frozenset(method.upper() for method in _split_csv(self.denied_methods))

    @property
    def allowlist_set(self) -> FrozenSet[str]:
        return frozenset(_split_csv(self.allowlist))

    @field_validator("url_blocklist")
    @classmethod
    def validate_url_blocklist(cls, v: str) -> str:
        """Blocklist entries are matched against request paths, so each must start with '/'."""
        bad = [entry for entry in _split_csv(v) if not entry.startswith("/")]
        if bad:
            raise ValueError(f"URL_BLOCKLIST entries must start with '/': {bad}")
        return v

    # ── Responses ─────────────────────────────────────────────────────────
    security_headers: bool = Field(default=True)

    # ── Server & logging ──────────────────────────────────────────────────
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000, ge=1, le=65535)
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


def load_settings(**overrides) -> Settings:
    """
    Build a Settings instance, converting validation failures to ConfigurationError.

    Keyword overrides take precedence over the environment (used by tests
    and by callers embedding the gatekeeper).
    """
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        errors = [
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        ]
        raise ConfigurationError(
            "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors),
            errors=errors,
        ) from exc


settings = load_settings()
