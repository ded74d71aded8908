"""
Gatekeeper — Configuration Tests
=================================

What we test:
    ✅ Absent variables fall back to the documented defaults
    ✅ Environment variables override defaults
    ✅ Malformed values raise ConfigurationError
    ✅ Comma-separated lists are parsed and normalised
"""

import pytest

from gatekeeper.config import Settings, load_settings
from gatekeeper.exceptions import ConfigurationError, GatekeeperError

ENV_VARS = (
    "RATE_LIMIT",
    "INACTIVITY_LENGTH",
    "BAN_LENGTH",
    "SWEEP_INTERVAL",
    "TRACKER_CAP",
    "URL_BLOCKLIST",
    "DENIED_METHODS",
    "ALLOWLIST",
    "ADMISSION_MODE",
    "SECURITY_HEADERS",
    "DEBUG",
    "LOG_LEVEL",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestDefaults:
    def test_defaults(self, clean_env):
        cfg = Settings(_env_file=None)

        assert cfg.rate_limit == 10
        assert cfg.inactivity_length == 10_000
        assert cfg.ban_length == 300_000
        assert cfg.sweep_interval == 60_000
        assert cfg.tracker_cap == 10_000
        assert cfg.url_blocklist_set == frozenset({"/admin"})
        assert cfg.denied_methods_set == frozenset({"POST"})
        assert cfg.allowlist_set == frozenset()
        assert cfg.admission_mode == "middleware"
        assert cfg.security_headers is True
        assert cfg.debug is False
        assert cfg.log_level == "INFO"


class TestEnvironment:
    def test_env_overrides(self, clean_env):
        clean_env.setenv("RATE_LIMIT", "3")
        clean_env.setenv("BAN_LENGTH", "0")
        clean_env.setenv("URL_BLOCKLIST", "/admin, /internal ,")
        clean_env.setenv("DEBUG", "true")

        cfg = load_settings()

        assert cfg.rate_limit == 3
        assert cfg.ban_length == 0
        assert cfg.url_blocklist_set == frozenset({"/admin", "/internal"})
        assert cfg.debug is True

    def test_overrides_beat_environment(self, clean_env):
        clean_env.setenv("RATE_LIMIT", "3")
        assert load_settings(rate_limit=7).rate_limit == 7

    def test_malformed_value_raises(self, clean_env):
        clean_env.setenv("RATE_LIMIT", "ten")

        with pytest.raises(ConfigurationError) as exc_info:
            load_settings()

        assert isinstance(exc_info.value, GatekeeperError)
        assert any("rate_limit" in err for err in exc_info.value.errors)


class TestValidation:
    def test_rate_limit_must_be_positive(self):
        with pytest.raises(ConfigurationError):
            load_settings(rate_limit=0)

    def test_blocklist_entries_need_leading_slash(self):
        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(url_blocklist="/admin,admin")
        assert "url_blocklist" in exc_info.value.message

    def test_unknown_admission_mode(self):
        with pytest.raises(ConfigurationError):
            load_settings(admission_mode="strict")

    def test_log_level_is_normalised(self):
        assert load_settings(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ConfigurationError):
            load_settings(log_level="VERBOSE")

    def test_denied_methods_are_uppercased(self):
        cfg = load_settings(denied_methods="post, delete")
        assert cfg.denied_methods_set == frozenset({"POST", "DELETE"})

    def test_empty_denied_methods(self):
        assert load_settings(denied_methods="").denied_methods_set == frozenset()
