"""Tests for environment-driven settings."""

import pytest
from pydantic import ValidationError as SettingsValidationError

from docgate.core.exceptions import ConfigurationError
from docgate.core.settings import DocGateSettings
from docgate.testing.utils import create_test_settings


@pytest.fixture
def env(monkeypatch):
    """Populate the environment with a complete configuration."""
    values = {
        "AWS_ACCESS_KEY_ID": "AKIATEST",
        "AWS_SECRET_ACCESS_KEY": "secret",
        "AWS_BUCKET_NAME": "uploads",
        "SECRET_KEY": "a-long-enough-signing-secret",
    }
    for name, value in values.items():
        monkeypatch.setenv(name, value)
    return monkeypatch


class TestDocGateSettings:
    def test_reads_environment(self, env):
        env.setenv("RATE_LIMIT_WINDOW_MS", "30000")
        env.setenv("RATE_LIMIT_MAX", "5")
        env.setenv("SESSION_MODE", "cookie")

        settings = DocGateSettings(_env_file=None)

        assert settings.aws_bucket_name == "uploads"
        assert settings.rate_limit_max == 5
        assert settings.rate_limit_window_seconds == 30.0
        assert settings.session_mode == "cookie"
        settings.require_complete()

    def test_defaults(self, env):
        settings = DocGateSettings(_env_file=None)

        assert settings.capability_ttl_seconds == 300
        assert settings.rate_limit_window_ms == 60_000
        assert settings.rate_limit_max == 10
        assert settings.max_upload_size == 5 * 1024 * 1024
        assert settings.allowed_content_type == "application/pdf"
        assert settings.session_mode == "token"
        assert settings.port == 8080

    def test_unknown_session_mode(self, env):
        env.setenv("SESSION_MODE", "magic")
        with pytest.raises(SettingsValidationError):
            DocGateSettings(_env_file=None)

    @pytest.mark.parametrize("value", ["0", "-1"])
    def test_rate_limit_must_be_positive(self, env, value):
        env.setenv("RATE_LIMIT_MAX", value)
        with pytest.raises(SettingsValidationError):
            DocGateSettings(_env_file=None)

    def test_algorithm_is_normalized(self):
        assert create_test_settings(algorithm="hs512").algorithm == "HS512"

    def test_asymmetric_algorithm_rejected(self):
        with pytest.raises(SettingsValidationError):
            create_test_settings(algorithm="RS256")

    def test_allowed_origins(self):
        settings = create_test_settings(allowed_origin="https://a.example, https://b.example,")
        assert settings.allowed_origins == ["https://a.example", "https://b.example"]

    def test_require_complete_lists_missing(self):
        settings = create_test_settings(secret_key=None, aws_secret_access_key="")

        with pytest.raises(ConfigurationError) as exc_info:
            settings.require_complete()

        assert exc_info.value.missing_fields == ["AWS_SECRET_ACCESS_KEY", "SECRET_KEY"]

    def test_require_complete_rejects_short_secret(self):
        with pytest.raises(ConfigurationError) as exc_info:
            create_test_settings(secret_key="tooshort").require_complete()

        assert "SECRET_KEY" in exc_info.value.message

    def test_trusted_proxies_comma_separated(self, env):
        env.setenv("TRUSTED_PROXIES", "10.0.0.1, 10.0.0.2,")

        settings = DocGateSettings(_env_file=None)

        assert settings.trusted_proxies == ["10.0.0.1", "10.0.0.2"]

    def test_single_trusted_proxy(self, env):
        env.setenv("TRUSTED_PROXIES", "10.0.0.1")
        assert DocGateSettings(_env_file=None).trusted_proxies == ["10.0.0.1"]

    def test_startup_retry_budget(self, env):
        env.setenv("AWS_STARTUP_RETRY_ATTEMPTS", "5")
        assert DocGateSettings(_env_file=None).aws_startup_retry_attempts == 5
