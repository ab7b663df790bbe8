"""Tests for startup configuration validation."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from etags.core import csrf as csrf_module
from etags.core.app_factory import create_app
from etags.core.config import DEFAULT_CSRF_SECRET, CSRFSettings, Settings, validate_settings
from etags.core.csrf import CSRF_COOKIE_NAME, CSRFTokenSigner
from etags.core.errors import ConfigurationAppError


def _settings(app_env: str, secret: str) -> Settings:
    return Settings(app_env=app_env, csrf=CSRFSettings(secret=secret))


class TestValidateSettings:
    def test_production_with_default_secret_fails_closed(self) -> None:
        with pytest.raises(ConfigurationAppError) as exc_info:
            validate_settings(_settings("production", DEFAULT_CSRF_SECRET))

        assert exc_info.value.code == "csrf_secret_not_configured"
        assert DEFAULT_CSRF_SECRET not in exc_info.value.message

    def test_production_with_blank_secret_fails_closed(self) -> None:
        with pytest.raises(ConfigurationAppError):
            validate_settings(_settings("production", "   "))

    def test_production_with_real_secret_passes(self) -> None:
        validate_settings(_settings("production", "a-long-random-production-secret"))

    @pytest.mark.parametrize("app_env", ["development", "testing", "staging"])
    def test_default_secret_tolerated_outside_production(self, app_env: str) -> None:
        validate_settings(_settings(app_env, DEFAULT_CSRF_SECRET))

    def test_create_app_refuses_unsafe_production_config(self) -> None:
        with patch("etags.core.app_factory.settings", _settings("production", DEFAULT_CSRF_SECRET)):
            with pytest.raises(ConfigurationAppError):
                create_app()


class TestCSRFSettings:
    def test_reads_csrf_secret_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CSRF_SECRET", "from-env")

        assert CSRFSettings().secret == "from-env"

    def test_falls_back_to_auth_secret(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("CSRF_SECRET", raising=False)
        monkeypatch.setenv("AUTH_SECRET", "shared-auth-secret")

        assert CSRFSettings().secret == "shared-auth-secret"

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("CSRF_SECRET", raising=False)
        monkeypatch.delenv("AUTH_SECRET", raising=False)

        cfg = CSRFSettings()

        assert cfg.secret == DEFAULT_CSRF_SECRET
        assert cfg.max_age_seconds == 86400
        assert cfg.cookie_secure is None

    def test_is_production(self) -> None:
        assert _settings("production", "x").is_production is True
        assert _settings("Production", "x").is_production is True
        assert _settings("staging", "x").is_production is False

    @pytest.mark.parametrize("blank", ["", "   "])
    def test_blank_secret_falls_back_to_default(self, blank: str) -> None:
        assert CSRFSettings(secret=blank).secret == DEFAULT_CSRF_SECRET

    def test_empty_secret_in_environment_falls_back_to_default(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CSRF_SECRET", "")
        monkeypatch.delenv("AUTH_SECRET", raising=False)

        assert CSRFSettings().secret == DEFAULT_CSRF_SECRET


def test_empty_secret_outside_production_still_issues_tokens(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("CSRF_SECRET", "")
    monkeypatch.delenv("AUTH_SECRET", raising=False)
    cfg = Settings(app_env="development")
    csrf_module.set_signer(None)

    with patch("etags.core.app_factory.settings", cfg), patch("etags.core.csrf.settings", cfg):
        client = TestClient(create_app())
        response = client.get("/api/csrf")

    assert response.status_code == 200
    token = response.json()["token"]
    assert client.cookies[CSRF_COOKIE_NAME] == token
    assert CSRFTokenSigner(DEFAULT_CSRF_SECRET).verify(token) is True
