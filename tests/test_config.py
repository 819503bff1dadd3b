"""Unit tests for core/config.py -- Settings validation.

Covers:
- production without SECRET_KEY refuses to start
- development/test generate a random key
- short keys are rejected in every environment
- secure cookies follow the environment
- defaults: one-day tokens, role limits, fail-closed admission
"""

import pytest
from pydantic import ValidationError

from core.config import Settings


def test_production_requires_secret_key(monkeypatch):
    monkeypatch.delenv("SECRET_KEY", raising=False)
    with pytest.raises(ValidationError, match="SECRET_KEY is required"):
        Settings(environment="production", secret_key="")


@pytest.mark.parametrize("environment", ["development", "test"])
def test_non_production_generates_key(environment):
    settings = Settings(environment=environment, secret_key="")
    assert len(settings.secret_key) >= 32
    assert Settings(environment=environment, secret_key="").secret_key != settings.secret_key


@pytest.mark.parametrize("environment", ["development", "production"])
def test_short_key_rejected(environment):
    with pytest.raises(ValidationError, match="at least 32 characters"):
        Settings(environment=environment, secret_key="too-short")


def test_secure_cookies_only_in_production():
    assert Settings(environment="production", secret_key="k" * 32).secure_cookies is True
    assert Settings(environment="development", secret_key="k" * 32).secure_cookies is False


def test_defaults():
    settings = Settings(environment="test", secret_key="k" * 32)
    assert settings.token_expire_seconds == 86400
    assert settings.rate_limit_admin == "20/minute"
    assert settings.rate_limit_user == "10/minute"
    assert settings.rate_limit_guest == "5/minute"
    assert settings.admission_fail_open is False
    assert settings.allow_admin_signup is False


def test_unknown_environment_rejected():
    with pytest.raises(ValidationError):
        Settings(environment="staging", secret_key="k" * 32)
