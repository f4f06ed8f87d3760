from datetime import timedelta

import pytest

from core import config as config_module
from core.permissions import ADMIN_OPERATIONS, is_allowed
from core.security import ROLE_ADMIN, ROLE_USER, Actor, create_access_token, decode_access_token


def _reset_settings_cache():
    config_module.get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    _reset_settings_cache()
    yield
    _reset_settings_cache()


def test_non_local_debug_mode_is_blocked(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("DEBUG", "true")
    monkeypatch.setenv("JWT_SECRET", "real-secret")
    _reset_settings_cache()

    with pytest.raises(ValueError, match="debug=true"):
        config_module.get_settings()


def test_non_local_default_secrets_are_blocked(monkeypatch):
    monkeypatch.setenv("APP_ENV", "staging")
    monkeypatch.setenv("DEBUG", "false")
    monkeypatch.setenv("JWT_SECRET", config_module.DEFAULT_JWT_SECRET)
    _reset_settings_cache()

    with pytest.raises(ValueError, match="default JWT secret"):
        config_module.get_settings()


def test_non_positive_forecast_validity_is_blocked(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("DEBUG", "false")
    monkeypatch.setenv("JWT_SECRET", "real-secret")
    monkeypatch.setenv("FORECAST_VALIDITY_DAYS", "0")
    _reset_settings_cache()

    with pytest.raises(ValueError, match="forecast_validity_days"):
        config_module.get_settings()


def test_local_allows_dev_defaults(monkeypatch):
    monkeypatch.setenv("APP_ENV", "local")
    monkeypatch.setenv("DEBUG", "false")
    monkeypatch.setenv("JWT_SECRET", config_module.DEFAULT_JWT_SECRET)
    _reset_settings_cache()

    settings = config_module.get_settings()
    assert settings.app_env == "local"
    assert settings.forecast_validity_days == 30
    assert settings.notification_max_attempts == 5


# ── JWT ────────────────────────────────────────────────────────────────


def test_token_round_trip_builds_actor():
    token = create_access_token({"sub": "user-7", "email": "u7@kardex.test", "role": "admin"})
    claims = decode_access_token(token)
    actor = Actor.from_claims(claims)
    assert actor.user_id == "user-7"
    assert actor.is_admin is True


def test_expired_token_is_rejected():
    token = create_access_token({"sub": "user-7"}, expires_delta=timedelta(seconds=-1))
    assert decode_access_token(token) is None


def test_token_without_subject_is_rejected():
    assert decode_access_token(create_access_token({"email": "nobody@kardex.test"})) is None


def test_garbage_token_is_rejected():
    assert decode_access_token("not-a-jwt") is None


def test_unknown_role_falls_back_to_user():
    actor = Actor.from_claims({"sub": "x", "role": "superuser"})
    assert actor.role == ROLE_USER


# ── Authorization policy ───────────────────────────────────────────────


ADMIN = Actor(user_id="a", role=ROLE_ADMIN)
USER = Actor(user_id="u", role=ROLE_USER)


@pytest.mark.parametrize("operation", sorted(ADMIN_OPERATIONS))
def test_admin_operations_require_admin(operation):
    assert is_allowed(ADMIN, operation) is True
    assert is_allowed(USER, operation) is False


@pytest.mark.parametrize("operation", ["products.list", "transactions.create", "forecasts.get", "dashboard.stats"])
def test_regular_operations_allowed_for_any_actor(operation):
    assert is_allowed(USER, operation) is True
    assert is_allowed(ADMIN, operation) is True


def test_anonymous_is_never_allowed():
    assert is_allowed(None, "products.list") is False
