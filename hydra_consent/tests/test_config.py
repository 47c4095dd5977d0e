"""
Unit Tests for Configuration
============================

Tests for hydra_consent/config.py
"""

import pytest
from pydantic import ValidationError

from hydra_consent.config import PolicyConfig, validate_configuration

from .conftest import make_settings


def test_defaults():
    settings = make_settings()

    assert settings.hydra_admin_url_str == "http://hydra-admin:4445"
    assert settings.REMEMBER_FOR_SECONDS == 3600
    assert settings.HYDRA_ADMIN_TIMEOUT_SECONDS == 30.0
    assert settings.PORT == 3000


def test_whitelist_parsing_drops_blank_entries():
    settings = make_settings(CONSENT_WHITELIST=" https://a.example/cb, ,https://b.example/cb,")

    assert settings.consent_whitelist_list == ["https://a.example/cb", "https://b.example/cb"]


def test_empty_whitelist_is_empty():
    assert make_settings(CONSENT_WHITELIST="").consent_whitelist_list == []


def test_policy_config_is_frozen():
    policy = make_settings(CONSENT_WHITELIST="*", OVERRIDE_REQUESTED_AUDIENCE=True).policy_config

    assert policy == PolicyConfig(
        consent_whitelist=frozenset({"*"}),
        override_requested_audience=True,
        remember_for=3600,
    )
    with pytest.raises(ValidationError):
        policy.remember_for = 1


def test_short_secret_is_rejected():
    with pytest.raises(ValidationError):
        make_settings(SESSION_JWT_SECRET="too-short")


def test_unsupported_jwt_algorithm_is_rejected():
    with pytest.raises(ValidationError):
        make_settings(SESSION_JWT_ALGORITHM="RS256")


@pytest.mark.parametrize("path", ["https://evil.example/", "//evil.example/", "relative"])
def test_redirect_paths_must_be_local(path):
    with pytest.raises(ValidationError):
        make_settings(LOGIN_OK_PATH=path)


def test_negative_remember_for_is_rejected():
    with pytest.raises(ValidationError):
        make_settings(REMEMBER_FOR_SECONDS=-1)


def test_log_level_is_normalized():
    assert make_settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"


def test_validate_configuration_reports_risky_settings():
    report = validate_configuration(
        make_settings(CONSENT_WHITELIST="*", OVERRIDE_REQUESTED_AUDIENCE=True, REMEMBER_FOR_SECONDS=0)
    )

    assert report["valid"] is True
    assert report["consent_whitelist"] == ["*"]
    assert report["remember_for_seconds"] == 0
    warnings = " ".join(report["warnings"])
    assert "CONSENT_WHITELIST" in warnings
    assert "OVERRIDE_REQUESTED_AUDIENCE" in warnings
    assert "REMEMBER_FOR_SECONDS" in warnings
    assert "COOKIE_SECURE" in warnings


def test_validate_configuration_flags_localhost_admin_url():
    report = validate_configuration(make_settings(HYDRA_ADMIN_URL="http://localhost:4445"))

    assert any("localhost" in w for w in report["warnings"])
