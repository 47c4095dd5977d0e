"""
Unit Tests for Login Session Cookies
====================================

Tests for hydra_consent/identity/session.py
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from starlette.responses import Response

from hydra_consent.identity.session import FLASH_SUCCESS_COOKIE, JWTSessionError, SessionManager

from .conftest import TEST_SESSION_SECRET, make_settings


@pytest.fixture
def manager():
    return SessionManager(make_settings())


def test_session_jwt_round_trip(manager):
    token = manager.create_session_jwt("alice")

    claims = manager.verify_session_jwt(token)

    assert claims["sub"] == "alice"
    assert claims["iss"] == "hydra-consent"
    assert claims["exp"] > claims["iat"]


def test_empty_subject_is_rejected(manager):
    with pytest.raises(JWTSessionError):
        manager.create_session_jwt("")


def test_missing_token_is_no_session(manager):
    assert manager.verify_session_jwt(None) is None
    assert manager.verify_session_jwt("") is None


def test_tampered_token_is_no_session(manager):
    token = jwt.encode(
        {
            "sub": "alice",
            "iss": "hydra-consent",
            "iat": datetime.now(timezone.utc),
            "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
        },
        "some-other-secret-0123456789abcdef",
        algorithm="HS256",
    )

    assert manager.verify_session_jwt(token) is None


def test_expired_token_is_no_session(manager):
    past = datetime.now(timezone.utc) - timedelta(hours=2)
    token = jwt.encode(
        {"sub": "alice", "iss": "hydra-consent", "iat": past, "exp": past + timedelta(minutes=5)},
        TEST_SESSION_SECRET,
        algorithm="HS256",
    )

    assert manager.verify_session_jwt(token) is None


def test_wrong_issuer_is_no_session(manager):
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {"sub": "alice", "iss": "someone-else", "iat": now, "exp": now + timedelta(minutes=5)},
        TEST_SESSION_SECRET,
        algorithm="HS256",
    )

    assert manager.verify_session_jwt(token) is None


def test_put_session_sets_http_only_cookie(manager):
    response = Response()

    manager.put_session(response, "alice")

    header = response.headers["set-cookie"]
    assert header.startswith(f"{manager.cookie_name}=")
    assert "HttpOnly" in header
    assert "SameSite=lax" in header


def test_put_flash_sets_short_lived_cookie(manager):
    response = Response()

    manager.put_flash(response, "You have been logged out")

    header = response.headers["set-cookie"]
    assert header.startswith(f"{FLASH_SUCCESS_COOKIE}=")
    assert "Max-Age=60" in header


def test_clear_all_expires_session_cookie(manager):
    response = Response()

    manager.clear_all(response)

    header = response.headers["set-cookie"]
    assert header.startswith(f"{manager.cookie_name}=")
    assert "Max-Age=0" in header
