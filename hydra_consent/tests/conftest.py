"""
Shared fixtures for the consent service tests.

The admin API client is an AsyncMock specced on AdminClient, the user
store holds argon2-hashed test users, and the responder records which page
was rendered with which view data and answers with JSON so assertions can
read it back.
"""

from typing import Any, Dict, List, Tuple
from unittest.mock import AsyncMock

import pytest
from argon2 import PasswordHasher
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from hydra_consent.config import Settings
from hydra_consent.hydra.client import AdminClient
from hydra_consent.identity.bridge import InMemoryUserStore, StoredUser
from hydra_consent.identity.session import SessionManager
from hydra_consent.main import create_app
from hydra_consent.models import CompletedRequest

TEST_SESSION_SECRET = "test-session-secret-0123456789abcdef"
TEST_PASSWORD = "correct horse battery staple"

# Cheap parameters; verification reads them back from the encoded hash
FAST_HASHER = PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)


class RecordingResponder:
    """Responder that returns the page name and view data as JSON."""

    def __init__(self) -> None:
        self.rendered: List[Tuple[str, Dict[str, Any]]] = []
        self.errors: List[Exception] = []

    def respond(self, request, status_code, page, data):
        self.rendered.append((page, dict(data)))
        return JSONResponse({"page": page, "data": data}, status_code=status_code)

    def error(self, request, exc):
        self.errors.append(exc)
        return JSONResponse(
            {"error": type(exc).__name__, "message": str(exc)},
            status_code=exc.status_code,
        )


def make_settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = {
        "SESSION_JWT_SECRET": TEST_SESSION_SECRET,
        "HYDRA_ADMIN_URL": "http://hydra-admin:4445",
        "CONSENT_WHITELIST": "",
        "OVERRIDE_REQUESTED_AUDIENCE": False,
        "REMEMBER_FOR_SECONDS": 3600,
        "LOGIN_OK_PATH": "/",
        "LOGOUT_REJECTED_PATH": "/",
        "USERS_FILE": None,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def alice() -> StoredUser:
    return StoredUser(
        pid="alice",
        password_hash=FAST_HASHER.hash(TEST_PASSWORD),
        session={"id_token": {"email": "alice@example.com"}},
    )


@pytest.fixture
def user_store(alice) -> InMemoryUserStore:
    return InMemoryUserStore([alice])


@pytest.fixture
def admin() -> AsyncMock:
    admin = AsyncMock(spec=AdminClient)
    admin.accept_login_request.return_value = CompletedRequest(redirect_to="https://provider/after-login")
    admin.accept_consent_request.return_value = CompletedRequest(redirect_to="https://provider/after-consent")
    admin.reject_consent_request.return_value = CompletedRequest(redirect_to="https://provider/denied")
    admin.accept_logout_request.return_value = CompletedRequest(redirect_to="https://provider/after-logout")
    admin.reject_logout_request.return_value = CompletedRequest(redirect_to="https://client/still-here")
    return admin


@pytest.fixture
def responder() -> RecordingResponder:
    return RecordingResponder()


@pytest.fixture
def app(settings, admin, user_store, responder):
    return create_app(
        settings=settings,
        admin_client=admin,
        user_store=user_store,
        responder=responder,
    )


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app, follow_redirects=False)


@pytest.fixture
def sessions(settings) -> SessionManager:
    return SessionManager(settings)


@pytest.fixture
def logged_in(client, sessions):
    """Put a valid session cookie for alice on the test client."""
    client.cookies.set(sessions.cookie_name, sessions.create_session_jwt("alice"))
    return client
