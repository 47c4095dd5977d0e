"""
Unit Tests for the Logout Step
==============================

Tests for GET/POST /logout in hydra_consent/consent/orchestrator.py

Test Coverage:
--------------
1. Show renders the confirmation without resolving anything
2. Cancelling rejects the logout and keeps the local session
3. Confirming re-validates the challenge, tears down the session, accepts
4. A stale challenge fails before any teardown
"""

from fastapi import status

from hydra_consent.exceptions import ChallengeNotFound, ProviderUnavailable
from hydra_consent.identity.session import FLASH_SUCCESS_COOKIE
from hydra_consent.models import CompletedRequest, LogoutRequest


def _set_cookies(response):
    return response.headers.get_list("set-cookie")


def _clears_session(response, cookie_name):
    return any(
        header.startswith(f"{cookie_name}=") and "Max-Age=0" in header
        for header in _set_cookies(response)
    )


def test_logout_show_without_challenge_is_noop(client, admin):
    response = client.get("/logout")

    assert response.status_code == status.HTTP_204_NO_CONTENT
    assert response.content == b""
    admin.get_logout_request.assert_not_called()


def test_logout_show_renders_confirmation(client, admin, responder):
    admin.get_logout_request.return_value = LogoutRequest(
        challenge="lo-1", subject="alice", sid="sid-9", request_url="https://client.example/logout"
    )

    response = client.get("/logout", params={"logout_challenge": "lo-1"})

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["page"] == "logout"
    assert body["data"] == {
        "challenge": "lo-1",
        "request_url": "https://client.example/logout",
        "session_id": "sid-9",
        "subject": "alice",
    }
    admin.accept_logout_request.assert_not_called()
    admin.reject_logout_request.assert_not_called()


def test_logout_submit_cancel_rejects_and_keeps_session(logged_in, admin, sessions):
    response = logged_in.post("/logout", data={"challenge": "lo-1", "shouldLogout": "false"})

    assert response.status_code == status.HTTP_302_FOUND
    assert response.headers["location"] == "https://client/still-here"
    admin.reject_logout_request.assert_awaited_once_with("lo-1")
    admin.accept_logout_request.assert_not_called()
    admin.get_logout_request.assert_not_called()
    assert not _clears_session(response, sessions.cookie_name)
    assert any(h.startswith(f"{FLASH_SUCCESS_COOKIE}=") for h in _set_cookies(response))


def test_logout_submit_cancel_without_location_uses_fallback(client, admin):
    admin.reject_logout_request.return_value = CompletedRequest()

    response = client.post("/logout", data={"challenge": "lo-1", "shouldLogout": "false"})

    assert response.status_code == status.HTTP_302_FOUND
    assert response.headers["location"] == "/"


def test_logout_submit_confirm_tears_down_and_accepts(logged_in, admin, sessions):
    admin.get_logout_request.return_value = LogoutRequest(challenge="lo-1", subject="alice")

    response = logged_in.post("/logout", data={"challenge": "lo-1", "shouldLogout": "true"})

    assert response.status_code == status.HTTP_302_FOUND
    assert response.headers["location"] == "https://provider/after-logout"
    admin.get_logout_request.assert_awaited_once_with("lo-1")
    admin.accept_logout_request.assert_awaited_once_with("lo-1")
    admin.reject_logout_request.assert_not_called()
    assert _clears_session(response, sessions.cookie_name)


def test_logout_submit_stale_challenge_fails_before_teardown(logged_in, admin, sessions):
    admin.get_logout_request.side_effect = ChallengeNotFound("replayed", status_code=404)

    response = logged_in.post("/logout", data={"challenge": "lo-1", "shouldLogout": "true"})

    assert response.status_code == status.HTTP_404_NOT_FOUND
    admin.accept_logout_request.assert_not_called()
    assert not _clears_session(response, sessions.cookie_name)
    assert "location" not in response.headers


def test_logout_submit_accept_failure_still_clears_session(logged_in, admin, sessions, responder):
    admin.get_logout_request.return_value = LogoutRequest(challenge="lo-1")
    admin.accept_logout_request.side_effect = ProviderUnavailable("down")

    response = logged_in.post("/logout", data={"challenge": "lo-1", "shouldLogout": "true"})

    assert response.status_code == status.HTTP_502_BAD_GATEWAY
    assert response.json()["error"] == "ProviderUnavailable"
    assert isinstance(responder.errors[0], ProviderUnavailable)
    assert _clears_session(response, sessions.cookie_name)
    admin.accept_logout_request.assert_awaited_once()
