"""
Provider Admin Client
=====================

Async wrapper around the provider's administrative API for login, consent
and logout requests.

Each operation is one HTTP round trip with a fixed timeout. The challenge
travels as a query parameter; request and response bodies are JSON. The
client owns request construction, response decoding and error translation
and nothing else:

- timeouts, transport errors, 5xx answers and malformed bodies raise
  ProviderUnavailable
- 4xx answers raise ProviderRejected (ChallengeNotFound for 404,
  ChallengeExpired for 409/410) with the provider's status code kept

Resolving calls are not idempotent, so nothing here retries.
"""

import logging
from typing import Any, Dict, Optional, Type, TypeVar

import httpx
from fastapi import status
from pydantic import BaseModel, ValidationError

from ..exceptions import (
    ChallengeExpired,
    ChallengeNotFound,
    ProviderRejected,
    ProviderUnavailable,
)
from ..models import (
    AcceptConsentBody,
    AcceptLoginBody,
    CompletedRequest,
    ConsentRequest,
    LoginRequest,
    LogoutRequest,
    RejectBody,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0

LOGIN_PATH = "/oauth2/auth/requests/login"
CONSENT_PATH = "/oauth2/auth/requests/consent"
LOGOUT_PATH = "/oauth2/auth/requests/logout"

RecordT = TypeVar("RecordT", bound=BaseModel)


class AdminClient:
    """
    Client for the provider's admin endpoints.

    Args:
        base_url: Admin API base URL, e.g. http://localhost:4445
        timeout: Per-call timeout in seconds
        transport: Optional httpx transport (used by tests)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "AdminClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # =========================================================================
    # Login
    # =========================================================================

    async def get_login_request(self, challenge: str) -> LoginRequest:
        return await self._call(
            "GET", LOGIN_PATH, "login_challenge", challenge, LoginRequest
        )

    async def accept_login_request(
        self, challenge: str, body: AcceptLoginBody
    ) -> CompletedRequest:
        return await self._call(
            "PUT", f"{LOGIN_PATH}/accept", "login_challenge", challenge,
            CompletedRequest, body=body,
        )

    # =========================================================================
    # Consent
    # =========================================================================

    async def get_consent_request(self, challenge: str) -> ConsentRequest:
        return await self._call(
            "GET", CONSENT_PATH, "consent_challenge", challenge, ConsentRequest
        )

    async def accept_consent_request(
        self, challenge: str, body: AcceptConsentBody
    ) -> CompletedRequest:
        return await self._call(
            "PUT", f"{CONSENT_PATH}/accept", "consent_challenge", challenge,
            CompletedRequest, body=body,
        )

    async def reject_consent_request(
        self, challenge: str, body: RejectBody
    ) -> CompletedRequest:
        return await self._call(
            "PUT", f"{CONSENT_PATH}/reject", "consent_challenge", challenge,
            CompletedRequest, body=body,
        )

    # =========================================================================
    # Logout
    # =========================================================================

    async def get_logout_request(self, challenge: str) -> LogoutRequest:
        return await self._call(
            "GET", LOGOUT_PATH, "logout_challenge", challenge, LogoutRequest
        )

    async def accept_logout_request(self, challenge: str) -> CompletedRequest:
        return await self._call(
            "PUT", f"{LOGOUT_PATH}/accept", "logout_challenge", challenge,
            CompletedRequest,
        )

    async def reject_logout_request(self, challenge: str) -> CompletedRequest:
        """
        Reject a logout request.

        The provider may answer with 204 and no body, in which case the
        returned CompletedRequest has no redirect location.
        """
        return await self._call(
            "PUT", f"{LOGOUT_PATH}/reject", "logout_challenge", challenge,
            CompletedRequest, allow_empty=True,
        )

    # =========================================================================
    # Transport
    # =========================================================================

    async def _call(
        self,
        method: str,
        path: str,
        challenge_param: str,
        challenge: str,
        model: Type[RecordT],
        body: Optional[BaseModel] = None,
        allow_empty: bool = False,
    ) -> RecordT:
        """
        Perform one admin API round trip and decode the answer into `model`.

        Raises:
            ProviderUnavailable: On timeout, network error, 5xx or bad body
            ProviderRejected: On 4xx answers
        """
        payload = body.model_dump(exclude_none=True) if body is not None else None

        try:
            response = await self._client.request(
                method,
                path,
                params={challenge_param: challenge},
                json=payload,
            )
        except httpx.TimeoutException as e:
            logger.error(
                "Admin API request timed out",
                extra={"method": method, "path": path},
            )
            raise ProviderUnavailable(
                f"Timed out calling {method} {path}",
                status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            ) from e
        except httpx.HTTPError as e:
            logger.error(
                f"Admin API network error: {e}",
                extra={"method": method, "path": path},
            )
            raise ProviderUnavailable(f"Cannot reach admin API: {e}") from e

        if not response.is_success:
            raise self._error_from_response(method, path, response)

        if allow_empty and (
            response.status_code == status.HTTP_204_NO_CONTENT or not response.content
        ):
            return model()

        try:
            data = response.json()
        except ValueError as e:
            logger.error(
                "Admin API returned a non-JSON body",
                extra={"method": method, "path": path, "status_code": response.status_code},
            )
            raise ProviderUnavailable(f"Malformed response from {method} {path}") from e

        if not isinstance(data, dict):
            raise ProviderUnavailable(f"Malformed response from {method} {path}")

        if model is CompletedRequest and not allow_empty and not data.get("redirect_to"):
            raise ProviderUnavailable(f"Response from {method} {path} has no redirect_to")

        try:
            record = model.model_validate(data)
        except ValidationError as e:
            logger.error(
                f"Admin API response failed validation: {e}",
                extra={"method": method, "path": path},
            )
            raise ProviderUnavailable(f"Malformed response from {method} {path}") from e

        logger.debug(
            "Admin API call succeeded",
            extra={"method": method, "path": path, "status_code": response.status_code},
        )
        return record

    @staticmethod
    def _error_from_response(method: str, path: str, response: httpx.Response):
        """Translate a non-2xx answer into the matching provider error."""
        error: Optional[str] = None
        description: Optional[str] = None
        try:
            data: Dict[str, Any] = response.json()
            if isinstance(data, dict):
                error = data.get("error")
                description = data.get("error_description") or data.get("error_hint")
        except ValueError:
            pass

        code = response.status_code
        message = f"{method} {path} failed with status {code}"
        if description:
            message = f"{message}: {description}"

        if code >= 500:
            logger.error(message, extra={"status_code": code, "error": error})
            return ProviderUnavailable(message, status_code=code, error=error, error_description=description)

        logger.warning(message, extra={"status_code": code, "error": error})
        if code == status.HTTP_404_NOT_FOUND:
            cls = ChallengeNotFound
        elif code in (status.HTTP_409_CONFLICT, status.HTTP_410_GONE):
            cls = ChallengeExpired
        else:
            cls = ProviderRejected
        return cls(message, status_code=code, error=error, error_description=description)
