"""
Login Session Cookies
=====================

Handles creation and verification of the signed session JWT that remembers
which principal authenticated in this browser, plus the flash cookie used
for redirect notices.

The session token is a PyJWT HS256/384/512 token with 'sub' (principal id),
'iss', 'iat' and 'exp' claims, stored in an HttpOnly cookie. A missing,
expired or tampered token simply means "no current user".
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError
from starlette.requests import Request
from starlette.responses import Response

from ..config import Settings

logger = logging.getLogger(__name__)

FLASH_SUCCESS_COOKIE = "flash_success"
FLASH_MAX_AGE_SECONDS = 60


class JWTSessionError(Exception):
    """Base exception for JWT session errors"""
    pass


class SessionManager:
    """
    Reads and writes the login session cookie.

    Args:
        settings: Application settings (secret, algorithm, expiry, cookie name)
    """

    def __init__(self, settings: Settings):
        if not settings.SESSION_JWT_SECRET:
            raise JWTSessionError("SESSION_JWT_SECRET not configured")
        self._secret = settings.SESSION_JWT_SECRET
        self._algorithm = settings.SESSION_JWT_ALGORITHM
        self._issuer = settings.SESSION_JWT_ISSUER
        self._expiry_minutes = settings.SESSION_JWT_EXPIRY_MINUTES
        self.cookie_name = settings.SESSION_COOKIE_NAME
        self._secure = settings.COOKIE_SECURE

    # =========================================================================
    # Token Creation / Verification
    # =========================================================================

    def create_session_jwt(self, subject: str) -> str:
        """
        Create a session JWT for `subject`.

        Raises:
            JWTSessionError: If the subject is empty
        """
        if not subject:
            raise JWTSessionError("Missing required claim: 'sub' (subject/user ID)")

        now = datetime.now(timezone.utc)
        payload = {
            "sub": subject,
            "iat": now,
            "exp": now + timedelta(minutes=self._expiry_minutes),
            "iss": self._issuer,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify_session_jwt(self, token: Optional[str]) -> Optional[Dict[str, Any]]:
        """
        Verify and decode a session JWT.

        Returns:
            The decoded claims, or None if the token is missing or invalid
        """
        if not token:
            return None

        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                issuer=self._issuer,
                options={"require": ["exp", "iat", "sub", "iss"]},
            )
        except ExpiredSignatureError:
            logger.info("Session JWT expired")
        except InvalidTokenError as e:
            logger.warning(f"Invalid session JWT: {e}")
        return None

    # =========================================================================
    # Cookies
    # =========================================================================

    def current_subject(self, request: Request) -> Optional[str]:
        claims = self.verify_session_jwt(request.cookies.get(self.cookie_name))
        if claims is None:
            return None
        return claims.get("sub")

    def put_session(self, response: Response, subject: str) -> None:
        response.set_cookie(
            self.cookie_name,
            self.create_session_jwt(subject),
            max_age=self._expiry_minutes * 60,
            httponly=True,
            secure=self._secure,
            samesite="lax",
        )

    def put_flash(self, response: Response, message: str) -> None:
        response.set_cookie(
            FLASH_SUCCESS_COOKIE,
            message,
            max_age=FLASH_MAX_AGE_SECONDS,
            httponly=True,
            secure=self._secure,
            samesite="lax",
        )

    def clear_all(self, response: Response) -> None:
        """Tear down the local login session."""
        response.delete_cookie(
            self.cookie_name, httponly=True, secure=self._secure, samesite="lax"
        )


__all__ = [
    "SessionManager",
    "JWTSessionError",
    "FLASH_SUCCESS_COOKIE",
]
