"""
Exceptions raised across the consent service.

Every class carries the HTTP status code the application exception handler
uses when it renders the generic failure page. Provider errors keep the
admin API's own status code verbatim.
"""

from typing import Optional

from fastapi import status


class ConsentFlowError(Exception):
    """Base exception for the login/consent/logout handshake."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    title: str = "Request Failed"

    def __init__(self, message: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


# =============================================================================
# Request Errors
# =============================================================================

class MissingChallenge(ConsentFlowError):
    """
    The phase's challenge query parameter is absent; the request is not ours.

    Answered with an empty 204, never with a rendered page.
    """

    status_code = status.HTTP_204_NO_CONTENT


class MalformedForm(ConsentFlowError):
    """The submitted body could not be validated for its phase."""

    status_code = status.HTTP_400_BAD_REQUEST
    title = "Invalid Request"


class TypeContractViolation(ConsentFlowError):
    """A decoded body does not implement the capability set a phase requires."""

    title = "Configuration Error"


class ChallengeAlreadyResolved(ConsentFlowError):
    """A second accept/reject call was attempted within one request."""

    title = "Configuration Error"


# =============================================================================
# Identity Errors
# =============================================================================

class InvalidCredentials(ConsentFlowError):
    """Principal id or password did not match. Recoverable by the user."""

    status_code = status.HTTP_200_OK
    title = "Invalid Credentials"


class UserNotFound(InvalidCredentials):
    """No user is stored under the requested principal id."""


# =============================================================================
# Provider Errors
# =============================================================================

class ProviderError(ConsentFlowError):
    """
    Failure talking to the provider's admin API.

    Attributes:
        status_code: HTTP status reported by the provider (or chosen locally
            when no response was received)
        error: Provider error code, if the body carried one
        error_description: Provider error description, if any
    """

    status_code = status.HTTP_502_BAD_GATEWAY
    title = "Authorization Server Error"

    def __init__(
        self,
        message: str = "",
        status_code: Optional[int] = None,
        error: Optional[str] = None,
        error_description: Optional[str] = None,
    ):
        super().__init__(message, status_code)
        self.error = error
        self.error_description = error_description


class ProviderUnavailable(ProviderError):
    """Timeout, network failure, 5xx answer or malformed body."""

    title = "Authorization Server Unavailable"


class ProviderRejected(ProviderError):
    """The admin API answered with a 4xx status."""

    status_code = status.HTTP_400_BAD_REQUEST
    title = "Request Rejected"


class ChallengeNotFound(ProviderRejected):
    """The provider does not know the challenge."""

    status_code = status.HTTP_404_NOT_FOUND
    title = "Request Not Found"


class ChallengeExpired(ProviderRejected):
    """The challenge was already handled or has expired."""

    status_code = status.HTTP_410_GONE
    title = "Request Expired"


__all__ = [
    "ConsentFlowError",
    "MissingChallenge",
    "MalformedForm",
    "TypeContractViolation",
    "ChallengeAlreadyResolved",
    "InvalidCredentials",
    "UserNotFound",
    "ProviderError",
    "ProviderUnavailable",
    "ProviderRejected",
    "ChallengeNotFound",
    "ChallengeExpired",
]
