"""
Submitted form bodies for the three handshake phases.

Each phase has its own pydantic model, and each model statically provides the
capability set its phase needs:

- login:   challenge, credentials, remember-me
- consent: challenge, scopes, isAllowed, requested audience, remember-me
- logout:  challenge, shouldLogout

FormBodyReader decodes a request body into the model for a page. The
require_* helpers check a decoded value against a capability Protocol and
raise TypeContractViolation instead of failing later with an AttributeError.
"""

import logging
from typing import Any, Dict, List, Protocol, Type, Union, runtime_checkable

from fastapi import Request
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..exceptions import MalformedForm, TypeContractViolation

logger = logging.getLogger(__name__)

PAGE_LOGIN = "login"
PAGE_CONSENT = "consent"
PAGE_LOGOUT = "logout"

# Form and query parameter that overrides the static post-login redirect
REDIRECT_PARAM = "redir"


# =============================================================================
# Capability Sets
# =============================================================================

@runtime_checkable
class ChallengeValuer(Protocol):
    def get_challenge(self) -> str: ...


@runtime_checkable
class CredentialsValuer(Protocol):
    def get_pid(self) -> str: ...

    def get_password(self) -> str: ...


@runtime_checkable
class RememberValuer(Protocol):
    def get_should_remember(self) -> bool: ...


@runtime_checkable
class ConsentValuer(Protocol):
    def get_scopes(self) -> List[str]: ...

    def get_is_allowed(self) -> bool: ...

    def get_requested_audience(self) -> List[str]: ...


@runtime_checkable
class LogoutValuer(Protocol):
    def get_should_logout(self) -> bool: ...


def _require(value: Any, capability: type, name: str) -> Any:
    if not isinstance(value, capability):
        raise TypeContractViolation(
            f"body reader returned a type that does not provide {name}: {type(value).__name__}"
        )
    return value


def require_challenge(value: Any) -> ChallengeValuer:
    return _require(value, ChallengeValuer, "ChallengeValuer")


def require_credentials(value: Any) -> CredentialsValuer:
    return _require(value, CredentialsValuer, "CredentialsValuer")


def require_consent(value: Any) -> ConsentValuer:
    return _require(value, ConsentValuer, "ConsentValuer")


def require_logout(value: Any) -> LogoutValuer:
    return _require(value, LogoutValuer, "LogoutValuer")


def should_remember(value: Any) -> bool:
    """Remember-me is true only when the form provides it and sets it."""
    if isinstance(value, RememberValuer):
        return bool(value.get_should_remember())
    return False


# =============================================================================
# Phase Forms
# =============================================================================

class PhaseForm(BaseModel):
    """Fields every submitted phase form carries."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    challenge: str = Field(..., min_length=1, description="Challenge from the show step")

    def get_challenge(self) -> str:
        return self.challenge


class LoginForm(PhaseForm):
    """Credential form posted to /login."""

    username: str = Field(..., min_length=1, description="Principal id")
    password: str = Field(..., min_length=1)
    remember: bool = False

    def get_pid(self) -> str:
        return self.username

    def get_password(self) -> str:
        return self.password

    def get_should_remember(self) -> bool:
        return self.remember


class ConsentForm(PhaseForm):
    """Consent decision posted to /consent."""

    scopes: List[str] = Field(default_factory=list)
    is_allowed: bool = Field(default=False, alias="isAllowed")
    requested_audience: List[str] = Field(default_factory=list, alias="requestedAudience")
    remember: bool = False

    @field_validator("scopes", "requested_audience")
    @classmethod
    def drop_blank_entries(cls, v: List[str]) -> List[str]:
        return [item for item in v if item]

    def get_scopes(self) -> List[str]:
        return list(self.scopes)

    def get_is_allowed(self) -> bool:
        return self.is_allowed

    def get_requested_audience(self) -> List[str]:
        return list(self.requested_audience)

    def get_should_remember(self) -> bool:
        return self.remember


class LogoutForm(PhaseForm):
    """Logout confirmation posted to /logout."""

    should_logout: bool = Field(default=False, alias="shouldLogout")

    def get_should_logout(self) -> bool:
        return self.should_logout


PhaseFormT = Union[LoginForm, ConsentForm, LogoutForm]

# List-valued fields, accepted both as "name" and "name[]"
_LIST_FIELDS = ("scopes", "requestedAudience")


# =============================================================================
# Body Reader
# =============================================================================

class FormBodyReader:
    """
    Decode submitted forms into the model registered for each page.

    Hosts can register their own models as long as they provide the page's
    capability set.
    """

    def __init__(self) -> None:
        self._models: Dict[str, Type[BaseModel]] = {
            PAGE_LOGIN: LoginForm,
            PAGE_CONSENT: ConsentForm,
            PAGE_LOGOUT: LogoutForm,
        }

    def register(self, page: str, model: Type[BaseModel]) -> None:
        self._models[page] = model

    async def read(self, page: str, request: Request) -> BaseModel:
        """
        Read the request body for `page`.

        Raises:
            TypeContractViolation: If no model is registered for the page
            MalformedForm: If the body does not validate
        """
        form = await request.form()
        return self.parse(page, form)

    def parse(self, page: str, form: Any) -> BaseModel:
        model = self._models.get(page)
        if model is None:
            raise TypeContractViolation(f"no form model registered for page '{page}'")

        values: Dict[str, Any] = {}
        for key in form.keys():
            if key.endswith("[]") or key in _LIST_FIELDS:
                continue
            values[key] = form.get(key)
        for key in _LIST_FIELDS:
            items = list(form.getlist(key)) + list(form.getlist(f"{key}[]"))
            if items:
                values[key] = items

        try:
            return model.model_validate(values)
        except ValidationError as e:
            fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
            logger.warning(
                f"Invalid {page} form submission",
                extra={"page": page, "fields": fields},
            )
            raise MalformedForm(f"Invalid {page} form: {', '.join(fields)}") from e
