"""
Data Models Module

Pydantic models for the provider's admin API: the challenge records returned
by the "get" calls and the payloads submitted by the accept/reject calls.

Models are organized by direction:
- Provider records (login, consent and logout requests, client metadata)
- Resolution payloads (accept login, accept consent, reject)
- Resolution result (the provider's redirect location)

Records are frozen snapshots. Unknown fields sent by the provider are ignored
so newer provider versions do not break decoding.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# Provider Records
# ============================================================================

class ProviderRecord(BaseModel):
    """Base for read-only records decoded from admin API responses."""

    model_config = ConfigDict(frozen=True, extra="ignore")


class ClientInfo(ProviderRecord):
    """Metadata about the requesting OAuth2 client. Display only."""

    client_id: str = Field(default="", description="OAuth2 client identifier")
    client_name: str = Field(default="", description="Human-readable client name")
    client_uri: str = Field(default="", description="Client home page")
    logo_uri: str = Field(default="", description="Client logo URL")
    policy_uri: str = Field(default="", description="Client privacy policy URL")
    tos_uri: str = Field(default="", description="Client terms of service URL")
    owner: str = Field(default="", description="Client owner")
    contacts: List[str] = Field(default_factory=list, description="Contact addresses")
    redirect_uris: List[str] = Field(default_factory=list)
    post_logout_redirect_uris: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Free-form client metadata")

    @field_validator(
        "client_id", "client_name", "client_uri", "logo_uri",
        "policy_uri", "tos_uri", "owner",
        mode="before",
    )
    @classmethod
    def none_to_empty_string(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("contacts", "redirect_uris", "post_logout_redirect_uris", mode="before")
    @classmethod
    def none_to_empty_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("metadata", mode="before")
    @classmethod
    def none_to_empty_dict(cls, v: Any) -> Any:
        return {} if v is None else v


class ChallengeRecord(ProviderRecord):
    """
    Fields shared by login and consent requests.

    Attributes:
        challenge: The challenge this record was fetched for
        subject: Subject the provider already knows, empty if none
        skip: True when the provider decided no user interaction is needed
        requested_scope: Scopes requested by the client, in request order
        requested_access_token_audience: Audiences requested by the client
        client: The requesting client
        request_url: Original authorization request URL
    """

    challenge: str = ""
    subject: str = ""
    skip: bool = False
    requested_scope: List[str] = Field(default_factory=list)
    requested_access_token_audience: List[str] = Field(default_factory=list)
    client: ClientInfo = Field(default_factory=ClientInfo)
    request_url: str = ""
    oidc_context: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("challenge", "subject", "request_url", mode="before")
    @classmethod
    def none_to_empty_string(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("skip", mode="before")
    @classmethod
    def none_to_false(cls, v: Any) -> Any:
        return False if v is None else v

    @field_validator("requested_scope", "requested_access_token_audience", mode="before")
    @classmethod
    def none_to_empty_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("client", mode="before")
    @classmethod
    def none_to_empty_client(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("oidc_context", mode="before")
    @classmethod
    def none_to_empty_dict(cls, v: Any) -> Any:
        return {} if v is None else v


class LoginRequest(ChallengeRecord):
    """Pending login decision."""

    session_id: str = Field(default="", description="Login session correlating login and consent")

    @field_validator("session_id", mode="before")
    @classmethod
    def none_session_id(cls, v: Any) -> Any:
        return "" if v is None else v


class ConsentRequest(ChallengeRecord):
    """Pending consent decision."""

    login_challenge: str = ""
    login_session_id: str = Field(default="", description="Login session this consent belongs to")
    context: Dict[str, Any] = Field(default_factory=dict, description="Context set when login was accepted")

    @field_validator("login_challenge", "login_session_id", mode="before")
    @classmethod
    def none_login_fields(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("context", mode="before")
    @classmethod
    def none_context(cls, v: Any) -> Any:
        return {} if v is None else v


class LogoutRequest(ProviderRecord):
    """Pending logout decision."""

    challenge: str = ""
    subject: str = ""
    sid: str = Field(default="", description="Login session being terminated")
    request_url: str = ""
    rp_initiated: bool = False

    @field_validator("challenge", "subject", "sid", "request_url", mode="before")
    @classmethod
    def none_to_empty_string(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("rp_initiated", mode="before")
    @classmethod
    def none_to_false(cls, v: Any) -> Any:
        return False if v is None else v


# ============================================================================
# Resolution Payloads
# ============================================================================

class AcceptLoginBody(BaseModel):
    """Body of the accept-login call."""

    subject: str = Field(..., description="Authenticated subject")
    remember: bool = Field(default=False, description="Let the provider skip login next time")
    remember_for: int = Field(default=0, ge=0, description="Remember duration in seconds, 0 = forever")


class AcceptConsentBody(BaseModel):
    """
    Grant decision submitted on consent acceptance.

    The session mapping is opaque and forwarded verbatim for inclusion in the
    issued tokens.
    """

    grant_scope: List[str] = Field(default_factory=list)
    grant_access_token_audience: List[str] = Field(default_factory=list)
    session: Dict[str, Any] = Field(default_factory=dict)
    remember: bool = False
    remember_for: int = Field(default=0, ge=0)


# Grant decisions are accept-consent bodies
GrantDecision = AcceptConsentBody


class RejectBody(BaseModel):
    """Body of the reject calls."""

    error: str = Field(..., description="OAuth2 error code, e.g. access_denied")
    error_description: str = Field(default="", description="Human-readable reason")
    error_hint: Optional[str] = None
    status_code: Optional[int] = None


# ============================================================================
# Resolution Result
# ============================================================================

class CompletedRequest(ProviderRecord):
    """Answer to an accept/reject call."""

    redirect_to: Optional[str] = Field(None, description="Where to send the browser next")
