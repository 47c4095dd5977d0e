"""
Consent policy decisions.

Pure functions with no I/O: whether a consent step can be skipped, which
audience to grant, and how a grant decision is assembled for the accept call.
"""

from typing import Any, AbstractSet, Mapping, Optional, Sequence

from ..config import WILDCARD
from ..models import AcceptConsentBody, ChallengeRecord


def should_skip_consent(record: ChallengeRecord, whitelist: AbstractSet[str]) -> bool:
    """
    Decide whether consent can be granted without asking the user.

    Args:
        record: The fetched consent request
        whitelist: Client request URLs exempted from consent, or "*"

    Returns:
        True if the provider says the user already consented, the client's
        request URL is whitelisted, or the whitelist holds the wildcard.
    """
    if record.skip:
        return True
    if WILDCARD in whitelist:
        return True
    return bool(record.request_url) and record.request_url in whitelist


def resolve_audience(
    record: ChallengeRecord,
    submitted_audience: Optional[Sequence[str]],
    override_enabled: bool,
    user_submitted: bool = True,
) -> list:
    """
    Pick the audience to grant.

    The submitted audience is used only when the operator enabled the
    override and the value comes from a user consent submission. Otherwise
    the provider-reported requested audience is returned unchanged.
    """
    if override_enabled and user_submitted:
        return list(submitted_audience or [])
    return list(record.requested_access_token_audience)


def build_grant(
    record: ChallengeRecord,
    scopes: Optional[Sequence[str]],
    audience: Optional[Sequence[str]],
    session: Optional[Mapping[str, Any]],
    remember: bool = False,
    remember_for: int = 0,
) -> AcceptConsentBody:
    """
    Assemble the accept-consent payload.

    Args:
        record: The consent request being granted
        scopes: Scopes to grant; None grants the requested scope
        audience: Audience to grant; None grants the requested audience
        session: Session payload forwarded verbatim to the provider
        remember: Let the provider remember this decision
        remember_for: Remember duration in seconds

    Returns:
        AcceptConsentBody with scope and audience order preserved
    """
    grant_scope = record.requested_scope if scopes is None else scopes
    grant_audience = record.requested_access_token_audience if audience is None else audience

    return AcceptConsentBody(
        grant_scope=list(grant_scope),
        grant_access_token_audience=list(grant_audience),
        session=dict(session or {}),
        remember=remember,
        remember_for=remember_for,
    )
