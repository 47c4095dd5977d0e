"""
Unit Tests for Consent Policy
=============================

Tests for hydra_consent/consent/policy.py
"""

import pytest

from hydra_consent.consent.policy import build_grant, resolve_audience, should_skip_consent
from hydra_consent.models import ConsentRequest


def _record(**overrides):
    values = dict(
        requested_scope=["openid", "offline"],
        requested_access_token_audience=["api1", "api3"],
        request_url="https://client.example/cb",
    )
    values.update(overrides)
    return ConsentRequest(**values)


# ============================================================================
# should_skip_consent
# ============================================================================

def test_skip_when_provider_says_so():
    assert should_skip_consent(_record(skip=True), frozenset())


def test_skip_when_request_url_whitelisted():
    assert should_skip_consent(_record(), frozenset({"https://client.example/cb"}))


def test_skip_with_wildcard():
    assert should_skip_consent(_record(request_url="https://anything/"), frozenset({"*"}))


def test_no_skip_for_other_clients():
    assert not should_skip_consent(_record(), frozenset({"https://other.example/cb"}))


def test_empty_request_url_never_matches():
    assert not should_skip_consent(_record(request_url=""), frozenset({""}))


# ============================================================================
# resolve_audience
# ============================================================================

@pytest.mark.parametrize("submitted", [None, [], ["api2"], ["api1", "api2"]])
def test_audience_without_override_is_provider_reported(submitted):
    assert resolve_audience(_record(), submitted, override_enabled=False) == ["api1", "api3"]


def test_audience_with_override_is_submitted():
    assert resolve_audience(_record(), ["api2"], override_enabled=True) == ["api2"]


def test_audience_override_applies_only_to_user_submissions():
    audience = resolve_audience(_record(), ["api2"], override_enabled=True, user_submitted=False)
    assert audience == ["api1", "api3"]


def test_audience_override_with_nothing_submitted_grants_none():
    assert resolve_audience(_record(), None, override_enabled=True) == []


# ============================================================================
# build_grant
# ============================================================================

def test_grant_keeps_supplied_values_and_order():
    session = {"id_token": {"email": "alice@example.com"}}

    grant = build_grant(
        _record(), ["profile", "openid"], ["api3", "api1"], session,
        remember=True, remember_for=120,
    )

    assert grant.model_dump() == {
        "grant_scope": ["profile", "openid"],
        "grant_access_token_audience": ["api3", "api1"],
        "session": session,
        "remember": True,
        "remember_for": 120,
    }


def test_grant_defaults_to_requested_scope_and_audience():
    grant = build_grant(_record(), None, None, None)

    assert grant.grant_scope == ["openid", "offline"]
    assert grant.grant_access_token_audience == ["api1", "api3"]
    assert grant.session == {}
    assert grant.remember is False


def test_grant_with_empty_scope_list_grants_nothing():
    grant = build_grant(_record(), [], [], {})

    assert grant.grant_scope == []
    assert grant.grant_access_token_audience == []


def test_grant_copies_session_payload():
    session = {"id_token": {"email": "a@example.com"}}

    grant = build_grant(_record(), None, None, session)
    session["id_token"] = {}

    assert grant.session == {"id_token": {"email": "a@example.com"}}
