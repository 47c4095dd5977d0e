"""
Unit Tests for Phase Forms
==========================

Tests for hydra_consent/consent/forms.py
"""

import pytest
from pydantic import BaseModel, ValidationError
from starlette.datastructures import FormData

from hydra_consent.consent.forms import (
    PAGE_CONSENT,
    PAGE_LOGIN,
    PAGE_LOGOUT,
    ConsentForm,
    FormBodyReader,
    LoginForm,
    LogoutForm,
    require_challenge,
    require_consent,
    require_credentials,
    require_logout,
    should_remember,
)
from hydra_consent.exceptions import MalformedForm, TypeContractViolation


@pytest.fixture
def reader():
    return FormBodyReader()


def test_login_form_provides_credentials(reader):
    form = reader.parse(
        PAGE_LOGIN,
        FormData([("challenge", "abc"), ("username", "alice"), ("password", "pw"), ("remember", "on")]),
    )

    assert isinstance(form, LoginForm)
    assert require_challenge(form).get_challenge() == "abc"
    creds = require_credentials(form)
    assert (creds.get_pid(), creds.get_password()) == ("alice", "pw")
    assert should_remember(form) is True


def test_consent_form_accepts_bracketed_lists(reader):
    form = reader.parse(
        PAGE_CONSENT,
        FormData([
            ("challenge", "c-1"),
            ("scopes[]", "openid"),
            ("scopes[]", "profile"),
            ("requestedAudience[]", "api1"),
            ("requestedAudience[]", ""),
            ("isAllowed", "true"),
        ]),
    )

    consent = require_consent(form)
    assert consent.get_scopes() == ["openid", "profile"]
    assert consent.get_requested_audience() == ["api1"]
    assert consent.get_is_allowed() is True
    assert should_remember(form) is False


def test_consent_form_accepts_plain_lists(reader):
    form = reader.parse(
        PAGE_CONSENT,
        FormData([("challenge", "c-1"), ("scopes", "openid"), ("isAllowed", "false")]),
    )

    assert form.get_scopes() == ["openid"]
    assert form.get_is_allowed() is False


def test_logout_form(reader):
    form = reader.parse(PAGE_LOGOUT, FormData([("challenge", "lo-1"), ("shouldLogout", "true")]))

    assert isinstance(form, LogoutForm)
    assert require_logout(form).get_should_logout() is True
    assert should_remember(form) is False


def test_missing_challenge_is_malformed(reader):
    with pytest.raises(MalformedForm):
        reader.parse(PAGE_LOGOUT, FormData([("shouldLogout", "true")]))


def test_non_boolean_flag_is_malformed(reader):
    with pytest.raises(MalformedForm):
        reader.parse(PAGE_CONSENT, FormData([("challenge", "c-1"), ("isAllowed", "maybe")]))


def test_unknown_page_is_contract_violation(reader):
    with pytest.raises(TypeContractViolation):
        reader.parse("signup", FormData([("challenge", "x")]))


def test_model_without_capabilities_is_contract_violation(reader):
    class BareForm(BaseModel):
        challenge: str

    reader.register(PAGE_CONSENT, BareForm)
    form = reader.parse(PAGE_CONSENT, FormData([("challenge", "c-1")]))

    with pytest.raises(TypeContractViolation):
        require_challenge(form)
    with pytest.raises(TypeContractViolation):
        require_consent(form)


def test_forms_are_frozen():
    form = ConsentForm(challenge="c-1", isAllowed=True)

    with pytest.raises(ValidationError):
        form.challenge = "other"
