"""
Challenge Orchestrator
======================

One handler per handshake phase step: login show/submit, consent
show/submit, logout show/submit.

Each handler takes the challenge from the query string (show) or the
submitted form (submit), consults the consent policy, resolves the challenge
with at most one accept/reject call to the provider's admin API, and returns
the redirect that sends the browser to the next hop. The provider, not this
service, tracks handshake progress; handlers keep no state between requests.

Per-request state (challenge, view data, authenticated user, cookies to set
on the final response) travels in an explicit FlowContext.

Submit order is fixed: verify preconditions, make exactly one accept or
reject call, redirect. Irreversible local effects (session teardown on
logout) happen only after the challenge has been re-validated.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from fastapi import status
from pydantic import BaseModel
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from ..config import PolicyConfig
from ..exceptions import ChallengeAlreadyResolved, ConsentFlowError, MissingChallenge, UserNotFound
from ..hydra.client import AdminClient
from ..identity.bridge import IdentityBridge, User
from ..models import AcceptLoginBody, ChallengeRecord, CompletedRequest, RejectBody
from .forms import (
    PAGE_CONSENT,
    PAGE_LOGIN,
    PAGE_LOGOUT,
    REDIRECT_PARAM,
    FormBodyReader,
    require_challenge,
    require_consent,
    require_credentials,
    require_logout,
    should_remember,
)
from .hooks import AuthEvents, Event, HookResult, short_circuit
from .pages import DATA_ERR, Responder
from .policy import build_grant, resolve_audience, should_skip_consent

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid Credentials"
CONSENT_DENIED_ERROR = "access_denied"
CONSENT_DENIED_DESCRIPTION = "The resource owner denied the request"
LOGOUT_REJECTED_NOTICE = "You are being redirected away"
LOGOUT_ACCEPTED_NOTICE = "You have been logged out"


# =============================================================================
# Request Context
# =============================================================================

@dataclass
class FlowContext:
    """
    State of one handshake request, passed explicitly through the handler
    and the hooks it fires.

    Attributes:
        request: The incoming request
        page: Phase page name (login, consent, logout)
        challenge: Challenge being handled
        data: View data handed to the responder
        form: Decoded form for submit steps
        user: Authenticated user, once known
        redirect_override: Local path from the "redir" parameter, if any
    """

    request: Request
    page: str
    challenge: str
    data: Dict[str, Any] = field(default_factory=dict)
    form: Optional[BaseModel] = None
    user: Optional[User] = None
    redirect_override: Optional[str] = None
    _response_ops: List[Callable[[Response], None]] = field(default_factory=list)
    _resolved: bool = False

    def merge(self, **values: Any) -> Dict[str, Any]:
        self.data.update(values)
        return self.data

    def on_response(self, op: Callable[[Response], None]) -> None:
        """Queue a cookie operation for the response this request returns."""
        self._response_ops.append(op)

    def mark_resolved(self) -> None:
        if self._resolved:
            raise ChallengeAlreadyResolved(
                f"{self.page} challenge was already accepted or rejected in this request"
            )
        self._resolved = True

    @property
    def resolved(self) -> bool:
        return self._resolved

    def finish(self, response: Response) -> Response:
        for op in self._response_ops:
            op(response)
        self._response_ops.clear()
        return response


def _is_local_path(value: str) -> bool:
    return value.startswith("/") and not value.startswith("//") and "\\" not in value


# =============================================================================
# Orchestrator
# =============================================================================

class ChallengeOrchestrator:
    """
    Handlers for the login, consent and logout steps.

    Args:
        admin: Provider admin API client
        policy: Immutable consent policy
        identity: User store and session bridge
        responder: Renders the phase pages and error pages
        events: Authentication hooks; the login-accepting hook is appended
        body_reader: Decodes submitted forms per phase
        login_ok_path: Redirect after login when no hook redirected
        logout_rejected_path: Redirect after a rejected logout when the
            provider returns no location
    """

    def __init__(
        self,
        admin: AdminClient,
        policy: PolicyConfig,
        identity: IdentityBridge,
        responder: Responder,
        events: Optional[AuthEvents] = None,
        body_reader: Optional[FormBodyReader] = None,
        login_ok_path: str = "/",
        logout_rejected_path: str = "/",
    ):
        self.admin = admin
        self.policy = policy
        self.identity = identity
        self.responder = responder
        self.events = events or AuthEvents()
        self.body_reader = body_reader or FormBodyReader()
        self.login_ok_path = login_ok_path
        self.logout_rejected_path = logout_rejected_path

        self.events.after(Event.AUTH, self.accept_login_after_auth)

    # =========================================================================
    # Login
    # =========================================================================

    async def login_show(self, request: Request, challenge: Optional[str]) -> Response:
        """
        Show the login form, or accept right away when the provider already
        knows the subject.

        Raises MissingChallenge when there is no login challenge.
        """
        if not challenge:
            raise MissingChallenge(f"no {PAGE_LOGIN} challenge in request")

        ctx = FlowContext(request, PAGE_LOGIN, challenge)
        record = await self.admin.get_login_request(challenge)

        if record.skip:
            completed = await self._resolve(
                ctx, self.admin.accept_login_request, AcceptLoginBody(subject=record.subject)
            )
            logger.info(
                "Login skipped by provider",
                extra={"subject": record.subject, "client_id": record.client.client_id},
            )
            return ctx.finish(self._redirect(ctx, completed.redirect_to))

        ctx.merge(
            challenge=challenge,
            request_url=record.request_url,
            requested_audience=list(record.requested_access_token_audience),
            requested_scope=list(record.requested_scope),
            session_id=record.session_id,
            subject=record.subject,
            client=record.client.model_dump(),
        )
        return ctx.finish(
            self.responder.respond(request, status.HTTP_200_OK, PAGE_LOGIN, ctx.data)
        )

    async def login_submit(self, request: Request) -> Response:
        """Verify credentials and run the authentication hooks."""
        form = await self.body_reader.read(PAGE_LOGIN, request)
        challenge = require_challenge(form).get_challenge()
        creds = require_credentials(form)

        ctx = FlowContext(request, PAGE_LOGIN, challenge, form=form)
        ctx.redirect_override = await self._redirect_override(request)
        ctx.merge(challenge=challenge)

        pid = creds.get_pid()
        try:
            user = self.identity.load_user_by_pid(pid)
        except UserNotFound:
            logger.info(f"failed to load user requested by pid: {pid}")
            user = None

        ctx.user = user

        if user is None or not self.identity.verify_password(user, creds.get_password()):
            result = await self.events.fire_after(Event.AUTH_FAIL, ctx)
            if result.handled:
                return self._handled(ctx, result)

            logger.info(f"user {pid} failed to log in")
            return ctx.finish(self._invalid_credentials(ctx))

        result = await self.events.fire_before(Event.AUTH, ctx)
        if result.handled:
            return self._handled(ctx, result)

        logger.info(f"user {pid} logged in")
        ctx.on_response(lambda response: self.identity.sessions.put_session(response, pid))

        result = await self.events.fire_after(Event.AUTH, ctx)
        if result.handled:
            return self._handled(ctx, result)

        return ctx.finish(self._redirect(ctx, self.login_ok_path, follow_redir_param=True))

    async def accept_login_after_auth(self, ctx: FlowContext) -> HookResult:
        """
        After-auth hook: accept the login challenge for the authenticated
        user and redirect to the provider.
        """
        if ctx.user is None:
            return HookResult.CONTINUE

        body = AcceptLoginBody(
            subject=ctx.user.get_pid(),
            remember=should_remember(ctx.form),
            remember_for=self.policy.remember_for,
        )
        completed = await self._resolve(ctx, self.admin.accept_login_request, body)
        return short_circuit(self._redirect(ctx, completed.redirect_to))

    # =========================================================================
    # Consent
    # =========================================================================

    async def consent_show(self, request: Request, challenge: Optional[str]) -> Response:
        """
        Show the consent form, or grant the requested scope and audience
        without asking when the policy allows it.

        Raises MissingChallenge when there is no consent challenge.
        """
        if not challenge:
            raise MissingChallenge(f"no {PAGE_CONSENT} challenge in request")

        ctx = FlowContext(request, PAGE_CONSENT, challenge)
        record = await self.admin.get_consent_request(challenge)

        if should_skip_consent(record, self.policy.consent_whitelist):
            grant = build_grant(
                record,
                record.requested_scope,
                record.requested_access_token_audience,
                self._session_payload(ctx, record),
            )
            completed = await self._resolve(ctx, self.admin.accept_consent_request, grant)
            logger.info(
                "Consent granted without prompt",
                extra={
                    "provider_skip": record.skip,
                    "client_id": record.client.client_id,
                    "request_url": record.request_url,
                },
            )
            return ctx.finish(self._redirect(ctx, completed.redirect_to))

        ctx.merge(
            challenge=challenge,
            context=dict(record.context),
            login_session_id=record.login_session_id,
            request_url=record.request_url,
            requested_audience=list(record.requested_access_token_audience),
            requested_scope=list(record.requested_scope),
            subject=record.subject,
            client=record.client.model_dump(),
        )
        return ctx.finish(
            self.responder.respond(request, status.HTTP_200_OK, PAGE_CONSENT, ctx.data)
        )

    async def consent_submit(self, request: Request) -> Response:
        """Grant or deny consent as submitted by the resource owner."""
        form = await self.body_reader.read(PAGE_CONSENT, request)
        challenge = require_challenge(form).get_challenge()
        consent = require_consent(form)

        ctx = FlowContext(request, PAGE_CONSENT, challenge, form=form)

        if not consent.get_is_allowed():
            completed = await self._resolve(
                ctx,
                self.admin.reject_consent_request,
                RejectBody(error=CONSENT_DENIED_ERROR, error_description=CONSENT_DENIED_DESCRIPTION),
            )
            logger.info("Consent denied by resource owner")
            return ctx.finish(self._redirect(ctx, completed.redirect_to))

        # The form may be stale or forged; the provider's record is authoritative
        record = await self.admin.get_consent_request(challenge)
        audience = resolve_audience(
            record,
            consent.get_requested_audience(),
            self.policy.override_requested_audience,
        )
        grant = build_grant(
            record,
            self._requested_only(record, consent.get_scopes()),
            audience,
            self._session_payload(ctx, record),
            remember=should_remember(form),
            remember_for=self.policy.remember_for,
        )
        completed = await self._resolve(ctx, self.admin.accept_consent_request, grant)
        logger.info(
            "Consent granted",
            extra={
                "subject": record.subject,
                "client_id": record.client.client_id,
                "scopes": grant.grant_scope,
            },
        )
        return ctx.finish(self._redirect(ctx, completed.redirect_to))

    # =========================================================================
    # Logout
    # =========================================================================

    async def logout_show(self, request: Request, challenge: Optional[str]) -> Response:
        """
        Show the logout confirmation. Nothing is resolved here.

        Raises MissingChallenge when there is no logout challenge.
        """
        if not challenge:
            raise MissingChallenge(f"no {PAGE_LOGOUT} challenge in request")

        ctx = FlowContext(request, PAGE_LOGOUT, challenge)
        record = await self.admin.get_logout_request(challenge)

        ctx.merge(
            challenge=challenge,
            request_url=record.request_url,
            session_id=record.sid,
            subject=record.subject,
        )
        return ctx.finish(
            self.responder.respond(request, status.HTTP_200_OK, PAGE_LOGOUT, ctx.data)
        )

    async def logout_submit(self, request: Request) -> Response:
        """Confirm or cancel the logout."""
        form = await self.body_reader.read(PAGE_LOGOUT, request)
        challenge = require_challenge(form).get_challenge()
        logout = require_logout(form)

        ctx = FlowContext(request, PAGE_LOGOUT, challenge, form=form)

        if not logout.get_should_logout():
            completed = await self._resolve(ctx, self.admin.reject_logout_request)
            location = completed.redirect_to or self.logout_rejected_path
            return ctx.finish(self._redirect(ctx, location, success=LOGOUT_REJECTED_NOTICE))

        # Replayed or stale submissions fail here, before any local teardown
        await self.admin.get_logout_request(challenge)

        user = self.identity.current_user(request)
        ctx.on_response(self.identity.sessions.clear_all)

        try:
            completed = await self._resolve(ctx, self.admin.accept_logout_request)
        except ConsentFlowError as e:
            logger.error(
                f"Logout accept failed after local session teardown: {e}",
                extra={"status_code": e.status_code},
            )
            return ctx.finish(self.responder.error(request, e))

        if user is not None:
            logger.info(f"user {user.get_pid()} logged out")
        else:
            logger.info("user (unknown) logged out")

        return ctx.finish(self._redirect(ctx, completed.redirect_to, success=LOGOUT_ACCEPTED_NOTICE))

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _resolve(
        self,
        ctx: FlowContext,
        call: Callable[..., Awaitable[CompletedRequest]],
        *args: Any,
    ) -> CompletedRequest:
        """Make the single accept/reject call allowed for this request."""
        ctx.mark_resolved()
        return await call(ctx.challenge, *args)

    def _redirect(
        self,
        ctx: FlowContext,
        location: Optional[str],
        follow_redir_param: bool = False,
        success: Optional[str] = None,
    ) -> Response:
        """
        Build a 302 redirect.

        With follow_redir_param, a local path from the "redir" parameter
        replaces `location`.
        """
        if follow_redir_param and ctx.redirect_override:
            location = ctx.redirect_override

        response = RedirectResponse(location or "/", status_code=status.HTTP_302_FOUND)
        if success:
            self.identity.sessions.put_flash(response, success)
        return response

    async def _redirect_override(self, request: Request) -> Optional[str]:
        value = request.query_params.get(REDIRECT_PARAM)
        if not value:
            form = await request.form()
            value = form.get(REDIRECT_PARAM)
        if not value or not isinstance(value, str):
            return None
        if not _is_local_path(value):
            logger.warning("Ignoring non-local redirect parameter", extra={"redir": value})
            return None
        return value

    @staticmethod
    def _requested_only(record: ChallengeRecord, submitted: List[str]) -> List[str]:
        """Drop submitted scopes the client never requested, keeping order."""
        requested = set(record.requested_scope)
        granted = [scope for scope in submitted if scope in requested]
        if len(granted) != len(submitted):
            logger.warning(
                "Dropping scopes that were not requested",
                extra={
                    "client_id": record.client.client_id,
                    "dropped": [scope for scope in submitted if scope not in requested],
                },
            )
        return granted

    def _session_payload(self, ctx: FlowContext, record: ChallengeRecord) -> Dict[str, Any]:
        """
        Session payload of the consenting user.

        The user stored under the provider's subject is used when the record
        names one; the logged-in user only stands in for a record without a
        subject. The provider may remember a login this browser's session
        cookie no longer holds, or one made by another user.
        """
        user = self.identity.current_user(ctx.request)
        if record.subject and (user is None or user.get_pid() != record.subject):
            if user is not None:
                logger.warning(
                    "Session user differs from consent subject",
                    extra={"session_pid": user.get_pid(), "subject": record.subject},
                )
            try:
                user = self.identity.load_user_by_pid(record.subject)
            except UserNotFound:
                user = None
        ctx.user = user
        return self.identity.session_payload(user)

    def _invalid_credentials(self, ctx: FlowContext) -> Response:
        ctx.merge(**{DATA_ERR: INVALID_CREDENTIALS})
        return self.responder.respond(ctx.request, status.HTTP_200_OK, PAGE_LOGIN, ctx.data)

    @staticmethod
    def _handled(ctx: FlowContext, result: HookResult) -> Response:
        response = result.response
        if response is None:
            response = Response(status_code=status.HTTP_204_NO_CONTENT)
        return ctx.finish(response)
