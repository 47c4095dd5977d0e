"""
Consent Package

The login, consent and logout steps of the provider's handshake.

Modules:
- orchestrator: Challenge handlers and the per-request FlowContext
- policy: Consent skip, audience and grant decisions
- forms: Submitted form models and the body reader
- hooks: Before/after authentication hooks
- pages: Built-in HTML responder
- routes: HTTP endpoints (/login, /consent, /logout)
"""

from .hooks import AuthEvents, Event, HookResult, short_circuit
from .orchestrator import ChallengeOrchestrator, FlowContext
from .pages import HTMLResponder, Responder
from .routes import consent_router

__all__ = [
    "AuthEvents",
    "ChallengeOrchestrator",
    "Event",
    "FlowContext",
    "HTMLResponder",
    "HookResult",
    "Responder",
    "consent_router",
    "short_circuit",
]
