"""
Consent Routes - Login, Consent and Logout Pages
================================================

HTTP surface of the challenge orchestrator. The provider redirects the
browser here with a challenge in the query string; the rendered pages post
their forms back to the same paths.

Endpoints:
----------
- GET  /login?login_challenge=...     : Login form, or skip when remembered
- POST /login                         : Credential submission
- GET  /consent?consent_challenge=... : Consent form, or skip per policy
- POST /consent                       : Consent decision
- GET  /logout?logout_challenge=...   : Logout confirmation
- POST /logout                        : Logout decision

A GET without its challenge raises MissingChallenge, which the application
answers with an empty 204 No Content.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import Response

from .orchestrator import ChallengeOrchestrator

logger = logging.getLogger(__name__)

consent_router = APIRouter()


# ============================================================================
# Dependencies
# ============================================================================

def get_orchestrator(request: Request) -> ChallengeOrchestrator:
    """
    Get the orchestrator built by the application factory.

    Raises:
        HTTPException: If the application was not wired with one
    """
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        logger.error("Challenge orchestrator not configured on application state")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Consent service not initialized",
        )
    return orchestrator


# ============================================================================
# Login
# ============================================================================

@consent_router.get("/login")
async def login_page(
    request: Request,
    login_challenge: Optional[str] = Query(None, description="Login challenge issued by the provider"),
    orchestrator: ChallengeOrchestrator = Depends(get_orchestrator),
) -> Response:
    return await orchestrator.login_show(request, login_challenge)


@consent_router.post("/login")
async def login_submit(
    request: Request,
    orchestrator: ChallengeOrchestrator = Depends(get_orchestrator),
) -> Response:
    return await orchestrator.login_submit(request)


# ============================================================================
# Consent
# ============================================================================

@consent_router.get("/consent")
async def consent_page(
    request: Request,
    consent_challenge: Optional[str] = Query(None, description="Consent challenge issued by the provider"),
    orchestrator: ChallengeOrchestrator = Depends(get_orchestrator),
) -> Response:
    return await orchestrator.consent_show(request, consent_challenge)


@consent_router.post("/consent")
async def consent_submit(
    request: Request,
    orchestrator: ChallengeOrchestrator = Depends(get_orchestrator),
) -> Response:
    return await orchestrator.consent_submit(request)


# ============================================================================
# Logout
# ============================================================================

@consent_router.get("/logout")
async def logout_page(
    request: Request,
    logout_challenge: Optional[str] = Query(None, description="Logout challenge issued by the provider"),
    orchestrator: ChallengeOrchestrator = Depends(get_orchestrator),
) -> Response:
    return await orchestrator.logout_show(request, logout_challenge)


@consent_router.post("/logout")
async def logout_submit(
    request: Request,
    orchestrator: ChallengeOrchestrator = Depends(get_orchestrator),
) -> Response:
    return await orchestrator.logout_submit(request)
