"""
FastAPI Consent Application Factory
===================================

Entry point for the login/consent/logout service an OAuth2/OIDC provider
redirects browsers to during its authorization handshake.

Architecture:
    Browser → Provider (public API) → This service → Provider (admin API)

Routers:
    - /login, /consent, /logout : Handshake steps (GET shows, POST submits)
    - /health                   : Health check endpoint

Environment Variables:
    - SESSION_JWT_SECRET: Secret for signing login session cookies (required)
    - HYDRA_ADMIN_URL: Provider admin API base URL (default: http://localhost:4445)
    - CONSENT_WHITELIST: Comma-separated client request URLs that skip consent, or '*'
    - OVERRIDE_REQUESTED_AUDIENCE: Grant the submitted audience (default: false)
    - REMEMBER_FOR_SECONDS: Remember-me duration (default: 3600)
    - USERS_FILE: JSON file seeding the built-in user store
    - LOG_LEVEL: Logging level (default: INFO)

Running the Service:
    Development:
        uvicorn --factory hydra_consent.main:create_app --reload --port 3000

    Production:
        uvicorn --factory hydra_consent.main:create_app --host 0.0.0.0 --port 3000 --workers 4
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Dict, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from . import __version__
from .config import Settings, get_settings, validate_configuration
from .consent.hooks import AuthEvents
from .consent.orchestrator import ChallengeOrchestrator
from .consent.pages import HTMLResponder, Responder
from .consent.routes import consent_router
from .exceptions import ConsentFlowError, MissingChallenge
from .hydra.client import AdminClient
from .identity.bridge import IdentityBridge, InMemoryUserStore, UserStore
from .identity.session import SessionManager

logger = logging.getLogger("hydra_consent.main")


# Configure structured JSON logging
def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def _build_user_store(settings: Settings) -> UserStore:
    if settings.USERS_FILE:
        return InMemoryUserStore.from_file(settings.USERS_FILE)
    logger.warning("USERS_FILE not set, starting with an empty user store")
    return InMemoryUserStore()


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup logs the effective configuration and any risky settings;
    shutdown closes the admin API client.
    """
    settings: Settings = app.state.settings

    report = validate_configuration(settings)
    for warning in report["warnings"]:
        logger.warning(warning)

    logger.info(
        "Starting consent service",
        extra={
            "hydra_admin_url": settings.hydra_admin_url_str,
            "consent_whitelist": report["consent_whitelist"],
            "remember_for_seconds": report["remember_for_seconds"],
            "log_level": settings.LOG_LEVEL,
        },
    )

    yield

    logger.info("Shutting down consent service")
    await app.state.admin_client.aclose()
    logger.info("Consent service shutdown complete")


# Create FastAPI application
def create_app(
    settings: Optional[Settings] = None,
    admin_client: Optional[AdminClient] = None,
    user_store: Optional[UserStore] = None,
    responder: Optional[Responder] = None,
    events: Optional[AuthEvents] = None,
) -> FastAPI:
    """
    Application factory function.

    Every collaborator can be injected; anything not given is built from
    settings.

    Args:
        settings: Application settings (default: loaded from environment)
        admin_client: Provider admin API client
        user_store: Where users are loaded from
        responder: Page renderer (default: built-in HTML pages)
        events: Authentication hooks registered by the host

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)

    admin_client = admin_client or AdminClient(
        settings.hydra_admin_url_str,
        timeout=settings.HYDRA_ADMIN_TIMEOUT_SECONDS,
    )
    responder = responder or HTMLResponder()
    identity = IdentityBridge(
        user_store if user_store is not None else _build_user_store(settings),
        SessionManager(settings),
    )
    orchestrator = ChallengeOrchestrator(
        admin=admin_client,
        policy=settings.policy_config,
        identity=identity,
        responder=responder,
        events=events,
        login_ok_path=settings.LOGIN_OK_PATH,
        logout_rejected_path=settings.LOGOUT_REJECTED_PATH,
    )

    app = FastAPI(
        title="Hydra Consent Service",
        description="Login, consent and logout pages for an OAuth2/OIDC provider",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.admin_client = admin_client
    app.state.responder = responder
    app.state.orchestrator = orchestrator

    # Handshake routes: /login, /consent, /logout
    app.include_router(consent_router, tags=["Consent"])

    # Health check endpoint
    @app.get("/health", tags=["System"])
    async def health_check() -> Dict[str, str]:
        return {
            "status": "ok",
            "service": "hydra-consent",
            "version": __version__,
        }

    @app.exception_handler(MissingChallenge)
    async def missing_challenge_handler(request: Request, exc: MissingChallenge) -> Response:
        """A show step without its challenge is not ours: empty 204, no page."""
        logger.debug(f"{exc}", extra={"path": request.url.path})
        return Response(status_code=exc.status_code)

    @app.exception_handler(ConsentFlowError)
    async def consent_flow_exception_handler(request: Request, exc: ConsentFlowError) -> Response:
        """
        Render the failure page for errors raised by a handshake step.

        Provider failures and contract violations are logged as errors,
        user-side problems as warnings.
        """
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            f"{type(exc).__name__}: {exc}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": exc.status_code,
            },
        )
        return app.state.responder.error(request, exc)

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__,
            },
            exc_info=True,
        )

        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
                "detail": str(exc) if settings.LOG_LEVEL == "DEBUG" else None,
            },
        )

    return app


if __name__ == "__main__":
    settings = get_settings()

    uvicorn.run(
        "hydra_consent.main:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
