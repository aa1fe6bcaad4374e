"""Main FastAPI application for the passkey starter."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from passkey_starter import __version__
from passkey_starter.api.limiter import build_limiter
from passkey_starter.api.router import api_router
from passkey_starter.config import Settings
from passkey_starter.core.errors import ApiError, SignInRequired
from passkey_starter.core.middleware import EdgeAuthMiddleware, SecurityHeadersMiddleware
from passkey_starter.core.routes import RoutePolicy
from passkey_starter.database import Database
from passkey_starter.tasks.scheduler import HousekeepingScheduler

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown events for the FastAPI application.
    """
    settings: Settings = app.state.settings
    database: Database = app.state.db
    scheduler: Optional[HousekeepingScheduler] = None

    # Startup
    logger.info("Starting passkey starter...")

    try:
        await database.create_all()
        logger.info("Database initialized successfully")

        if settings.enable_background_tasks:
            scheduler = HousekeepingScheduler(database, settings)
            scheduler.start()
        app.state.scheduler = scheduler

        yield

    except Exception as e:
        logger.error(f"Failed to initialize application: {e}")
        raise

    finally:
        # Shutdown
        logger.info("Shutting down passkey starter...")
        if scheduler is not None:
            await scheduler.stop()
        await database.dispose()
        logger.info("Database connections closed")


def create_app(settings: Optional[Settings] = None, edge_guard: bool = True) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to use (read from the environment when omitted)
        edge_guard: Install the edge checkpoint middleware. Page, API and
            mutation checkpoints are always active.

    Returns:
        FastAPI: Configured application
    """
    settings = settings or Settings()
    configure_logging(settings)

    app = FastAPI(
        title="Passkey Starter",
        description="Passwordless sign-in with WebAuthn passkeys and layered authorization",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.db = Database(settings)
    policy = RoutePolicy.from_settings(settings)

    # Middleware added last runs first: CORS, then security headers, then the edge checkpoint
    if edge_guard:
        app.add_middleware(EdgeAuthMiddleware, settings=settings, policy=policy)
    app.add_middleware(SecurityHeadersMiddleware, settings=settings)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Authorization", "Content-Type"],
    )

    # Rate limiting
    app.state.limiter = build_limiter(settings)

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)

    @app.exception_handler(SignInRequired)
    async def sign_in_required_handler(request: Request, exc: SignInRequired) -> RedirectResponse:
        return RedirectResponse(policy.sign_in_url(exc.callback_path), status_code=302)

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled errors."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)

        if settings.debug:
            return JSONResponse(
                status_code=500,
                content={
                    "code": "internal_error",
                    "message": "Internal server error",
                    "error": str(exc),
                    "type": type(exc).__name__,
                }
            )

        return JSONResponse(
            status_code=500,
            content={"code": "internal_error", "message": "Internal server error"}
        )

    # Health check endpoint
    @app.get("/health", tags=["Health"])
    async def health_check() -> dict:
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": "passkey-starter",
            "version": __version__,
            "environment": settings.environment,
        }

    app.include_router(api_router)
    return app
