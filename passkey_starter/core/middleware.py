"""
Middleware for the passkey starter.

This module provides the edge authentication checkpoint and the
security headers applied to every response.
"""

import logging
import time
from typing import Callable, Optional

from fastapi import Request, Response, status
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from passkey_starter.config import Settings
from passkey_starter.core.routes import RoutePolicy
from passkey_starter.database import Database
from passkey_starter.security.transport import extract_session_token, set_session_cookie
from passkey_starter.services.session_service import SessionIssuer

logger = logging.getLogger(__name__)


class EdgeAuthMiddleware(BaseHTTPMiddleware):
    """
    Edge checkpoint.

    Runs before any routing for every request. Allow-listed paths pass
    through untouched; any other path needs a session that resolves, or
    the request is redirected to sign-in with the original path as
    ``callbackUrl``.
    """

    def __init__(self, app: ASGIApp, settings: Settings, policy: Optional[RoutePolicy] = None):
        super().__init__(app)
        self.settings = settings
        self.policy = policy or RoutePolicy.from_settings(settings)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if self.policy.is_public(path):
            return await call_next(request)

        token = extract_session_token(request, self.settings.session_cookie_name)
        database: Database = request.app.state.db
        async with database.session() as db:
            session = await SessionIssuer(db, self.settings).resolve(token)

        if session is None:
            callback = f"{path}?{request.url.query}" if request.url.query else path
            logger.debug(f"Edge checkpoint redirecting {request.method} {path} to sign-in")
            return RedirectResponse(
                self.policy.sign_in_url(callback), status_code=status.HTTP_302_FOUND
            )

        response = await call_next(request)
        if session.renewed and token:
            set_session_cookie(response, self.settings, token, session.expires_at)
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds security and timing headers to every response."""

    def __init__(self, app: ASGIApp, settings: Settings):
        super().__init__(app)
        self.settings = settings

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        if self.settings.debug:
            logger.debug(f"Processing request: {request.method} {request.url}")

        response = await call_next(request)

        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)
        self._add_security_headers(response)
        return response

    def _add_security_headers(self, response: Response) -> None:
        """
        Add security headers to the response.

        Args:
            response: FastAPI response object
        """
        security_headers = {
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "DENY",
            "Referrer-Policy": "strict-origin-when-cross-origin",
        }

        for header, value in security_headers.items():
            response.headers[header] = value

        # Add HSTS header for HTTPS
        if self.settings.rp_origin.startswith("https://"):
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
