"""Where session tokens and client details travel on a request."""

from datetime import datetime
from typing import Optional

from fastapi import Request, Response
from fastapi.security.utils import get_authorization_scheme_param

from passkey_starter.config import Settings


def extract_session_token(request: Request, cookie_name: str) -> Optional[str]:
    """
    Get the presented session token.

    The session cookie is preferred; a ``Bearer`` Authorization header is
    accepted for non-browser clients.
    """
    token = request.cookies.get(cookie_name)
    if token:
        return token
    scheme, credentials = get_authorization_scheme_param(request.headers.get("Authorization"))
    if scheme.lower() == "bearer" and credentials:
        return credentials
    return None


def set_session_cookie(
    response: Response,
    settings: Settings,
    token: str,
    expires_at: datetime,
) -> None:
    """Attach the session cookie to a response."""
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_max_age_seconds,
        expires=expires_at.strftime("%a, %d %b %Y %H:%M:%S GMT"),
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=settings.session_cookie_name,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


def get_client_ip(request: Request) -> str:
    """
    Get client IP address from request.

    Args:
        request: FastAPI request object

    Returns:
        Client IP address
    """
    # Check for forwarded IP headers
    forwarded_ip = request.headers.get("X-Forwarded-For")
    if forwarded_ip:
        # Take the first IP in case of multiple proxies
        return forwarded_ip.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    # Fallback to direct client IP
    return request.client.host if request.client else "unknown"
