"""Minimal HTML pages: home, dashboard, sign-in and auth error."""

from html import escape
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse, RedirectResponse

from passkey_starter.core.routes import safe_callback_path
from passkey_starter.security.guards import get_optional_session, require_page_session
from passkey_starter.services.session_service import ResolvedSession

router = APIRouter()

ERROR_MESSAGES = {
    "Configuration": "There is a problem with the server configuration.",
    "AccessDenied": "You do not have permission to sign in.",
    "Verification": "The verification token has expired or has already been used.",
    "Default": "An error occurred during authentication.",
}


def _page(title: str, body: str) -> HTMLResponse:
    return HTMLResponse(
        f"<!DOCTYPE html><html><head><meta charset=\"utf-8\"><title>{escape(title)}</title>"
        f"</head><body>{body}</body></html>"
    )


def _display_name(session: ResolvedSession) -> str:
    return escape(session.name or session.email or "there")


@router.get("/", response_class=HTMLResponse)
async def home(session: Optional[ResolvedSession] = Depends(get_optional_session)) -> HTMLResponse:
    """Public landing page that adapts to the signed-in state."""
    if session is None:
        return _page(
            "Passkey Starter",
            "<h1>Passkey Starter</h1><p>Sign in without a password.</p>"
            "<a href=\"/auth/signin\">Sign in</a>",
        )
    return _page(
        "Passkey Starter",
        f"<h1>Welcome back, {_display_name(session)}</h1><a href=\"/dashboard\">Dashboard</a>",
    )


@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard(session: ResolvedSession = Depends(require_page_session)) -> HTMLResponse:
    """Protected page; the page checkpoint redirects to sign-in without a session."""
    return _page(
        "Dashboard",
        f"<h1>Dashboard</h1><p>Signed in as {_display_name(session)}</p>"
        f"<p>Account ID: {escape(session.account_id)}</p>",
    )


@router.get("/auth/signin")
async def sign_in(
    callbackUrl: Optional[str] = None,
    session: Optional[ResolvedSession] = Depends(get_optional_session),
):
    """Sign-in page; already signed-in visitors go straight on."""
    callback = safe_callback_path(callbackUrl) or "/dashboard"
    if session is not None:
        return RedirectResponse(callback, status_code=302)
    return _page(
        "Sign in",
        "<h1>Sign in with a passkey</h1>"
        f"<form data-callback=\"{escape(callback)}\">"
        "<input type=\"email\" name=\"email\" placeholder=\"Email (optional)\">"
        "<button type=\"submit\">Continue with passkey</button></form>",
    )


@router.get("/auth/error", response_class=HTMLResponse)
async def auth_error(error: Optional[str] = None) -> HTMLResponse:
    """Explains an authentication error by its code."""
    message = ERROR_MESSAGES.get(error or "Default", ERROR_MESSAGES["Default"])
    return _page(
        "Authentication error",
        f"<h1>Authentication error</h1><p>{escape(message)}</p>"
        "<a href=\"/auth/signin\">Try again</a>",
    )
