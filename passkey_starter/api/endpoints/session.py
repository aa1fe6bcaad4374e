"""Session endpoints: sign-out and current session."""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from passkey_starter.config import Settings, get_app_settings
from passkey_starter.database import get_db
from passkey_starter.schemas.auth import SessionInfo, SessionResponse, SignOutResponse
from passkey_starter.security.guards import get_optional_session
from passkey_starter.security.transport import (
    clear_session_cookie,
    extract_session_token,
    get_client_ip,
    set_session_cookie,
)
from passkey_starter.services.session_service import ResolvedSession, SessionIssuer

router = APIRouter()


@router.post("/signout", response_model=SignOutResponse)
async def sign_out(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> Any:
    """
    Sign out.

    Revokes the presented session and clears the cookie. Signing out
    without a session is not an error.
    """
    token = extract_session_token(request, settings.session_cookie_name)
    await SessionIssuer(db, settings).revoke(token, ip_address=get_client_ip(request))
    clear_session_cookie(response, settings)
    return SignOutResponse()


@router.get("/session", response_model=SessionResponse)
async def get_session(
    request: Request,
    response: Response,
    current: Optional[ResolvedSession] = Depends(get_optional_session),
    settings: Settings = Depends(get_app_settings),
) -> Any:
    """Current session summary, or ``{"session": null}`` when signed out."""
    if current is None:
        return SessionResponse(session=None)

    if current.renewed:
        token = extract_session_token(request, settings.session_cookie_name)
        set_session_cookie(response, settings, token, current.expires_at)

    return SessionResponse(
        session=SessionInfo(
            account_id=current.account_id,
            name=current.name,
            email=current.email,
            expires_at=current.expires_at,
        )
    )
