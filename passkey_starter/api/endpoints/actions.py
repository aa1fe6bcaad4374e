"""HTTP bindings for the server actions."""

from typing import Any

from fastapi import APIRouter, Body, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from passkey_starter.actions import user_actions
from passkey_starter.config import Settings, get_app_settings
from passkey_starter.database import get_db
from passkey_starter.schemas.actions import ActionResult
from passkey_starter.security.transport import (
    clear_session_cookie,
    extract_session_token,
    get_client_ip,
)

# Actions always answer 200; ``success`` in the body carries the outcome.
router = APIRouter()


@router.post("/update-profile", response_model=ActionResult, response_model_exclude_none=True)
async def update_profile(
    request: Request,
    payload: Any = Body(None),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> Any:
    """Update the signed-in account's display name."""
    return await user_actions.update_profile(
        db,
        settings,
        extract_session_token(request, settings.session_cookie_name),
        payload,
        ip_address=get_client_ip(request),
    )


@router.post("/delete-account", response_model=ActionResult, response_model_exclude_none=True)
async def delete_account(
    request: Request,
    response: Response,
    payload: Any = Body(None),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> Any:
    """Delete the signed-in account; clears the session cookie on success."""
    result = await user_actions.delete_account(
        db,
        settings,
        extract_session_token(request, settings.session_cookie_name),
        payload,
        ip_address=get_client_ip(request),
    )
    if result.success:
        clear_session_cookie(response, settings)
    return result


@router.get("/user-stats", response_model=ActionResult, response_model_exclude_none=True)
async def user_stats(
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> Any:
    """Account age and last sign-in of the signed-in account."""
    return await user_actions.get_user_stats(
        db,
        settings,
        extract_session_token(request, settings.session_cookie_name),
    )
