"""Protected account endpoints: profile, settings and passkey management."""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Request
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from passkey_starter.config import Settings, get_app_settings
from passkey_starter.core.errors import ApiError, field_errors
from passkey_starter.core.results import ErrorKind, Failure
from passkey_starter.database import get_db
from passkey_starter.schemas.account import (
    AccountProfile,
    AccountSettings,
    AccountUpdate,
    ProfileResponse,
    SettingsResponse,
)
from passkey_starter.schemas.webauthn import CredentialList, CredentialResponse
from passkey_starter.security.guards import MutationGuard, require_api_session
from passkey_starter.security.transport import extract_session_token, get_client_ip
from passkey_starter.services.account_service import AccountService
from passkey_starter.services.credential_store import CredentialStore
from passkey_starter.services.session_service import ResolvedSession

logger = logging.getLogger(__name__)

router = APIRouter()


async def _authorized_account_id(
    request: Request,
    db: AsyncSession,
    settings: Settings,
    action: str,
    target_account_id: Optional[str] = None,
) -> str:
    """Run the mutation checkpoint; the target defaults to the caller's own account."""
    guard = MutationGuard(db, settings)
    authenticated = await guard.authenticate(
        extract_session_token(request, settings.session_cookie_name)
    )
    if isinstance(authenticated, Failure):
        raise ApiError.from_failure(authenticated)
    target = await guard.authorize(
        authenticated.value, target_account_id, action, get_client_ip(request)
    )
    if isinstance(target, Failure):
        raise ApiError.from_failure(target)
    return target.value


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(
    current: ResolvedSession = Depends(require_api_session),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Get the signed-in account's profile."""
    account = await AccountService(db).get_account(current.account_id)
    if account is None:
        raise ApiError(ErrorKind.NOT_FOUND, "User not found")
    return ProfileResponse(profile=AccountProfile.model_validate(account))


@router.get("/settings", response_model=SettingsResponse)
async def get_account_settings(
    current: ResolvedSession = Depends(require_api_session),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Get the signed-in account's editable settings."""
    account = await AccountService(db).get_account(current.account_id)
    if account is None:
        raise ApiError(ErrorKind.NOT_FOUND, "User not found")
    return SettingsResponse(settings=AccountSettings.model_validate(account))


@router.put("/settings", response_model=SettingsResponse)
async def update_settings(
    request: Request,
    payload: Any = Body(None),
    current: ResolvedSession = Depends(require_api_session),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> Any:
    """
    Update name and/or email.

    Returns 400 with per-field ``details`` for invalid input and 409 when
    the email belongs to another account.
    """
    account_id = await _authorized_account_id(request, db, settings, "update_settings")

    try:
        changes = AccountUpdate.model_validate(payload if payload is not None else {})
    except ValidationError as e:
        raise ApiError(ErrorKind.VALIDATION_ERROR, "Invalid input", field_errors(e))

    result = await AccountService(db).update_account(account_id, changes, get_client_ip(request))
    if isinstance(result, Failure):
        raise ApiError.from_failure(result)

    return SettingsResponse(
        settings=AccountSettings.model_validate(result.value),
        message="Settings updated successfully",
    )


@router.get("/credentials", response_model=CredentialList)
async def list_credentials(
    current: ResolvedSession = Depends(require_api_session),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """List the passkeys registered to the signed-in account."""
    credentials = await CredentialStore(db).list_for_account(current.account_id)
    return CredentialList(
        credentials=[CredentialResponse.model_validate(cred) for cred in credentials],
        total=len(credentials),
    )


@router.delete("/credentials/{credential_id}")
async def revoke_credential(
    credential_id: str,
    request: Request,
    current: ResolvedSession = Depends(require_api_session),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> dict:
    """
    Remove one of the signed-in account's passkeys.

    The last remaining passkey cannot be removed; delete the account
    instead.
    """
    store = CredentialStore(db)
    credential = await store.get(credential_id)
    if credential is None:
        raise ApiError(ErrorKind.NOT_FOUND, "Passkey not found")
    account_id = await _authorized_account_id(
        request, db, settings, "revoke_credential", credential.account_id
    )

    owned = await store.list_for_account(account_id)
    if len(owned) <= 1:
        raise ApiError(ErrorKind.CONFLICT, "Cannot remove your only passkey")
    await store.revoke(account_id, credential_id)
    await db.commit()

    logger.info(f"Account {account_id} removed passkey {credential_id}")
    return {"message": "Passkey removed"}
