"""
Account mutations exposed to the UI as server actions.

Every action runs the mutation checkpoint itself before reading input or
touching storage, in this order: authenticate, validate, authorize,
persist. Actions never raise; they return an ``ActionResult``.
"""

import logging
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from passkey_starter.config import Settings
from passkey_starter.core.errors import field_errors
from passkey_starter.core.results import ErrorKind, Failure
from passkey_starter.schemas.account import AccountUpdate
from passkey_starter.schemas.actions import ActionResult, DeleteAccountInput, UpdateProfileInput
from passkey_starter.security.guards import MutationGuard
from passkey_starter.services.account_service import AccountService

logger = logging.getLogger(__name__)


def _rejected(failure: Failure, message: Optional[str] = None) -> ActionResult:
    return ActionResult(success=False, error=message or failure.message, code=failure.kind.value)


def _invalid(exc: ValidationError) -> ActionResult:
    messages = list(field_errors(exc).values())
    return ActionResult(
        success=False,
        error=messages[0] if messages else "Invalid input",
        code=ErrorKind.VALIDATION_ERROR.value,
    )


async def update_profile(
    db: AsyncSession,
    settings: Settings,
    token: Optional[str],
    payload: Any,
    ip_address: Optional[str] = None,
) -> ActionResult:
    """
    Update the signed-in account's display name.

    Args:
        db: Database session
        settings: Application settings
        token: Presented session token
        payload: Raw input ``{"name": ..., "accountId": ...}``
        ip_address: Client IP for the audit log

    Returns:
        ActionResult with ``{"name", "email"}`` on success
    """
    guard = MutationGuard(db, settings)
    authenticated = await guard.authenticate(token)
    if isinstance(authenticated, Failure):
        return _rejected(authenticated, "You must be signed in to update your profile")

    try:
        data = UpdateProfileInput.model_validate(payload if payload is not None else {})
    except ValidationError as e:
        return _invalid(e)

    target = await guard.authorize(authenticated.value, data.account_id, "update_profile", ip_address)
    if isinstance(target, Failure):
        return _rejected(target)

    result = await AccountService(db).update_account(
        target.value, AccountUpdate(name=data.name), ip_address
    )
    if isinstance(result, Failure):
        if result.kind is ErrorKind.INTERNAL_ERROR:
            return _rejected(result, "Failed to update profile. Please try again.")
        return _rejected(result)

    account = result.value
    return ActionResult(success=True, data={"name": account.name or "", "email": account.email or ""})


async def delete_account(
    db: AsyncSession,
    settings: Settings,
    token: Optional[str],
    payload: Any = None,
    ip_address: Optional[str] = None,
) -> ActionResult:
    """Delete the signed-in account with its passkeys and sessions."""
    guard = MutationGuard(db, settings)
    authenticated = await guard.authenticate(token)
    if isinstance(authenticated, Failure):
        return _rejected(authenticated, "You must be signed in to delete your account")

    try:
        data = DeleteAccountInput.model_validate(payload if payload is not None else {})
    except ValidationError as e:
        return _invalid(e)

    target = await guard.authorize(authenticated.value, data.account_id, "delete_account", ip_address)
    if isinstance(target, Failure):
        return _rejected(target)

    result = await AccountService(db).delete_account(target.value, ip_address)
    if isinstance(result, Failure):
        if result.kind is ErrorKind.INTERNAL_ERROR:
            return _rejected(result, "Failed to delete account. Please try again.")
        return _rejected(result)

    return ActionResult(success=True, data={"deleted": True})


async def get_user_stats(
    db: AsyncSession,
    settings: Settings,
    token: Optional[str],
) -> ActionResult:
    """Read-only action; still checks the session first."""
    authenticated = await MutationGuard(db, settings).authenticate(token)
    if isinstance(authenticated, Failure):
        return _rejected(authenticated, "You must be signed in to view stats")

    result = await AccountService(db).get_account_stats(authenticated.value.account_id)
    if isinstance(result, Failure):
        if result.kind is ErrorKind.NOT_FOUND:
            return _rejected(result, "User not found")
        return _rejected(result, "Failed to fetch stats")

    stats = result.value
    last_sign_in = stats["lastSignIn"]
    return ActionResult(
        success=True,
        data={
            "accountAge": stats["accountAge"],
            "lastSignIn": last_sign_in.isoformat() if last_sign_in else None,
        },
    )
