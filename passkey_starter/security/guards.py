"""
Page, API and mutation checkpoints.

Each checkpoint resolves the session itself through ``SessionIssuer`` and
makes its own decision. None of them trusts that an earlier layer (the
edge middleware included) has already run.
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from passkey_starter.config import Settings, get_app_settings
from passkey_starter.core.errors import ApiError, SignInRequired
from passkey_starter.core.results import ErrorKind, Failure, Ok, Result
from passkey_starter.database import get_db
from passkey_starter.models.security_log import RiskLevel, SecurityEventType, SecurityLog
from passkey_starter.security.transport import extract_session_token
from passkey_starter.services.session_service import ResolvedSession, SessionIssuer

logger = logging.getLogger(__name__)


def _request_path(request: Request) -> str:
    path = request.url.path
    if request.url.query:
        path = f"{path}?{request.url.query}"
    return path


async def get_optional_session(
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> Optional[ResolvedSession]:
    """Resolve the session for public pages that only adapt to it."""
    token = extract_session_token(request, settings.session_cookie_name)
    return await SessionIssuer(db, settings).resolve(token)


async def require_page_session(
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> ResolvedSession:
    """
    Page checkpoint.

    Raises:
        SignInRequired: No valid session; rendered as a redirect to sign-in
    """
    token = extract_session_token(request, settings.session_cookie_name)
    session = await SessionIssuer(db, settings).resolve(token)
    if session is None:
        logger.debug(f"Page checkpoint denied {request.url.path}")
        raise SignInRequired(_request_path(request))
    return session


async def require_api_session(
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> ResolvedSession:
    """
    API checkpoint.

    Raises:
        ApiError: 401 ``authentication_required`` when there is no valid session
    """
    token = extract_session_token(request, settings.session_cookie_name)
    session = await SessionIssuer(db, settings).resolve(token)
    if session is None:
        logger.debug(f"API checkpoint denied {request.method} {request.url.path}")
        raise ApiError(
            ErrorKind.AUTHENTICATION_REQUIRED,
            "Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session


class MutationGuard:
    """
    Checkpoint run inside every state-changing operation.

    ``authenticate`` answers who is acting; ``authorize`` answers whether
    that account may touch the target. Both must pass before any write.
    """

    def __init__(self, db: AsyncSession, settings: Settings):
        self.db = db
        self.sessions = SessionIssuer(db, settings)

    async def authenticate(self, token: Optional[str]) -> Result[ResolvedSession]:
        session = await self.sessions.resolve(token)
        if session is None:
            return Failure(ErrorKind.AUTHENTICATION_REQUIRED, "Authentication required")
        return Ok(session)

    async def authorize(
        self,
        session: ResolvedSession,
        target_account_id: Optional[str],
        action: str,
        ip_address: Optional[str] = None,
    ) -> Result[str]:
        """
        Check that the acting account owns the target.

        Args:
            session: Session returned by ``authenticate``
            target_account_id: Account the mutation addresses (None = the caller)
            action: Name of the mutation, for the audit log
            ip_address: Client IP for the audit log

        Returns:
            Ok(account ID to operate on) or Failure(AUTHORIZATION_DENIED)
        """
        if target_account_id is None or target_account_id == session.account_id:
            return Ok(session.account_id)

        logger.warning(
            f"Account {session.account_id} attempted {action} on account {target_account_id}"
        )
        self.db.add(
            SecurityLog.create_log(
                event_type=SecurityEventType.AUTHORIZATION_DENIED,
                description=f"Denied {action} on another account",
                account_id=session.account_id,
                ip_address=ip_address,
                metadata={"action": action, "target_account_id": target_account_id},
                risk_level=RiskLevel.HIGH,
            )
        )
        await self.db.commit()
        return Failure(ErrorKind.AUTHORIZATION_DENIED, "You can only modify your own account")
