"""Session issuing, resolution and revocation."""

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from passkey_starter.config import Settings
from passkey_starter.database import utcnow
from passkey_starter.models.account import Account
from passkey_starter.models.security_log import SecurityEventType, SecurityLog
from passkey_starter.models.session import Session

logger = logging.getLogger(__name__)


def hash_token(token: str) -> str:
    """Session rows are keyed by the SHA-256 of the client's token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class IssuedSession:
    """A freshly minted session; ``token`` is only ever shown once."""

    token: str
    account_id: str
    expires_at: datetime


@dataclass(frozen=True)
class ResolvedSession:
    """A valid session as seen by an authorization checkpoint."""

    session_id: str
    account_id: str
    expires_at: datetime
    name: Optional[str] = None
    email: Optional[str] = None
    renewed: bool = False


class SessionIssuer:
    """
    Converts verified ceremonies into server-side sessions.

    ``resolve`` sits on the path of every protected request, so it treats
    missing, expired and unreadable sessions alike and returns None
    instead of raising.
    """

    def __init__(self, db: AsyncSession, settings: Settings):
        self.db = db
        self.settings = settings

    @property
    def max_age(self) -> timedelta:
        return timedelta(seconds=self.settings.session_max_age_seconds)

    async def issue(
        self,
        account_id: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> IssuedSession:
        """
        Create a session for an account.

        Args:
            account_id: Account the session is bound to
            ip_address: Client IP address
            user_agent: Client user agent

        Returns:
            IssuedSession: Opaque token and expiry for the cookie
        """
        token = secrets.token_urlsafe(32)
        now = utcnow()
        session = Session(
            id=hash_token(token),
            account_id=account_id,
            expires_at=now + self.max_age,
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=now,
            updated_at=now,
        )
        self.db.add(session)
        await self.db.commit()
        logger.info(f"Session issued for account {account_id}")
        return IssuedSession(token=token, account_id=account_id, expires_at=session.expires_at)

    async def resolve(self, token: Optional[str]) -> Optional[ResolvedSession]:
        """
        Look up a session token and validate its expiry.

        Sessions older than ``session_update_age_seconds`` since their
        last renewal get their expiry pushed forward (rolling sessions).

        Returns:
            ResolvedSession or None when there is no valid session
        """
        if not token:
            return None
        try:
            return await self._resolve(token)
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception("Session lookup failed; treating request as signed out")
            return None

    async def _resolve(self, token: str) -> Optional[ResolvedSession]:
        stmt = (
            select(Session, Account)
            .join(Account, Session.account_id == Account.id)
            .where(Session.id == hash_token(token))
        )
        row = (await self.db.execute(stmt)).first()
        if row is None:
            return None
        session, account = row

        now = utcnow()
        if session.is_expired(now):
            await self.db.delete(session)
            await self.db.commit()
            logger.debug(f"Expired session for account {session.account_id} removed")
            return None

        renewed = False
        update_age = timedelta(seconds=self.settings.session_update_age_seconds)
        if now - session.updated_at >= update_age:
            session.expires_at = now + self.max_age
            session.updated_at = now
            await self.db.commit()
            renewed = True

        return ResolvedSession(
            session_id=session.id,
            account_id=account.id,
            expires_at=session.expires_at,
            name=account.name,
            email=account.email,
            renewed=renewed,
        )

    async def revoke(self, token: Optional[str], ip_address: Optional[str] = None) -> bool:
        """
        Invalidate a session immediately.

        Returns:
            bool: True if a session was removed
        """
        if not token:
            return False
        session = await self.db.get(Session, hash_token(token))
        if session is None:
            return False
        account_id = session.account_id
        await self.db.delete(session)
        self.db.add(
            SecurityLog.create_log(
                event_type=SecurityEventType.LOGOUT,
                description="Signed out",
                account_id=account_id,
                ip_address=ip_address,
            )
        )
        await self.db.commit()
        logger.info(f"Session revoked for account {account_id}")
        return True

    async def evict_expired(self) -> int:
        """Delete expired sessions and return how many were removed."""
        result = await self.db.execute(delete(Session).where(Session.expires_at <= utcnow()))
        await self.db.commit()
        return result.rowcount or 0
