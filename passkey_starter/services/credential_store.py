"""Persistence for passkey credentials bound to accounts."""

import logging
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from passkey_starter.database import utcnow
from passkey_starter.models.webauthn_credential import WebAuthnCredential

logger = logging.getLogger(__name__)


class CredentialStore:
    """Looks up, records and retires public-key credentials."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, record_id: str) -> Optional[WebAuthnCredential]:
        """Get credential by its record ID."""
        return await self.db.get(WebAuthnCredential, record_id)

    async def get_by_credential_id(self, credential_id: bytes) -> Optional[WebAuthnCredential]:
        """
        Get credential by its WebAuthn credential ID.

        Args:
            credential_id: Raw credential ID bytes

        Returns:
            WebAuthnCredential: Credential object or None
        """
        # The counter must be read fresh even if the row is already in the session.
        stmt = (
            select(WebAuthnCredential)
            .where(WebAuthnCredential.credential_id == credential_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_account(self, account_id: str) -> List[WebAuthnCredential]:
        """Get all credentials owned by an account, oldest first."""
        stmt = (
            select(WebAuthnCredential)
            .where(WebAuthnCredential.account_id == account_id)
            .order_by(WebAuthnCredential.created_at)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    def add(
        self,
        account_id: str,
        credential_id: bytes,
        public_key: bytes,
        sign_count: int,
        aaguid: Optional[str] = None,
        transports: Optional[List[str]] = None,
        device_type: Optional[str] = None,
        backed_up: bool = False,
    ) -> WebAuthnCredential:
        """
        Stage a new credential in the current transaction.

        The caller commits, so the credential lands together with any
        account row created in the same ceremony.
        """
        credential = WebAuthnCredential(
            account_id=account_id,
            credential_id=credential_id,
            public_key=public_key,
            sign_count=sign_count,
            aaguid=aaguid,
            device_type=device_type,
            backed_up=backed_up,
        )
        credential.transports_list = transports or []
        self.db.add(credential)
        return credential

    async def advance_counter(self, credential: WebAuthnCredential, new_sign_count: int) -> bool:
        """
        Compare-and-set the signature counter.

        The update only applies while the stored counter still holds the
        value read at the start of the ceremony. Returns False when another
        request moved it first.
        """
        expected = credential.sign_count
        result = await self.db.execute(
            update(WebAuthnCredential)
            .where(
                WebAuthnCredential.id == credential.id,
                WebAuthnCredential.sign_count == expected,
            )
            .values(sign_count=new_sign_count, last_used_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                f"Counter for credential {credential.id} changed concurrently "
                f"(expected {expected})"
            )
            return False
        return True

    async def revoke(self, account_id: str, record_id: str) -> bool:
        """Delete one of an account's credentials; False if it does not own it."""
        result = await self.db.execute(
            delete(WebAuthnCredential).where(
                WebAuthnCredential.id == record_id,
                WebAuthnCredential.account_id == account_id,
            )
        )
        return result.rowcount == 1
