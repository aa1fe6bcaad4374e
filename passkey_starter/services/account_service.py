"""Account service for profile, settings and account lifecycle operations."""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from passkey_starter.core.results import ErrorKind, Failure, Ok, Result
from passkey_starter.database import utcnow
from passkey_starter.models.account import Account
from passkey_starter.models.security_log import SecurityEventType, SecurityLog
from passkey_starter.models.session import Session
from passkey_starter.models.webauthn_credential import WebAuthnCredential
from passkey_starter.schemas.account import AccountUpdate

logger = logging.getLogger(__name__)

EMAIL_IN_USE = "Email already in use"


class AccountService:
    """Service class for account-related operations."""

    def __init__(self, db: AsyncSession):
        """Initialize account service with database session."""
        self.db = db

    async def get_account(self, account_id: str) -> Optional[Account]:
        """
        Get account by ID.

        Args:
            account_id: Account's unique identifier

        Returns:
            Account: Account object or None if not found
        """
        return await self.db.get(Account, account_id)

    async def get_account_by_email(self, email: str) -> Optional[Account]:
        """
        Get account by email address.

        Args:
            email: Email address to search for

        Returns:
            Account: Account object or None if not found
        """
        stmt = select(Account).where(Account.email == email.lower())
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def update_account(
        self,
        account_id: str,
        changes: AccountUpdate,
        ip_address: Optional[str] = None,
    ) -> Result[Account]:
        """
        Update name and/or email of an account.

        Only fields present in ``changes`` are touched. A new email clears
        the verification timestamp.

        Args:
            account_id: Account's unique identifier
            changes: Validated update data
            ip_address: Client IP for the audit log

        Returns:
            Ok(updated Account), or Failure(NOT_FOUND | CONFLICT | INTERNAL_ERROR)
        """
        fields = changes.model_dump(exclude_unset=True)
        try:
            account = await self.get_account(account_id)
            if account is None:
                return Failure(ErrorKind.NOT_FOUND, "Account not found")

            email = fields.get("email")
            email_changed = email is not None and email != account.email
            if email_changed:
                existing = await self.get_account_by_email(email)
                if existing is not None and existing.id != account_id:
                    return Failure(ErrorKind.CONFLICT, EMAIL_IN_USE, {"email": EMAIL_IN_USE})

            if "name" in fields:
                account.name = fields["name"]
            if email_changed:
                account.email = email
                account.email_verified = None

            account.updated_at = utcnow()
            self.db.add(
                SecurityLog.create_log(
                    event_type=SecurityEventType.ACCOUNT_UPDATED,
                    description=f"Account updated: {', '.join(sorted(fields)) or 'no changes'}",
                    account_id=account_id,
                    ip_address=ip_address,
                )
            )
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.info(f"Email conflict while updating account {account_id}")
            return Failure(ErrorKind.CONFLICT, EMAIL_IN_USE, {"email": EMAIL_IN_USE})
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception(f"Failed to update account {account_id}")
            return Failure(ErrorKind.INTERNAL_ERROR, "Failed to update account")

        await self.db.refresh(account)
        return Ok(account)

    async def delete_account(
        self,
        account_id: str,
        ip_address: Optional[str] = None,
    ) -> Result[bool]:
        """
        Delete an account together with its credentials and sessions.

        Everything happens in one transaction; a failure leaves all rows
        in place.

        Args:
            account_id: Account's unique identifier
            ip_address: Client IP for the audit log

        Returns:
            Ok(True) or Failure(NOT_FOUND | INTERNAL_ERROR)
        """
        try:
            account = await self.get_account(account_id)
            if account is None:
                return Failure(ErrorKind.NOT_FOUND, "Account not found")

            credentials = await self.db.execute(
                delete(WebAuthnCredential).where(WebAuthnCredential.account_id == account_id)
            )
            sessions = await self.db.execute(
                delete(Session).where(Session.account_id == account_id)
            )
            await self.db.execute(delete(Account).where(Account.id == account_id))

            # The log row outlives the account, so it does not reference it.
            self.db.add(
                SecurityLog.create_log(
                    event_type=SecurityEventType.ACCOUNT_DELETED,
                    description="Account deleted by its owner",
                    ip_address=ip_address,
                    metadata={
                        "account_id": account_id,
                        "credentials": credentials.rowcount,
                        "sessions": sessions.rowcount,
                    },
                )
            )
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception(f"Failed to delete account {account_id}")
            return Failure(ErrorKind.INTERNAL_ERROR, "Failed to delete account")

        logger.info(f"Account {account_id} deleted")
        return Ok(True)

    async def get_account_stats(self, account_id: str) -> Result[Dict[str, Any]]:
        """
        Get usage statistics for an account.

        Returns:
            Ok({"accountAge": days, "lastSignIn": datetime | None})
        """
        try:
            account = await self.get_account(account_id)
        except SQLAlchemyError:
            logger.exception(f"Failed to load stats for account {account_id}")
            return Failure(ErrorKind.INTERNAL_ERROR, "Failed to get statistics")
        if account is None:
            return Failure(ErrorKind.NOT_FOUND, "Account not found")

        return Ok({
            "accountAge": account.account_age_days(),
            "lastSignIn": account.last_sign_in_at,
        })
