"""Single-use storage for pending ceremony challenges."""

import logging
import secrets
from typing import Optional, Tuple

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from webauthn.helpers import bytes_to_base64url

from passkey_starter.config import Settings
from passkey_starter.core.results import ErrorKind, Failure, Ok, Result
from passkey_starter.database import utcnow
from passkey_starter.models.webauthn_challenge import ChallengePurpose, WebAuthnChallenge

logger = logging.getLogger(__name__)

CHALLENGE_BYTES = 32

CHALLENGE_INVALID_MESSAGE = "Challenge is invalid or has expired. Please start again."


class ChallengeStore:
    """Issues challenges and consumes them exactly once."""

    def __init__(self, db: AsyncSession, settings: Settings):
        self.db = db
        self.settings = settings

    async def issue(
        self,
        purpose: ChallengePurpose,
        account_id: Optional[str] = None,
        email_hint: Optional[str] = None,
        name_hint: Optional[str] = None,
    ) -> Tuple[bytes, WebAuthnChallenge]:
        """
        Create and persist a fresh challenge.

        Args:
            purpose: Ceremony the challenge belongs to
            account_id: Existing or staged account ID
            email_hint: Email for a staged account
            name_hint: Display name for a staged account

        Returns:
            Tuple of the raw challenge bytes and the stored row
        """
        raw = secrets.token_bytes(CHALLENGE_BYTES)
        row = WebAuthnChallenge.create_challenge(
            challenge=bytes_to_base64url(raw),
            purpose=purpose,
            rp_id=self.settings.rp_id,
            origin=self.settings.rp_origin,
            account_id=account_id,
            email_hint=email_hint,
            name_hint=name_hint,
            expires_in_seconds=self.settings.challenge_ttl_seconds,
        )
        self.db.add(row)
        await self.db.commit()
        return raw, row

    async def consume(self, challenge: str, purpose: ChallengePurpose) -> Result[WebAuthnChallenge]:
        """
        Consume the challenge embedded in a client response.

        The row is deleted and committed before any further checks, so the
        challenge is spent whether the rest of the ceremony succeeds or
        fails. When two requests race for the same row, only the one whose
        DELETE removes it may continue.

        Args:
            challenge: Base64url challenge taken from clientDataJSON
            purpose: Ceremony the caller is completing

        Returns:
            Ok(challenge row) or Failure(CHALLENGE_INVALID)
        """
        stmt = select(WebAuthnChallenge).where(WebAuthnChallenge.challenge == challenge)
        row = (await self.db.execute(stmt)).scalar_one_or_none()
        if row is None:
            return Failure(ErrorKind.CHALLENGE_INVALID, CHALLENGE_INVALID_MESSAGE)

        result = await self.db.execute(
            delete(WebAuthnChallenge).where(WebAuthnChallenge.id == row.id)
        )
        await self.db.commit()
        if result.rowcount != 1:
            logger.warning(f"Challenge {row.id} was consumed concurrently")
            return Failure(ErrorKind.CHALLENGE_INVALID, CHALLENGE_INVALID_MESSAGE)

        if row.is_expired():
            logger.info(f"Rejected expired {row.purpose} challenge {row.id}")
            return Failure(ErrorKind.CHALLENGE_INVALID, CHALLENGE_INVALID_MESSAGE)

        if row.purpose != purpose.value:
            logger.warning(
                f"Challenge {row.id} issued for {row.purpose} was presented for {purpose.value}"
            )
            return Failure(ErrorKind.CHALLENGE_INVALID, CHALLENGE_INVALID_MESSAGE)

        return Ok(row)

    async def evict_expired(self) -> int:
        """Delete expired challenges and return how many were removed."""
        result = await self.db.execute(
            delete(WebAuthnChallenge).where(WebAuthnChallenge.expires_at <= utcnow())
        )
        await self.db.commit()
        return result.rowcount or 0
