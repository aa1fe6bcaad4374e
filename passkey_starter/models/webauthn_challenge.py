"""WebAuthn challenge model for pending registration and authentication ceremonies."""

import uuid
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from sqlalchemy import Column, DateTime, String

from passkey_starter.database import Base, utcnow


class ChallengePurpose(str, Enum):
    """Ceremony a challenge was issued for."""

    REGISTER = "register"
    AUTHENTICATE = "authenticate"


class WebAuthnChallenge(Base):
    """
    WebAuthn challenge model.

    Rows are single-use: verification deletes the row before checking the
    response, so a payload can never be replayed against the same challenge.
    Expired rows are rejected at verification time and evicted by the
    housekeeping task.
    """

    __tablename__ = "webauthn_challenges"

    # Primary key
    id = Column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        index=True,
        doc="Unique challenge identifier"
    )

    # Challenge data
    challenge = Column(
        String(128),
        nullable=False,
        unique=True,
        index=True,
        doc="Base64url encoded challenge nonce"
    )

    purpose = Column(
        String(20),
        nullable=False,
        doc="register or authenticate"
    )

    rp_id = Column(
        String(255),
        nullable=False,
        doc="Relying party the challenge is scoped to"
    )

    origin = Column(
        String(255),
        nullable=False,
        doc="Origin the response must come from"
    )

    # Account hint. For registration of a new account this is the staged
    # account ID, which is only committed once the attestation verifies.
    account_id = Column(
        String(36),
        nullable=True,
        doc="Existing or staged account ID"
    )

    email_hint = Column(
        String(255),
        nullable=True,
        doc="Email supplied when the ceremony started"
    )

    name_hint = Column(
        String(100),
        nullable=True,
        doc="Display name supplied when the ceremony started"
    )

    # Expiration
    expires_at = Column(
        DateTime,
        nullable=False,
        index=True,
        doc="Challenge expiration time"
    )

    created_at = Column(
        DateTime,
        default=utcnow,
        nullable=False,
        doc="Challenge creation timestamp"
    )

    def __repr__(self) -> str:
        """String representation of challenge."""
        return f"<WebAuthnChallenge(id={self.id}, purpose='{self.purpose}')>"

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check if challenge has expired."""
        return (now or utcnow()) >= self.expires_at

    @classmethod
    def create_challenge(
        cls,
        challenge: str,
        purpose: ChallengePurpose,
        rp_id: str,
        origin: str,
        account_id: Optional[str] = None,
        email_hint: Optional[str] = None,
        name_hint: Optional[str] = None,
        expires_in_seconds: int = 300,
    ) -> "WebAuthnChallenge":
        """
        Create a new WebAuthn challenge.

        Args:
            challenge: Base64url encoded challenge string
            purpose: Ceremony the challenge belongs to
            rp_id: Relying party identifier
            origin: Expected origin
            account_id: Existing or staged account ID
            email_hint: Email for a staged account
            name_hint: Display name for a staged account
            expires_in_seconds: Challenge lifetime

        Returns:
            WebAuthnChallenge: New challenge instance
        """
        return cls(
            challenge=challenge,
            purpose=purpose.value,
            rp_id=rp_id,
            origin=origin,
            account_id=account_id,
            email_hint=email_hint,
            name_hint=name_hint,
            expires_at=utcnow() + timedelta(seconds=expires_in_seconds),
        )
