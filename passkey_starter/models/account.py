"""Account model for the passkey starter."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship

from passkey_starter.database import Base, utcnow


class Account(Base):
    """
    Account model for storing user account information.

    Accounts own their passkey credentials and sessions; deleting an
    account removes both.
    """

    __tablename__ = "accounts"

    # Primary key using UUID for better security
    id = Column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        index=True,
        doc="Unique account identifier (also the WebAuthn user handle)"
    )

    name = Column(
        String(100),
        nullable=True,
        doc="Display name"
    )

    email = Column(
        String(255),
        unique=True,
        nullable=True,
        index=True,
        doc="Email address, unique when present"
    )

    email_verified = Column(
        DateTime,
        nullable=True,
        doc="When the email address was verified"
    )

    image = Column(
        String(2048),
        nullable=True,
        doc="Avatar URL"
    )

    last_sign_in_at = Column(
        DateTime,
        nullable=True,
        doc="Timestamp of last successful passkey authentication"
    )

    # Timestamps
    created_at = Column(
        DateTime,
        default=utcnow,
        nullable=False,
        doc="Account creation timestamp"
    )

    updated_at = Column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
        doc="Last account update timestamp"
    )

    # Relationships
    credentials = relationship(
        "WebAuthnCredential",
        back_populates="account",
        cascade="all, delete-orphan",
        passive_deletes=True,
        doc="Account's passkey credentials"
    )

    sessions = relationship(
        "Session",
        back_populates="account",
        cascade="all, delete-orphan",
        passive_deletes=True,
        doc="Account's active sessions"
    )

    def __repr__(self) -> str:
        """String representation of account."""
        return f"<Account(id={self.id}, email='{self.email}')>"

    def get_webauthn_user_handle(self) -> bytes:
        """Get WebAuthn user handle (account ID bytes)."""
        return self.id.encode("utf-8")

    def account_age_days(self, now: Optional[datetime] = None) -> int:
        """Whole days since the account was created."""
        now = now or utcnow()
        return max((now - self.created_at).days, 0)
