"""Server-side session model."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from passkey_starter.database import Base, utcnow


class Session(Base):
    """
    Database-backed session bound to exactly one account.

    Only the SHA-256 digest of the session token is stored; the raw token
    lives in the client's cookie.
    """

    __tablename__ = "sessions"

    id = Column(
        String(64),
        primary_key=True,
        doc="Hex SHA-256 of the opaque session token"
    )

    account_id = Column(
        String(36),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        doc="Account the session is bound to"
    )

    expires_at = Column(
        DateTime,
        nullable=False,
        index=True,
        doc="Session expiration time"
    )

    ip_address = Column(
        String(45),  # IPv6 compatible
        nullable=True,
        doc="Client IP address at sign-in"
    )

    user_agent = Column(
        Text,
        nullable=True,
        doc="Client user agent at sign-in"
    )

    created_at = Column(
        DateTime,
        default=utcnow,
        nullable=False,
        doc="Session creation timestamp"
    )

    updated_at = Column(
        DateTime,
        default=utcnow,
        nullable=False,
        doc="Last rolling renewal"
    )

    account = relationship(
        "Account",
        back_populates="sessions",
    )

    def __repr__(self) -> str:
        return f"<Session(account_id={self.account_id}, expires_at={self.expires_at})>"

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check if session has expired."""
        return (now or utcnow()) >= self.expires_at
