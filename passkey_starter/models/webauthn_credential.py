"""WebAuthn credential model for storing passkey public keys."""

import base64
import uuid
from typing import List

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    LargeBinary,
    String,
)
from sqlalchemy.orm import relationship

from passkey_starter.database import Base, utcnow


class WebAuthnCredential(Base):
    """
    WebAuthn credential model for storing authenticator credentials.

    This model stores the public key produced during registration and the
    signature counter checked on every authentication.
    """

    __tablename__ = "webauthn_credentials"

    # Primary key
    id = Column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        index=True,
        doc="Unique credential record identifier"
    )

    # Foreign key to account
    account_id = Column(
        String(36),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        doc="Reference to the account that owns this credential"
    )

    # WebAuthn credential data
    credential_id = Column(
        LargeBinary,
        unique=True,
        nullable=False,
        index=True,
        doc="WebAuthn credential ID (binary)"
    )

    public_key = Column(
        LargeBinary,
        nullable=False,
        doc="COSE-encoded public key for verifying assertions"
    )

    sign_count = Column(
        Integer,
        default=0,
        nullable=False,
        doc="Signature counter for clone detection"
    )

    # Authenticator metadata
    aaguid = Column(
        String(36),
        nullable=True,
        doc="Authenticator AAGUID"
    )

    transports = Column(
        String(255),
        nullable=True,
        doc="Supported transport methods (comma-separated)"
    )

    device_type = Column(
        String(32),
        nullable=True,
        doc="single_device or multi_device"
    )

    backed_up = Column(
        Boolean,
        default=False,
        nullable=False,
        doc="Whether the credential is currently backed up"
    )

    last_used_at = Column(
        DateTime,
        nullable=True,
        doc="Timestamp of last successful authentication"
    )

    created_at = Column(
        DateTime,
        default=utcnow,
        nullable=False,
        doc="Credential registration timestamp"
    )

    # Relationships
    account = relationship(
        "Account",
        back_populates="credentials",
        doc="Account that owns this credential"
    )

    def __repr__(self) -> str:
        """String representation of credential."""
        return f"<WebAuthnCredential(id={self.id}, account_id={self.account_id})>"

    @property
    def credential_id_b64(self) -> str:
        """Get credential ID as unpadded base64url string."""
        return base64.urlsafe_b64encode(self.credential_id).decode("ascii").rstrip("=")

    @property
    def transports_list(self) -> List[str]:
        """Get transports as a list."""
        if not self.transports:
            return []
        return [t.strip() for t in self.transports.split(",") if t.strip()]

    @transports_list.setter
    def transports_list(self, transports: List[str]) -> None:
        """Set transports from a list."""
        self.transports = ",".join(transports) if transports else None
