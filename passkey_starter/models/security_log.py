"""Security log model for audit trails and security monitoring."""

import uuid
from enum import Enum
from typing import Dict, Optional

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, Text

from passkey_starter.database import Base, utcnow


class SecurityEventType(str, Enum):
    """Types of security events to log."""

    # Registration events
    REGISTRATION_START = "registration_start"
    REGISTRATION_SUCCESS = "registration_success"
    REGISTRATION_FAILED = "registration_failed"

    # Authentication events
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILED = "login_failed"
    LOGOUT = "logout"

    # Suspicious activity
    ORIGIN_MISMATCH = "origin_mismatch"
    RELYING_PARTY_MISMATCH = "relying_party_mismatch"
    COUNTER_REGRESSION = "counter_regression"
    AUTHORIZATION_DENIED = "authorization_denied"

    # Account events
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_UPDATED = "account_updated"
    ACCOUNT_DELETED = "account_deleted"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class SecurityLog(Base):
    """
    Security log model for storing audit trails and security events.

    Rows outlive the account they describe (the reference is set to NULL
    when the account is deleted).
    """

    __tablename__ = "security_logs"

    # Primary key
    id = Column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        index=True,
        doc="Unique log entry identifier"
    )

    # Account reference (nullable for anonymous ceremony failures)
    account_id = Column(
        String(36),
        ForeignKey("accounts.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        doc="Reference to the account (if applicable)"
    )

    event_type = Column(
        String(50),
        nullable=False,
        index=True,
        doc="Type of security event"
    )

    event_description = Column(
        Text,
        nullable=False,
        doc="Detailed description of the event"
    )

    ip_address = Column(
        String(45),
        nullable=True,
        doc="IP address of the request"
    )

    event_metadata = Column(
        JSON,
        nullable=True,
        doc="Additional event metadata (JSON)"
    )

    risk_level = Column(
        String(20),
        nullable=False,
        default=RiskLevel.LOW.value,
        doc="Risk level: low, medium, high, critical"
    )

    created_at = Column(
        DateTime,
        default=utcnow,
        nullable=False,
        index=True,
        doc="Event timestamp"
    )

    def __repr__(self) -> str:
        """String representation of security log."""
        return f"<SecurityLog(id={self.id}, event_type='{self.event_type}')>"

    @classmethod
    def create_log(
        cls,
        event_type: SecurityEventType,
        description: str,
        account_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        metadata: Optional[Dict] = None,
        risk_level: RiskLevel = RiskLevel.LOW,
    ) -> "SecurityLog":
        """
        Create a new security log entry.

        Args:
            event_type: Type of security event
            description: Detailed description
            account_id: Account ID (if applicable)
            ip_address: Request IP address
            metadata: Additional metadata
            risk_level: Risk level assessment

        Returns:
            SecurityLog: New log entry instance
        """
        return cls(
            event_type=event_type.value,
            event_description=description,
            account_id=account_id,
            ip_address=ip_address,
            event_metadata=metadata or {},
            risk_level=risk_level.value,
        )

    def is_high_risk(self) -> bool:
        """Check if this is a high-risk event."""
        return self.risk_level in (RiskLevel.HIGH.value, RiskLevel.CRITICAL.value)
