"""Database models for the passkey starter."""

from passkey_starter.models.account import Account
from passkey_starter.models.security_log import RiskLevel, SecurityEventType, SecurityLog
from passkey_starter.models.session import Session
from passkey_starter.models.webauthn_challenge import ChallengePurpose, WebAuthnChallenge
from passkey_starter.models.webauthn_credential import WebAuthnCredential

__all__ = [
    "Account",
    "ChallengePurpose",
    "RiskLevel",
    "SecurityEventType",
    "SecurityLog",
    "Session",
    "WebAuthnChallenge",
    "WebAuthnCredential",
]
