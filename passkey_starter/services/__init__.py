"""Service layer for business logic."""

from passkey_starter.services.account_service import AccountService
from passkey_starter.services.challenge_store import ChallengeStore
from passkey_starter.services.credential_store import CredentialStore
from passkey_starter.services.session_service import IssuedSession, ResolvedSession, SessionIssuer
from passkey_starter.services.webauthn_service import (
    AuthenticationOutcome,
    CeremonyEngine,
    RegistrationOutcome,
)

__all__ = [
    "AccountService",
    "AuthenticationOutcome",
    "CeremonyEngine",
    "ChallengeStore",
    "CredentialStore",
    "IssuedSession",
    "RegistrationOutcome",
    "ResolvedSession",
    "SessionIssuer",
]
