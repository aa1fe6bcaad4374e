"""WebAuthn ceremony engine for passkey registration and authentication."""

import hashlib
import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from webauthn import (
    generate_authentication_options,
    generate_registration_options,
    verify_authentication_response,
    verify_registration_response,
)
from webauthn.helpers import (
    base64url_to_bytes,
    bytes_to_base64url,
    options_to_json,
    parse_attestation_object,
    parse_authentication_credential_json,
    parse_authenticator_data,
    parse_client_data_json,
    parse_registration_credential_json,
)
from webauthn.helpers.exceptions import WebAuthnException
from webauthn.helpers.structs import (
    AuthenticatorSelectionCriteria,
    ClientDataType,
    PublicKeyCredentialDescriptor,
    ResidentKeyRequirement,
    UserVerificationRequirement,
)

from passkey_starter.config import Settings
from passkey_starter.core.results import ErrorKind, Failure, Ok, Result
from passkey_starter.database import utcnow
from passkey_starter.models.account import Account
from passkey_starter.models.security_log import RiskLevel, SecurityEventType, SecurityLog
from passkey_starter.models.webauthn_challenge import ChallengePurpose, WebAuthnChallenge
from passkey_starter.services.challenge_store import ChallengeStore
from passkey_starter.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)

# Anything a hostile or broken client can make the parsers raise.
PARSE_ERRORS = (WebAuthnException, ValueError, KeyError, TypeError)

AUTHENTICATION_FAILED_MESSAGE = "Authentication failed"


@dataclass(frozen=True)
class RegistrationOutcome:
    """A verified attestation that has been persisted."""

    account_id: str
    credential_id: str
    created_account: bool


@dataclass(frozen=True)
class AuthenticationOutcome:
    """A verified assertion, ready to be turned into a session."""

    account_id: str
    credential_id: str
    sign_count: int


class CeremonyEngine:
    """
    Runs the WebAuthn registration and authentication ceremonies.

    Each ``complete_*`` call spends its challenge before looking at the rest
    of the response, and writes accounts and credentials in a single commit
    only once every check has passed.
    """

    def __init__(self, db: AsyncSession, settings: Settings):
        self.db = db
        self.settings = settings
        self.challenges = ChallengeStore(db, settings)
        self.credentials = CredentialStore(db)

    @property
    def _user_verification(self) -> UserVerificationRequirement:
        if self.settings.require_user_verification:
            return UserVerificationRequirement.REQUIRED
        return UserVerificationRequirement.PREFERRED

    async def _get_account(self, account_id: str) -> Optional[Account]:
        return await self.db.get(Account, account_id)

    async def _get_account_by_email(self, email: str) -> Optional[Account]:
        stmt = select(Account).where(Account.email == email.lower())
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _record(
        self,
        event_type: SecurityEventType,
        description: str,
        account_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        metadata: Optional[Dict] = None,
        risk_level: RiskLevel = RiskLevel.LOW,
    ) -> None:
        self.db.add(
            SecurityLog.create_log(
                event_type=event_type,
                description=description,
                account_id=account_id,
                ip_address=ip_address,
                metadata=metadata,
                risk_level=risk_level,
            )
        )
        await self.db.commit()

    # Registration

    async def begin_registration(
        self,
        account_id: Optional[str] = None,
        email: Optional[str] = None,
        name: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> Result[Dict[str, Any]]:
        """
        Start a registration ceremony.

        Args:
            account_id: Signed-in account adding another passkey
            email: Email hint for a brand new account
            name: Display name for a brand new account
            ip_address: Client IP for the audit log

        Returns:
            Ok(creation options JSON) or Failure
        """
        try:
            return await self._begin_registration(account_id, email, name, ip_address)
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception("Storage error while starting registration")
            return Failure(ErrorKind.INTERNAL_ERROR, "Registration could not be started")

    async def _begin_registration(
        self,
        account_id: Optional[str],
        email: Optional[str],
        name: Optional[str],
        ip_address: Optional[str],
    ) -> Result[Dict[str, Any]]:
        exclude = []
        if account_id is not None:
            account = await self._get_account(account_id)
            if account is None:
                return Failure(ErrorKind.AUTHENTICATION_REQUIRED, "Sign in again to add a passkey")
            user_name = account.email or account.id
            display_name = account.name or user_name
            exclude = [
                PublicKeyCredentialDescriptor(id=cred.credential_id)
                for cred in await self.credentials.list_for_account(account.id)
            ]
            target_id, email_hint, name_hint = account.id, None, None
        else:
            if not email:
                return Failure(
                    ErrorKind.VALIDATION_ERROR,
                    "Email is required to create an account",
                    {"email": "Email is required"},
                )
            email = email.strip().lower()
            if await self._get_account_by_email(email) is not None:
                return Failure(
                    ErrorKind.CONFLICT,
                    "An account with this email already exists. Sign in to add a passkey.",
                    {"email": "Email already in use"},
                )
            # Staged only; the account row is written when the attestation verifies.
            target_id = str(uuid.uuid4())
            user_name = email
            display_name = name or email
            email_hint, name_hint = email, name

        raw_challenge, _ = await self.challenges.issue(
            ChallengePurpose.REGISTER,
            account_id=target_id,
            email_hint=email_hint,
            name_hint=name_hint,
        )

        options = generate_registration_options(
            rp_id=self.settings.rp_id,
            rp_name=self.settings.rp_name,
            user_id=target_id.encode("utf-8"),
            user_name=user_name,
            user_display_name=display_name,
            challenge=raw_challenge,
            timeout=self.settings.ceremony_timeout_ms,
            exclude_credentials=exclude,
            authenticator_selection=AuthenticatorSelectionCriteria(
                resident_key=ResidentKeyRequirement.REQUIRED,
                user_verification=self._user_verification,
            ),
        )

        await self._record(
            SecurityEventType.REGISTRATION_START,
            f"Passkey registration started for {user_name}",
            account_id=account_id,
            ip_address=ip_address,
        )
        return Ok(json.loads(options_to_json(options)))

    async def complete_registration(
        self,
        credential: Dict[str, Any],
        ip_address: Optional[str] = None,
    ) -> Result[RegistrationOutcome]:
        """
        Verify an attestation response and persist the new credential.

        Args:
            credential: PublicKeyCredential JSON from navigator.credentials.create()
            ip_address: Client IP for the audit log

        Returns:
            Ok(RegistrationOutcome) or Failure
        """
        try:
            return await self._complete_registration(credential, ip_address)
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception("Storage error while completing registration")
            return Failure(ErrorKind.INTERNAL_ERROR, "Registration could not be completed")

    async def _complete_registration(
        self, credential: Dict[str, Any], ip_address: Optional[str]
    ) -> Result[RegistrationOutcome]:
        try:
            parsed = parse_registration_credential_json(credential)
            client_data = parse_client_data_json(parsed.response.client_data_json)
        except PARSE_ERRORS as e:
            logger.info(f"Malformed registration response: {e}")
            return Failure(ErrorKind.MALFORMED_RESPONSE, "Malformed registration response")

        consumed = await self.challenges.consume(
            bytes_to_base64url(client_data.challenge), ChallengePurpose.REGISTER
        )
        if isinstance(consumed, Failure):
            return consumed
        challenge: WebAuthnChallenge = consumed.value

        if client_data.type != ClientDataType.WEBAUTHN_CREATE:
            return Failure(ErrorKind.MALFORMED_RESPONSE, "Malformed registration response")

        if client_data.origin != challenge.origin:
            return await self._reject_registration(
                ErrorKind.ORIGIN_MISMATCH,
                SecurityEventType.ORIGIN_MISMATCH,
                f"Registration response from unexpected origin {client_data.origin}",
                ip_address,
                RiskLevel.HIGH,
            )

        try:
            attestation = parse_attestation_object(parsed.response.attestation_object)
        except PARSE_ERRORS as e:
            logger.info(f"Malformed attestation object: {e}")
            return Failure(ErrorKind.MALFORMED_RESPONSE, "Malformed registration response")

        if attestation.auth_data.rp_id_hash != hashlib.sha256(challenge.rp_id.encode("utf-8")).digest():
            return await self._reject_registration(
                ErrorKind.RELYING_PARTY_MISMATCH,
                SecurityEventType.RELYING_PARTY_MISMATCH,
                "Registration response scoped to a different relying party",
                ip_address,
                RiskLevel.HIGH,
            )

        try:
            verification = verify_registration_response(
                credential=parsed,
                expected_challenge=base64url_to_bytes(challenge.challenge),
                expected_rp_id=challenge.rp_id,
                expected_origin=challenge.origin,
                require_user_verification=self.settings.require_user_verification,
            )
        except WebAuthnException as e:
            return await self._reject_registration(
                ErrorKind.SIGNATURE_INVALID,
                SecurityEventType.REGISTRATION_FAILED,
                f"Attestation verification failed: {e}",
                ip_address,
                RiskLevel.MEDIUM,
            )

        if await self.credentials.get_by_credential_id(verification.credential_id) is not None:
            return Failure(ErrorKind.CONFLICT, "This passkey is already registered")

        account = await self._get_account(challenge.account_id)
        created_account = account is None
        if created_account:
            # Only challenges staged for a brand new account carry an email hint.
            if not challenge.email_hint:
                logger.warning(f"Account {challenge.account_id} vanished during passkey registration")
                return Failure(ErrorKind.AUTHENTICATION_REQUIRED, "Sign in again to add a passkey")
            if await self._get_account_by_email(challenge.email_hint):
                return Failure(
                    ErrorKind.CONFLICT,
                    "An account with this email already exists",
                    {"email": "Email already in use"},
                )
            account = Account(
                id=challenge.account_id,
                email=challenge.email_hint,
                name=challenge.name_hint,
            )
            self.db.add(account)

        account_id = account.id
        transports = [t.value for t in (parsed.response.transports or [])]
        self.credentials.add(
            account_id=account_id,
            credential_id=verification.credential_id,
            public_key=verification.credential_public_key,
            sign_count=verification.sign_count,
            aaguid=verification.aaguid or None,
            transports=transports,
            device_type=verification.credential_device_type.value,
            backed_up=verification.credential_backed_up,
        )
        credential_b64 = bytes_to_base64url(verification.credential_id)
        if created_account:
            self.db.add(
                SecurityLog.create_log(
                    event_type=SecurityEventType.ACCOUNT_CREATED,
                    description=f"Account created via passkey registration: {account.email}",
                    account_id=account.id,
                    ip_address=ip_address,
                )
            )
        self.db.add(
            SecurityLog.create_log(
                event_type=SecurityEventType.REGISTRATION_SUCCESS,
                description="Passkey registered",
                account_id=account.id,
                ip_address=ip_address,
                metadata={"credential_id": credential_b64, "aaguid": verification.aaguid},
            )
        )

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.warning(f"Registration for account {account_id} lost a uniqueness race")
            return Failure(ErrorKind.CONFLICT, "Account or passkey already exists")

        logger.info(f"Registered passkey {credential_b64} for account {account_id}")
        return Ok(RegistrationOutcome(account_id, credential_b64, created_account))

    async def _reject_registration(
        self,
        kind: ErrorKind,
        event_type: SecurityEventType,
        description: str,
        ip_address: Optional[str],
        risk_level: RiskLevel,
    ) -> Failure:
        logger.warning(f"Registration rejected ({kind.value}): {description}")
        await self._record(event_type, description, ip_address=ip_address, risk_level=risk_level)
        messages = {
            ErrorKind.ORIGIN_MISMATCH: "Registration response came from an unexpected origin",
            ErrorKind.RELYING_PARTY_MISMATCH: "Registration response is for a different site",
            ErrorKind.SIGNATURE_INVALID: "Passkey could not be verified",
        }
        return Failure(kind, messages[kind])

    # Authentication

    async def begin_authentication(
        self,
        email: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> Result[Dict[str, Any]]:
        """
        Start an authentication ceremony.

        Without a hint (or with one that matches nothing) the options carry
        no allowCredentials and the authenticator picks a discoverable
        credential itself.
        """
        try:
            account_id = None
            allow = []
            if email:
                account = await self._get_account_by_email(email.strip())
                if account is not None:
                    account_id = account.id
                    allow = [
                        PublicKeyCredentialDescriptor(id=cred.credential_id)
                        for cred in await self.credentials.list_for_account(account.id)
                    ]

            raw_challenge, _ = await self.challenges.issue(
                ChallengePurpose.AUTHENTICATE, account_id=account_id
            )
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception("Storage error while starting authentication")
            return Failure(ErrorKind.INTERNAL_ERROR, AUTHENTICATION_FAILED_MESSAGE)

        options = generate_authentication_options(
            rp_id=self.settings.rp_id,
            challenge=raw_challenge,
            timeout=self.settings.ceremony_timeout_ms,
            allow_credentials=allow,
            user_verification=self._user_verification,
        )
        return Ok(json.loads(options_to_json(options)))

    async def complete_authentication(
        self,
        credential: Dict[str, Any],
        ip_address: Optional[str] = None,
    ) -> Result[AuthenticationOutcome]:
        """
        Verify an assertion response.

        Every failure carries the same client-facing message; the kind
        and the audit log record which check actually failed.

        Args:
            credential: PublicKeyCredential JSON from navigator.credentials.get()
            ip_address: Client IP for the audit log

        Returns:
            Ok(AuthenticationOutcome) or Failure
        """
        try:
            return await self._complete_authentication(credential, ip_address)
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception("Storage error while completing authentication")
            return Failure(ErrorKind.INTERNAL_ERROR, AUTHENTICATION_FAILED_MESSAGE)

    async def _complete_authentication(
        self, credential: Dict[str, Any], ip_address: Optional[str]
    ) -> Result[AuthenticationOutcome]:
        try:
            parsed = parse_authentication_credential_json(credential)
            client_data = parse_client_data_json(parsed.response.client_data_json)
        except PARSE_ERRORS as e:
            logger.info(f"Malformed authentication response: {e}")
            return Failure(ErrorKind.MALFORMED_RESPONSE, AUTHENTICATION_FAILED_MESSAGE)

        consumed = await self.challenges.consume(
            bytes_to_base64url(client_data.challenge), ChallengePurpose.AUTHENTICATE
        )
        if isinstance(consumed, Failure):
            return Failure(consumed.kind, AUTHENTICATION_FAILED_MESSAGE)
        challenge: WebAuthnChallenge = consumed.value

        if client_data.type != ClientDataType.WEBAUTHN_GET:
            return Failure(ErrorKind.MALFORMED_RESPONSE, AUTHENTICATION_FAILED_MESSAGE)

        if client_data.origin != challenge.origin:
            return await self._reject_authentication(
                ErrorKind.ORIGIN_MISMATCH,
                SecurityEventType.ORIGIN_MISMATCH,
                f"Assertion from unexpected origin {client_data.origin}",
                ip_address,
                risk_level=RiskLevel.HIGH,
            )

        try:
            auth_data = parse_authenticator_data(parsed.response.authenticator_data)
        except PARSE_ERRORS as e:
            logger.info(f"Malformed authenticator data: {e}")
            return Failure(ErrorKind.MALFORMED_RESPONSE, AUTHENTICATION_FAILED_MESSAGE)

        if auth_data.rp_id_hash != hashlib.sha256(challenge.rp_id.encode("utf-8")).digest():
            return await self._reject_authentication(
                ErrorKind.RELYING_PARTY_MISMATCH,
                SecurityEventType.RELYING_PARTY_MISMATCH,
                "Assertion scoped to a different relying party",
                ip_address,
                risk_level=RiskLevel.HIGH,
            )

        stored = await self.credentials.get_by_credential_id(parsed.raw_id)
        if stored is None or (challenge.account_id and stored.account_id != challenge.account_id):
            return await self._reject_authentication(
                ErrorKind.UNKNOWN_CREDENTIAL,
                SecurityEventType.LOGIN_FAILED,
                "Assertion for an unknown credential",
                ip_address,
                metadata={"credential_id": bytes_to_base64url(parsed.raw_id)},
            )
        user_handle = parsed.response.user_handle
        if user_handle and user_handle != stored.account_id.encode("utf-8"):
            return await self._reject_authentication(
                ErrorKind.UNKNOWN_CREDENTIAL,
                SecurityEventType.LOGIN_FAILED,
                "Assertion user handle does not match the credential owner",
                ip_address,
                account_id=stored.account_id,
                risk_level=RiskLevel.MEDIUM,
            )

        try:
            # Counter policy is applied below, so the library only checks
            # the signature and the authenticator flags here.
            verification = verify_authentication_response(
                credential=parsed,
                expected_challenge=base64url_to_bytes(challenge.challenge),
                expected_rp_id=challenge.rp_id,
                expected_origin=challenge.origin,
                credential_public_key=stored.public_key,
                credential_current_sign_count=0,
                require_user_verification=self.settings.require_user_verification,
            )
        except WebAuthnException as e:
            return await self._reject_authentication(
                ErrorKind.SIGNATURE_INVALID,
                SecurityEventType.LOGIN_FAILED,
                f"Assertion verification failed: {e}",
                ip_address,
                account_id=stored.account_id,
                risk_level=RiskLevel.MEDIUM,
            )

        new_count = verification.new_sign_count
        if not counter_advances(stored.sign_count, new_count):
            logger.error(
                f"Signature counter regression on credential {stored.id}: "
                f"stored={stored.sign_count} presented={new_count}. Possible cloned authenticator."
            )
            return await self._reject_authentication(
                ErrorKind.COUNTER_REGRESSION,
                SecurityEventType.COUNTER_REGRESSION,
                "Signature counter did not advance; possible cloned authenticator",
                ip_address,
                account_id=stored.account_id,
                metadata={"stored": stored.sign_count, "presented": new_count},
                risk_level=RiskLevel.CRITICAL,
            )
        if new_count == 0:
            logger.debug(f"Credential {stored.id} does not implement a signature counter")

        if not await self.credentials.advance_counter(stored, new_count):
            return await self._reject_authentication(
                ErrorKind.COUNTER_REGRESSION,
                SecurityEventType.COUNTER_REGRESSION,
                "Signature counter changed during verification; concurrent assertion rejected",
                ip_address,
                account_id=stored.account_id,
                metadata={"stored": stored.sign_count, "presented": new_count},
                risk_level=RiskLevel.CRITICAL,
            )

        await self.db.execute(
            update(Account)
            .where(Account.id == stored.account_id)
            .values(last_sign_in_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        credential_b64 = bytes_to_base64url(parsed.raw_id)
        self.db.add(
            SecurityLog.create_log(
                event_type=SecurityEventType.LOGIN_SUCCESS,
                description="Passkey authentication succeeded",
                account_id=stored.account_id,
                ip_address=ip_address,
                metadata={"credential_id": credential_b64, "sign_count": new_count},
            )
        )
        await self.db.commit()

        return Ok(AuthenticationOutcome(stored.account_id, credential_b64, new_count))

    async def _reject_authentication(
        self,
        kind: ErrorKind,
        event_type: SecurityEventType,
        description: str,
        ip_address: Optional[str],
        account_id: Optional[str] = None,
        metadata: Optional[Dict] = None,
        risk_level: RiskLevel = RiskLevel.LOW,
    ) -> Failure:
        if kind is not ErrorKind.COUNTER_REGRESSION:
            logger.warning(f"Authentication rejected ({kind.value}): {description}")
        await self._record(
            event_type,
            description,
            account_id=account_id,
            ip_address=ip_address,
            metadata=metadata,
            risk_level=risk_level,
        )
        return Failure(kind, AUTHENTICATION_FAILED_MESSAGE)


def counter_advances(stored: int, presented: int) -> bool:
    """A presented counter must exceed the stored one, unless both are zero."""
    return presented > stored or (presented == 0 and stored == 0)
