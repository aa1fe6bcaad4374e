"""Passkey registration and authentication ceremony endpoints."""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from passkey_starter.api.limiter import enforce_ceremony_limit
from passkey_starter.config import Settings, get_app_settings
from passkey_starter.core.errors import ApiError
from passkey_starter.core.results import ErrorKind, Failure
from passkey_starter.database import get_db
from passkey_starter.schemas.webauthn import (
    AuthenticationBeginRequest,
    AuthenticationCompleteRequest,
    AuthenticationCompleteResponse,
    RegistrationBeginRequest,
    RegistrationCompleteRequest,
    RegistrationCompleteResponse,
)
from passkey_starter.security.guards import get_optional_session
from passkey_starter.security.transport import get_client_ip, set_session_cookie
from passkey_starter.services.session_service import ResolvedSession, SessionIssuer
from passkey_starter.services.webauthn_service import AUTHENTICATION_FAILED_MESSAGE, CeremonyEngine

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(enforce_ceremony_limit)])


@router.post("/passkey/register/begin")
async def begin_passkey_registration(
    request: Request,
    body: RegistrationBeginRequest,
    current: Optional[ResolvedSession] = Depends(get_optional_session),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """
    Begin passkey registration.

    Signed in, the new passkey is added to the current account. Signed
    out, an email is required and a new account is staged; it is only
    created once the attestation verifies.

    The client passes the returned options to navigator.credentials.create().
    """
    result = await CeremonyEngine(db, settings).begin_registration(
        account_id=current.account_id if current else None,
        email=body.email,
        name=body.name,
        ip_address=get_client_ip(request),
    )
    if isinstance(result, Failure):
        raise ApiError.from_failure(result)
    return result.value


@router.post("/passkey/register/complete", response_model=RegistrationCompleteResponse)
async def complete_passkey_registration(
    request: Request,
    response: Response,
    body: RegistrationCompleteRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> Any:
    """
    Complete passkey registration.

    Verifies the attestation, stores the credential (and the staged
    account, if any) and signs the account in.
    """
    ip_address = get_client_ip(request)
    result = await CeremonyEngine(db, settings).complete_registration(
        body.credential, ip_address=ip_address
    )
    if isinstance(result, Failure):
        raise ApiError.from_failure(result)

    outcome = result.value
    issued = await SessionIssuer(db, settings).issue(
        outcome.account_id,
        ip_address=ip_address,
        user_agent=request.headers.get("User-Agent"),
    )
    set_session_cookie(response, settings, issued.token, issued.expires_at)
    return RegistrationCompleteResponse(
        account_id=outcome.account_id, credential_id=outcome.credential_id
    )


@router.post("/passkey/authenticate/begin")
async def begin_passkey_authentication(
    request: Request,
    body: AuthenticationBeginRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """
    Begin passkey authentication.

    The email hint is optional; without it the authenticator offers its
    discoverable credentials. The client passes the returned options to
    navigator.credentials.get().
    """
    result = await CeremonyEngine(db, settings).begin_authentication(
        email=body.email, ip_address=get_client_ip(request)
    )
    if isinstance(result, Failure):
        raise ApiError.from_failure(result)
    return result.value


@router.post("/passkey/authenticate/complete", response_model=AuthenticationCompleteResponse)
async def complete_passkey_authentication(
    request: Request,
    response: Response,
    body: AuthenticationCompleteRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> Any:
    """
    Complete passkey authentication and issue a session.

    Every verification failure yields the same 401 body so the response
    does not reveal which check failed.
    """
    ip_address = get_client_ip(request)
    result = await CeremonyEngine(db, settings).complete_authentication(
        body.credential, ip_address=ip_address
    )
    if isinstance(result, Failure):
        if result.kind is ErrorKind.INTERNAL_ERROR:
            raise ApiError.from_failure(result)
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"code": "authentication_failed", "message": AUTHENTICATION_FAILED_MESSAGE},
        )

    issued = await SessionIssuer(db, settings).issue(
        result.value.account_id,
        ip_address=ip_address,
        user_agent=request.headers.get("User-Agent"),
    )
    set_session_cookie(response, settings, issued.token, issued.expires_at)
    return AuthenticationCompleteResponse(
        session_reference=issued.token,
        account_id=issued.account_id,
        expires_at=issued.expires_at,
    )
