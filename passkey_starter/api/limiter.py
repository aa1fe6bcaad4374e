"""
Rate limiting for the ceremony endpoints.

Each application builds its own Limiter from its settings and keeps it on
``app.state.limiter``; route modules apply it through a dependency:

    from passkey_starter.api.limiter import enforce_ceremony_limit

    router = APIRouter(dependencies=[Depends(enforce_ceremony_limit)])
"""

from fastapi import Depends
from limits import parse
from slowapi import Limiter
from starlette.requests import Request

from passkey_starter.config import Settings, get_app_settings
from passkey_starter.core.errors import ApiError
from passkey_starter.core.results import ErrorKind
from passkey_starter.security.transport import get_client_ip


def _rate_limit_key(request: Request) -> str:
    return get_client_ip(request)


def build_limiter(settings: Settings) -> Limiter:
    """Create the limiter for one application, keyed by client IP (X-Forwarded-For aware)."""
    return Limiter(key_func=_rate_limit_key, enabled=settings.enable_rate_limiting)


async def enforce_ceremony_limit(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> None:
    """Count a ceremony request against the caller's budget; 429 once it is spent."""
    limiter: Limiter = request.app.state.limiter
    if not limiter.enabled:
        return
    if not limiter.limiter.hit(parse(settings.ceremony_rate_limit), "ceremony", _rate_limit_key(request)):
        raise ApiError(
            ErrorKind.RATE_LIMITED,
            f"Rate limit exceeded: {settings.ceremony_rate_limit}",
            headers={"Retry-After": "60"},
        )
