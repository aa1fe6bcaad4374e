"""Authorization checkpoints and request transport helpers."""

from passkey_starter.security.guards import (
    MutationGuard,
    get_optional_session,
    require_api_session,
    require_page_session,
)
from passkey_starter.security.transport import (
    clear_session_cookie,
    extract_session_token,
    get_client_ip,
    set_session_cookie,
)

__all__ = [
    # Checkpoints
    "MutationGuard",
    "get_optional_session",
    "require_api_session",
    "require_page_session",

    # Transport
    "clear_session_cookie",
    "extract_session_token",
    "get_client_ip",
    "set_session_cookie",
]
