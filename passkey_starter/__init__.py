"""
Passkey Starter - passwordless sign-in with WebAuthn passkeys for FastAPI.

Registration and authentication ceremonies, database-backed sessions, and
an authorization pipeline with three independent checkpoints (edge, page/API
and mutation).
"""

__version__ = "1.0.0"

from passkey_starter.config import Settings
from passkey_starter.main import create_app

__all__ = [
    "Settings",
    "__version__",
    "create_app",
]
