"""Top-level router assembling every endpoint group."""

from fastapi import APIRouter

from passkey_starter.api.endpoints import actions, pages, passkey, session, user

api_router = APIRouter()

# Include sub-routers
api_router.include_router(pages.router, tags=["Pages"])
api_router.include_router(passkey.router, prefix="/api/auth", tags=["Passkeys"])
api_router.include_router(session.router, prefix="/api/auth", tags=["Session"])
api_router.include_router(user.router, prefix="/api/user", tags=["User"])
api_router.include_router(actions.router, prefix="/actions", tags=["Actions"])
