from fastapi import APIRouter

from src.tally.api.v1 import auth, users
from src.tally.core.config import Settings


def create_api_router(settings: Settings) -> APIRouter:
    """Build the API router.

    Credential routes exist only when multi-tenant mode is enabled; the flag
    is read once here at startup.
    """
    api_router = APIRouter(prefix="/api")
    api_router.include_router(auth.mode_router)
    if settings.multi_tenant_enabled:
        api_router.include_router(auth.router)
        api_router.include_router(users.router)
    return api_router
