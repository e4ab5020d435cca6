"""User administration endpoints."""

from uuid import UUID

from fastapi import APIRouter

from src.tally.api.dependencies import AdminUser, UserServiceDep
from src.tally.schemas import MessageResponse
from src.tally.services.user_service import USER_DEACTIVATED_MESSAGE

router = APIRouter(prefix="/users", tags=["users"])


@router.delete(
    "/{user_id}",
    response_model=MessageResponse,
    responses={
        400: {"description": "Cannot deactivate yourself or the organization owner"},
        403: {"description": "Admin role required"},
        404: {"description": "User not found in your organization"},
    },
)
async def deactivate_user(
    user_id: UUID, admin: AdminUser, service: UserServiceDep
) -> MessageResponse:
    """Deactivate a user (soft delete) and revoke their sessions."""
    await service.deactivate(admin, user_id)
    return MessageResponse(message=USER_DEACTIVATED_MESSAGE)
