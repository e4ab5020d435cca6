"""API request and response schemas."""

from src.tally.schemas.auth import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    ModeFeatures,
    ModeResponse,
    ProfileResponse,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    SessionResponse,
)
from src.tally.schemas.user import OrganizationRead, UserProfile, UserRead

__all__ = [
    "ChangePasswordRequest",
    "ForgotPasswordRequest",
    "LoginRequest",
    "MessageResponse",
    "ModeFeatures",
    "ModeResponse",
    "OrganizationRead",
    "ProfileResponse",
    "RefreshRequest",
    "RegisterRequest",
    "ResetPasswordRequest",
    "SessionResponse",
    "UserProfile",
    "UserRead",
]
