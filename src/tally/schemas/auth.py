"""Request and response bodies for the credential routes.

Request fields are optional at the schema level so that missing fields
produce the operation's own 400 message rather than a generic validation
error.
"""

from src.tally.schemas.base import CamelModel
from src.tally.schemas.user import OrganizationRead, UserProfile, UserRead


class LoginRequest(CamelModel):
    email: str | None = None
    password: str | None = None


class RegisterRequest(CamelModel):
    organization_name: str | None = None
    email: str | None = None
    password: str | None = None
    name: str | None = None


class RefreshRequest(CamelModel):
    refresh_token: str | None = None


class ForgotPasswordRequest(CamelModel):
    email: str | None = None


class ResetPasswordRequest(CamelModel):
    token: str | None = None
    password: str | None = None


class ChangePasswordRequest(CamelModel):
    current_password: str | None = None
    new_password: str | None = None


class SessionResponse(CamelModel):
    """Access token plus sanitized identity. The refresh token travels in a cookie only."""

    access_token: str
    user: UserRead
    organization: OrganizationRead


class ProfileResponse(CamelModel):
    user: UserProfile
    organization: OrganizationRead


class MessageResponse(CamelModel):
    message: str


class ModeFeatures(CamelModel):
    multi_tenant: bool


class ModeResponse(CamelModel):
    mode: str
    features: ModeFeatures
