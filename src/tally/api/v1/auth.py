"""Authentication endpoints.

The refresh token is delivered only as an HttpOnly cookie scoped to the auth
path; JSON bodies carry the access token and sanitized identity.
"""

from fastapi import APIRouter, Response, status
from starlette.requests import Request

from src.tally.api.dependencies import (
    CurrentPrincipal,
    CurrentUser,
    PasswordResetServiceDep,
    SessionServiceDep,
)
from src.tally.core.config import get_settings
from src.tally.core.rate_limit import limiter
from src.tally.schemas import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    ModeFeatures,
    ModeResponse,
    OrganizationRead,
    ProfileResponse,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    SessionResponse,
    UserProfile,
    UserRead,
)
from src.tally.services import SessionResult

# Always mounted so clients can discover which login UI to show
mode_router = APIRouter(prefix="/auth", tags=["auth"])
router = APIRouter(prefix="/auth", tags=["auth"])

_ERROR_EXAMPLE = {"detail": "Invalid email or password", "request_id": "3f1c..."}


def _set_refresh_cookie(response: Response, raw_token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=raw_token,
        max_age=settings.refresh_token_expire_days * 24 * 60 * 60,
        path=settings.refresh_cookie_path,
        secure=settings.cookie_secure,
        httponly=True,
        samesite="strict",
    )


def _clear_refresh_cookie(response: Response) -> None:
    settings = get_settings()
    response.delete_cookie(
        key=settings.refresh_cookie_name,
        path=settings.refresh_cookie_path,
        secure=settings.cookie_secure,
        httponly=True,
        samesite="strict",
    )


def _presented_refresh_token(request: Request, body: RefreshRequest | None) -> str | None:
    return request.cookies.get(get_settings().refresh_cookie_name) or (
        body.refresh_token if body else None
    )


def _session_response(response: Response, result: SessionResult) -> SessionResponse:
    _set_refresh_cookie(response, result.refresh_token)
    return SessionResponse(
        access_token=result.access_token,
        user=UserRead.model_validate(result.user),
        organization=OrganizationRead.model_validate(result.organization),
    )


@mode_router.get("/mode", response_model=ModeResponse)
async def mode() -> ModeResponse:
    """Report whether the credential routes are enabled on this deployment."""
    enabled = get_settings().multi_tenant_enabled
    return ModeResponse(
        mode="multitenant" if enabled else "legacy",
        features=ModeFeatures(multi_tenant=enabled),
    )


@router.post(
    "/login",
    response_model=SessionResponse,
    responses={
        400: {"description": "Email or password missing"},
        401: {"description": "Invalid credentials", "content": {"application/json": {"example": _ERROR_EXAMPLE}}},
        403: {"description": "Account deactivated or organization inactive"},
        429: {"description": "Too many failed attempts; see retryAfter"},
    },
)
@limiter.limit("10/minute")
async def login(
    request: Request,
    response: Response,
    service: SessionServiceDep,
    body: LoginRequest,
) -> SessionResponse:
    """Authenticate with email and password and start a session."""
    result = await service.login(
        body.email,
        body.password,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    return _session_response(response, result)


@router.post(
    "/refresh",
    response_model=SessionResponse,
    responses={
        400: {"description": "No refresh token supplied"},
        401: {"description": "Invalid, revoked or expired refresh token"},
        403: {"description": "Account deactivated or organization inactive"},
    },
)
@limiter.limit("30/minute")
async def refresh(
    request: Request,
    response: Response,
    service: SessionServiceDep,
    body: RefreshRequest | None = None,
) -> SessionResponse:
    """Rotate the refresh token.

    The cookie is read first; a ``refreshToken`` body field is accepted as a
    fallback for older clients.
    """
    raw_token = _presented_refresh_token(request, body)
    result = await service.refresh(raw_token)
    return _session_response(response, result)


@router.post(
    "/register",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"description": "Missing fields, bad email, weak password or registration conflict"}},
)
@limiter.limit("5/minute")
async def register(
    request: Request,
    response: Response,
    service: SessionServiceDep,
    body: RegisterRequest,
) -> SessionResponse:
    """Create an organization and its owner account, then start a session."""
    result = await service.register(
        body.organization_name, body.email, body.password, body.name
    )
    return _session_response(response, result)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    service: SessionServiceDep,
    body: RefreshRequest | None = None,
) -> MessageResponse:
    """Revoke the current refresh token and clear its cookie."""
    raw_token = _presented_refresh_token(request, body)
    message = await service.logout(raw_token)
    _clear_refresh_cookie(response)
    return MessageResponse(message=message)


@router.post("/forgot-password", response_model=MessageResponse)
@limiter.limit("5/minute")
async def forgot_password(
    request: Request,
    service: PasswordResetServiceDep,
    body: ForgotPasswordRequest,
) -> MessageResponse:
    """Request a reset link. The response never reveals whether the email exists."""
    return MessageResponse(message=await service.request_reset(body.email))


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    responses={400: {"description": "Missing fields, weak password, invalid or expired token"}},
)
@limiter.limit("10/minute")
async def reset_password(
    request: Request,
    service: PasswordResetServiceDep,
    body: ResetPasswordRequest,
) -> MessageResponse:
    """Set a new password with a reset token. Ends every session of the user."""
    return MessageResponse(message=await service.complete_reset(body.token, body.password))


@router.get("/me", response_model=ProfileResponse)
async def me(principal: CurrentPrincipal) -> ProfileResponse:
    return ProfileResponse(
        user=UserProfile.model_validate(principal.user),
        organization=OrganizationRead.model_validate(principal.organization),
    )


@router.put("/password", response_model=MessageResponse)
async def change_password(
    current_user: CurrentUser,
    service: SessionServiceDep,
    body: ChangePasswordRequest,
) -> MessageResponse:
    """Change the caller's password. Every refresh token of the caller is revoked."""
    message = await service.change_password(
        current_user, body.current_password, body.new_password
    )
    return MessageResponse(message=message)
