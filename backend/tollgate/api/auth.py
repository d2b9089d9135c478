"""Session lifecycle endpoints: signup, login, refresh, logout and password flows"""
from fastapi import APIRouter, Depends, Request, status

from tollgate.config import settings
from tollgate.errors import AuthServiceError
from tollgate.api.deps import get_current_user, get_session_service
from tollgate.middleware.monitoring import record_auth_event, record_auth_failure
from tollgate.middleware.rate_limit import get_rate_limit, limiter
from tollgate.models.user import User
from tollgate.schemas.auth import (
    AuthResponse,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    ResetPasswordRequest,
    SignupRequest,
    TokenPairResponse,
    UpdatePasswordRequest,
    UserResponse,
)
from tollgate.schemas.common import Envelope, MessageData
from tollgate.services.session_service import AuthResult, SessionService
from tollgate.utils.jwt_utils import TokenPair

router = APIRouter(prefix=settings.API_PREFIX, tags=["authentication"])


def _token_pair_response(tokens: TokenPair) -> TokenPairResponse:
    return TokenPairResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_in=tokens.expires_in,
    )


def _auth_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(
        user=UserResponse.model_validate(result.user),
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        expires_in=result.tokens.expires_in,
    )


# ---------------------------------------------------------------------------
# Unauthenticated endpoints
# ---------------------------------------------------------------------------

@router.post("/signup", response_model=Envelope[AuthResponse], status_code=status.HTTP_201_CREATED)
@limiter.limit(get_rate_limit("signup"))
def signup(
    request: Request,
    payload: SignupRequest,
    service: SessionService = Depends(get_session_service),
):
    """Create an account and start its first session."""
    try:
        result = service.signup(payload.email, payload.full_name, payload.password)
    except AuthServiceError:
        record_auth_event("signup", success=False)
        raise
    record_auth_event("signup", success=True)
    return Envelope(data=_auth_response(result))


@router.post("/login", response_model=Envelope[AuthResponse])
@limiter.limit(get_rate_limit("login"))
def login(
    request: Request,
    payload: LoginRequest,
    service: SessionService = Depends(get_session_service),
):
    """Exchange email and password for a fresh token pair.

    Unknown email and wrong password fail identically.
    """
    try:
        result = service.login(payload.email, payload.password)
    except AuthServiceError as exc:
        record_auth_event("login", success=False)
        record_auth_failure(exc.error_code)
        raise
    record_auth_event("login", success=True)
    return Envelope(data=_auth_response(result))


@router.post("/refresh", response_model=Envelope[TokenPairResponse])
@limiter.limit(get_rate_limit("refresh"))
def refresh(
    request: Request,
    payload: RefreshRequest,
    service: SessionService = Depends(get_session_service),
):
    """Rotate a refresh token. Each refresh token works exactly once."""
    try:
        tokens = service.refresh(payload.refresh_token)
    except AuthServiceError as exc:
        record_auth_event("refresh", success=False)
        record_auth_failure(exc.error_code)
        raise
    record_auth_event("refresh", success=True)
    return Envelope(data=_token_pair_response(tokens))


@router.post("/logout", response_model=Envelope[MessageData])
def logout(
    payload: LogoutRequest,
    service: SessionService = Depends(get_session_service),
):
    """Revoke one refresh token. Unknown or already-revoked tokens still succeed."""
    service.logout(payload.refresh_token)
    record_auth_event("logout", success=True)
    return Envelope(data=MessageData(message="Logged out successfully"))


@router.post("/reset-password", response_model=Envelope[MessageData])
@limiter.limit(get_rate_limit("reset_password"))
def reset_password(
    request: Request,
    payload: ResetPasswordRequest,
    service: SessionService = Depends(get_session_service),
):
    service.reset_password(payload.email)
    return Envelope(
        data=MessageData(message="If an account exists for that email, reset instructions have been sent")
    )


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------

@router.post("/logout-all", response_model=Envelope[MessageData])
def logout_all_devices(
    current_user: User = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    """Revoke every refresh token the caller owns.

    Access tokens already issued stay valid until they expire.
    """
    service.logout_all_devices(current_user.id)
    record_auth_event("logout_all", success=True)
    return Envelope(data=MessageData(message="Logged out from all devices"))


@router.put("/update-password", response_model=Envelope[MessageData])
def update_password(
    payload: UpdatePasswordRequest,
    current_user: User = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    try:
        service.update_password(current_user.id, payload.current_password, payload.new_password)
    except AuthServiceError:
        record_auth_event("update_password", success=False)
        raise
    record_auth_event("update_password", success=True)
    return Envelope(data=MessageData(message="Password updated successfully"))


@router.get("/profile", response_model=Envelope[UserResponse])
def get_profile(
    current_user: User = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    user = service.get_profile(current_user.id)
    return Envelope(data=UserResponse.model_validate(user))
