"""Pydantic schemas for request/response validation"""
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
from tollgate.schemas.common import Envelope, ErrorBody, MessageData

__all__ = [
    "AuthResponse",
    "Envelope",
    "ErrorBody",
    "LoginRequest",
    "LogoutRequest",
    "MessageData",
    "RefreshRequest",
    "ResetPasswordRequest",
    "SignupRequest",
    "TokenPairResponse",
    "UpdatePasswordRequest",
    "UserResponse",
]
