"""Auth request and response schemas"""
from datetime import datetime

from pydantic import EmailStr, Field, field_validator

from tollgate.schemas.common import CamelModel
from tollgate.utils.auth import normalize_email


class SignupRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=6, description="At least 6 characters")
    full_name: str = Field(..., min_length=1, max_length=255)

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value):
        return normalize_email(value) if isinstance(value, str) else value

    @field_validator("full_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Full name is required")
        return value


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value):
        return normalize_email(value) if isinstance(value, str) else value


class RefreshRequest(CamelModel):
    refresh_token: str = Field(..., min_length=1, description="Refresh token is required")


class LogoutRequest(RefreshRequest):
    pass


class ResetPasswordRequest(CamelModel):
    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value):
        return normalize_email(value) if isinstance(value, str) else value


class UpdatePasswordRequest(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)


class UserResponse(CamelModel):
    id: str
    email: str
    full_name: str
    created_at: datetime
    updated_at: datetime


class TokenPairResponse(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int   # seconds until the access token expires


class AuthResponse(TokenPairResponse):
    user: UserResponse
