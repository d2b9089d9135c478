"""Database models"""
from tollgate.models.refresh_token import RefreshToken
from tollgate.models.user import User

__all__ = ["RefreshToken", "User"]
