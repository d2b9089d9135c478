"""Authentication session lifecycle services"""
from tollgate.services.credential_store import CredentialStore
from tollgate.services.refresh_registry import RefreshTokenMatch, RefreshTokenRegistry
from tollgate.services.session_service import AuthResult, SessionService

__all__ = [
    "AuthResult",
    "CredentialStore",
    "RefreshTokenMatch",
    "RefreshTokenRegistry",
    "SessionService",
]
