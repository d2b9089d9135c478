"""API dependencies for authentication.

Auth-required endpoints read ``Authorization: Bearer <access token>``.

- no header, or an empty token      → 401 ``MissingToken``
- bad signature, expired, wrong type → 403 ``InvalidToken``
- valid token whose user is gone     → 403 ``InvalidToken``
"""
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from tollgate.database import get_db
from tollgate.errors import InvalidToken, MissingToken
from tollgate.middleware.monitoring import record_auth_failure
from tollgate.models.user import User
from tollgate.services.session_service import SessionService
from tollgate.utils.jwt_utils import TokenFailure, get_token_issuer

_bearer_scheme = HTTPBearer(auto_error=False)


def get_session_service(db: Session = Depends(get_db)) -> SessionService:
    """One service per request, bound to the request's database session."""
    return SessionService(db)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the access token to its user. The user row is re-read every call."""
    if credentials is None or not credentials.credentials:
        record_auth_failure("missing_token")
        raise MissingToken()

    claims = get_token_issuer().verify_access_token(credentials.credentials)
    if isinstance(claims, TokenFailure):
        record_auth_failure("invalid_token")
        raise InvalidToken()

    user = db.query(User).filter(User.id == claims.sub).first()
    if user is None:
        record_auth_failure("invalid_token")
        raise InvalidToken()
    return user
