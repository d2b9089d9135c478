"""Session Service: signup, login, refresh, logout and password flows"""
from typing import NamedTuple, Optional

from sqlalchemy.orm import Session

from tollgate.config import settings
from tollgate.errors import IncorrectCurrentPassword, InvalidCredentials, NotFound
from tollgate.models.user import User
from tollgate.services.credential_store import CredentialStore
from tollgate.services.refresh_registry import RefreshTokenRegistry
from tollgate.utils.auth import dummy_password_hash, hash_password, verify_password
from tollgate.utils.jwt_utils import TokenIssuer, TokenPair, get_token_issuer
from tollgate.utils.logger import logger
from tollgate.utils.notifications import send_password_reset


class AuthResult(NamedTuple):
    user: User
    tokens: TokenPair


class SessionService:
    """Orchestrates the credential store, token issuer and refresh registry.

    One instance per request; it shares that request's database session.
    """

    def __init__(self, db: Session, issuer: Optional[TokenIssuer] = None):
        self.issuer = issuer or get_token_issuer()
        self.credentials = CredentialStore(db)
        self.registry = RefreshTokenRegistry(db, self.issuer)

    def _start_session(self, user: User) -> TokenPair:
        pair = self.issuer.issue_pair(user)
        self.registry.store(user.id, pair.refresh_token)
        return pair

    def signup(self, email: str, full_name: str, password: str) -> AuthResult:
        user = self.credentials.create(email, full_name, hash_password(password))
        tokens = self._start_session(user)
        logger.info("User signed up", extra={"user_id": user.id, "action": "signup"})
        return AuthResult(user=user, tokens=tokens)

    def login(self, email: str, password: str) -> AuthResult:
        user = self.credentials.find_by_email(email)
        if user is None:
            # Same bcrypt cost as a real check so timing does not reveal the account
            verify_password(password, dummy_password_hash())
            raise InvalidCredentials()
        if not verify_password(password, user.password_hash):
            raise InvalidCredentials()

        tokens = self._start_session(user)
        logger.info("User logged in", extra={"user_id": user.id, "action": "login"})
        return AuthResult(user=user, tokens=tokens)

    def refresh(self, raw_refresh_token: str) -> TokenPair:
        return self.registry.rotate(raw_refresh_token)

    def logout(self, raw_refresh_token: str) -> None:
        """Revoke the presented token's record. Unknown tokens are a no-op."""
        match = self.registry.validate(raw_refresh_token)
        if match is None:
            return
        self.registry.revoke(match.record_id)
        logger.info(
            "User logged out",
            extra={"user_id": match.user_id, "record_id": match.record_id, "action": "logout"},
        )

    def logout_all_devices(self, user_id: str) -> int:
        revoked = self.registry.revoke_all_for_user(user_id)
        logger.info(
            f"Revoked {revoked} session(s)",
            extra={"user_id": user_id, "action": "logout_all"},
        )
        return revoked

    def update_password(self, user_id: str, current_password: str, new_password: str) -> None:
        user = self.credentials.find_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        if not verify_password(current_password, user.password_hash):
            raise IncorrectCurrentPassword()

        self.credentials.update_password_hash(user_id, hash_password(new_password))
        logger.info("Password updated", extra={"user_id": user_id, "action": "update_password"})

        if settings.REVOKE_SESSIONS_ON_PASSWORD_CHANGE:
            self.registry.revoke_all_for_user(user_id)

    def reset_password(self, email: str) -> None:
        """Request a reset. Succeeds whether or not the account exists."""
        user = self.credentials.find_by_email(email)
        if user is None:
            logger.info("Password reset requested for unknown account", extra={"action": "reset_password"})
            return
        send_password_reset(user.id, user.email)

    def get_profile(self, user_id: str) -> User:
        user = self.credentials.find_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        return user
