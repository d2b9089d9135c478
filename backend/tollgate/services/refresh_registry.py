"""Refresh Token Registry: storage, validation, revocation and rotation of refresh tokens"""
from datetime import datetime, timezone
from typing import NamedTuple, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from tollgate.errors import InvalidRefreshToken
from tollgate.models.refresh_token import RefreshToken
from tollgate.models.user import User
from tollgate.utils.auth import hash_secret, verify_secret
from tollgate.utils.jwt_utils import TokenFailure, TokenIssuer, TokenPair, get_token_issuer
from tollgate.utils.logger import logger


class RefreshTokenMatch(NamedTuple):
    user_id: str
    record_id: str


def _exp_to_datetime(exp: int) -> datetime:
    return datetime.fromtimestamp(exp, tz=timezone.utc).replace(tzinfo=None)


class RefreshTokenRegistry:
    """Owns all revocation state for refresh tokens.

    Raw tokens are never persisted; each record keeps a salted hash and is
    keyed by the token's ``jti`` claim. Because the hash is salted it cannot
    be looked up by equality, so validation narrows by ``jti`` and then
    compares hashes candidate by candidate.
    """

    def __init__(self, db: Session, issuer: Optional[TokenIssuer] = None):
        self.db = db
        self.issuer = issuer or get_token_issuer()

    def store(self, user_id: str, raw_refresh_token: str) -> RefreshToken:
        """Persist a hashed record for a freshly issued refresh token."""
        claims = self.issuer.verify_refresh_token(raw_refresh_token)
        if isinstance(claims, TokenFailure):
            raise InvalidRefreshToken(f"Refusing to store refresh token: {claims.kind.value}")

        record = RefreshToken(
            id=claims.jti,
            user_id=user_id,
            token_hash=hash_secret(raw_refresh_token),
            expires_at=_exp_to_datetime(claims.exp),
        )
        self.db.add(record)
        self.db.commit()
        return record

    def validate(self, raw_refresh_token: str) -> Optional[RefreshTokenMatch]:
        """Return the owning user and record for an active token, else None."""
        claims = self.issuer.verify_refresh_token(raw_refresh_token)
        if isinstance(claims, TokenFailure):
            logger.debug(f"Refresh token rejected: {claims.kind.value}")
            return None

        now = datetime.utcnow()
        candidates = (
            self.db.query(RefreshToken)
            .filter(
                RefreshToken.id == claims.jti,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at > now,
            )
            .all()
        )
        for record in candidates:
            if verify_secret(raw_refresh_token, record.token_hash):
                return RefreshTokenMatch(user_id=record.user_id, record_id=record.id)
        return None

    def revoke(self, record_id: str) -> bool:
        """Revoke one record. Returns False if it was already revoked or absent."""
        updated = (
            self.db.query(RefreshToken)
            .filter(RefreshToken.id == record_id, RefreshToken.revoked_at.is_(None))
            .update({RefreshToken.revoked_at: datetime.utcnow()}, synchronize_session=False)
        )
        self.db.commit()
        return updated == 1

    def revoke_all_for_user(self, user_id: str) -> int:
        """Revoke every active record owned by ``user_id``."""
        now = datetime.utcnow()
        updated = (
            self.db.query(RefreshToken)
            .filter(
                RefreshToken.user_id == user_id,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at > now,
            )
            .update({RefreshToken.revoked_at: now}, synchronize_session=False)
        )
        self.db.commit()
        return updated

    def rotate(self, raw_refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a brand-new pair, exactly once.

        The old record is revoked and committed before the replacement is
        issued, so a crash in between loses the session instead of leaving
        two valid refresh tokens.
        """
        match = self.validate(raw_refresh_token)
        if match is None:
            raise InvalidRefreshToken()

        # Conditional update: a concurrent replay that also validated loses here
        if not self.revoke(match.record_id):
            logger.warning(
                "Refresh token replay lost rotation race",
                extra={"user_id": match.user_id, "record_id": match.record_id, "action": "rotate"},
            )
            raise InvalidRefreshToken()

        user = self.db.query(User).filter(User.id == match.user_id).first()
        if user is None:
            raise InvalidRefreshToken()

        pair = self.issuer.issue_pair(user)
        record = self.store(user.id, pair.refresh_token)

        logger.info(
            "Rotated refresh token",
            extra={"user_id": user.id, "record_id": record.id, "action": "rotate"},
        )
        return pair

    def _purgeable(self, cutoff: datetime):
        return self.db.query(RefreshToken).filter(
            or_(RefreshToken.expires_at < cutoff, RefreshToken.revoked_at < cutoff)
        )

    def count_purgeable(self, cutoff: datetime) -> int:
        return self._purgeable(cutoff).count()

    def purge_expired(self, cutoff: datetime) -> int:
        """Delete records that expired or were revoked before ``cutoff``."""
        deleted = self._purgeable(cutoff).delete(synchronize_session=False)
        self.db.commit()
        return deleted

    def active_count(self, user_id: Optional[str] = None) -> int:
        query = self.db.query(RefreshToken).filter(
            RefreshToken.revoked_at.is_(None),
            RefreshToken.expires_at > datetime.utcnow(),
        )
        if user_id is not None:
            query = query.filter(RefreshToken.user_id == user_id)
        return query.count()
