"""RefreshToken model: hashed refresh tokens with expiry and revocation state"""
import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from tollgate.database import Base


class RefreshToken(Base):
    """One issued refresh token, i.e. one device session.

    The raw token is never stored: ``token_hash`` is a bcrypt hash of its
    SHA-256 digest. ``id`` doubles as the token's ``jti`` claim so validation
    can narrow candidates before comparing hashes.

    A record is *active* iff ``revoked_at`` is null and ``expires_at`` is in
    the future. Rotation revokes the presented record and inserts a new one.
    """

    __tablename__ = "refresh_tokens"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(100), nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
    revoked_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="refresh_tokens")

    def __repr__(self):
        return f"<RefreshToken id={self.id} user_id={self.user_id} revoked={self.revoked_at is not None}>"
