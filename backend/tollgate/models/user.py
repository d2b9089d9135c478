"""User model: one row per registered account"""
import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship

from tollgate.database import Base


def _uuid_str() -> str:
    return str(uuid.uuid4())


class User(Base):
    """A registered account.

    ``email`` is stored normalized (trimmed, lower-cased) and is unique.
    ``password_hash`` is a bcrypt hash; the plaintext password is never stored.
    Rows are mutated only by a password update and are never deleted.
    """

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    password_hash = Column(String(100), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    refresh_tokens = relationship("RefreshToken", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User id={self.id} email={self.email}>"
