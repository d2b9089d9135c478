"""Credential Store: persistence of user records"""
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tollgate.errors import DuplicateEmail, NotFound
from tollgate.models.user import User
from tollgate.utils.auth import normalize_email


class CredentialStore:
    """Reads and writes :class:`User` rows.

    Every write is a single statement committed immediately. Emails are
    normalized on the way in, so callers may pass them as typed.
    """

    def __init__(self, db: Session):
        self.db = db

    def create(self, email: str, full_name: str, password_hash: str) -> User:
        """Insert a user. Raises :class:`DuplicateEmail` if the email is taken."""
        email = normalize_email(email)
        if self.find_by_email(email) is not None:
            raise DuplicateEmail()

        user = User(email=email, full_name=full_name, password_hash=password_hash)
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race against a concurrent signup for the same email
            self.db.rollback()
            raise DuplicateEmail()
        self.db.refresh(user)
        return user

    def find_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == normalize_email(email)).first()

    def find_by_id(self, user_id: str) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def update_password_hash(self, user_id: str, new_hash: str) -> None:
        """Replace a user's password hash. Raises :class:`NotFound` if absent."""
        updated = (
            self.db.query(User)
            .filter(User.id == user_id)
            .update(
                {User.password_hash: new_hash, User.updated_at: datetime.utcnow()},
                synchronize_session="fetch",
            )
        )
        if not updated:
            self.db.rollback()
            raise NotFound("User not found")
        self.db.commit()

    def count(self) -> int:
        return self.db.query(User).count()
