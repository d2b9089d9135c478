"""Password and secret hashing utilities"""
import hashlib
from functools import lru_cache

import bcrypt

from tollgate.config import settings

# bcrypt only looks at the first 72 bytes of its input
_BCRYPT_MAX_BYTES = 72


def _prepare_password(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def _prepare_secret(secret: str) -> bytes:
    # Tokens are longer than 72 bytes and share a common JWT header prefix,
    # so digest first to make every byte count.
    return hashlib.sha256(secret.encode("utf-8")).hexdigest().encode("ascii")


def hash_password(password: str) -> str:
    """Hash a plaintext password with bcrypt at the configured cost"""
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(_prepare_password(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time check of a plaintext password against a stored hash"""
    try:
        return bcrypt.checkpw(_prepare_password(password), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def hash_secret(secret: str) -> str:
    """Hash a long opaque secret (e.g. a raw refresh token) for storage"""
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(_prepare_secret(secret), salt).decode("utf-8")


def verify_secret(secret: str, secret_hash: str) -> bool:
    """Constant-time check of a raw secret against a stored hash"""
    try:
        return bcrypt.checkpw(_prepare_secret(secret), secret_hash.encode("utf-8"))
    except ValueError:
        return False


@lru_cache(maxsize=1)
def dummy_password_hash() -> str:
    """Hash used to burn equal time when a login email is unknown"""
    return hash_password("tollgate-timing-equalizer")


def normalize_email(email: str) -> str:
    return email.strip().lower()
