"""Local inspection of access tokens.

Only the ``exp`` claim is read, without checking the signature; the client
never holds a verification key and the server re-verifies everything.
"""
import logging
import time
from typing import Optional

from jose import JWTError, jwt

logger = logging.getLogger(__name__)


def get_expiry(token: str) -> Optional[int]:
    """Return the ``exp`` claim as a unix timestamp, or None if unreadable."""
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError as exc:
        logger.debug("Could not decode token: %s", exc)
        return None
    exp = claims.get("exp")
    if exp is None:
        return None
    try:
        return int(exp)
    except (TypeError, ValueError):
        return None


def will_expire_soon(token: str, within_seconds: int = 60, now: Optional[float] = None) -> bool:
    """True if ``token`` expires within ``within_seconds``.

    Undecodable tokens and tokens without ``exp`` count as expiring.
    """
    exp = get_expiry(token)
    if exp is None:
        return True
    current = int(now if now is not None else time.time())
    return exp - current < within_seconds


def is_expired(token: str, now: Optional[float] = None) -> bool:
    return will_expire_soon(token, 0, now=now)
