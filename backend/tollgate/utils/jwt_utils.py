"""JWT utilities: signing keys, token issuance and verification.

Verification never raises: it returns either :class:`TokenClaims` or
:class:`TokenFailure`, and callers branch on the type.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, NamedTuple, Optional, Union

from jose import ExpiredSignatureError, JWTError, jwt

from tollgate.config import settings
from tollgate.utils.logger import logger

ACCESS = "access"
REFRESH = "refresh"

# ---------------------------------------------------------------------------
# Keypair management
# ---------------------------------------------------------------------------

_private_key: Any = None   # cryptography RSAPrivateKey object
_public_key: Any = None    # cryptography RSAPublicKey object


def _load_keypair() -> None:
    """Load or auto-generate the RSA keypair.

    Reads JWT_PRIVATE_KEY from settings (PEM string).
    If absent, generates a fresh RSA-2048 keypair for this process only.
    """
    global _private_key, _public_key

    from cryptography.hazmat.primitives import serialization
    from cryptography.hazmat.primitives.asymmetric import rsa

    if settings.JWT_PRIVATE_KEY:
        pem = settings.JWT_PRIVATE_KEY.encode()
        _private_key = serialization.load_pem_private_key(pem, password=None)
        _public_key = _private_key.public_key()
        logger.info("JWT keypair loaded from JWT_PRIVATE_KEY setting")
    else:
        _private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        _public_key = _private_key.public_key()
        logger.warning(
            "JWT_PRIVATE_KEY not set; auto-generated RSA-2048 keypair for this process. "
            "All sessions will be invalidated on restart. "
            "Set JWT_PRIVATE_KEY (PEM) in backend/.env to persist the key."
        )


def get_private_key() -> Any:
    """Return the loaded private key, initialising on first call."""
    if _private_key is None:
        _load_keypair()
    return _private_key


def get_public_key() -> Any:
    """Return the loaded public key, initialising on first call."""
    if _public_key is None:
        _load_keypair()
    return _public_key


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

class TokenFailureKind(str, Enum):
    EXPIRED = "expired"
    INVALID_SIGNATURE = "invalid_signature"
    MALFORMED = "malformed"
    WRONG_TYPE = "wrong_type"


class TokenClaims(NamedTuple):
    """Verified claims. ``sub`` is None for refresh tokens."""
    jti: str
    type: str
    exp: int
    sub: Optional[str] = None


class TokenFailure(NamedTuple):
    kind: TokenFailureKind
    detail: str = ""


VerifyResult = Union[TokenClaims, TokenFailure]


class TokenPair(NamedTuple):
    access_token: str
    refresh_token: str
    expires_in: int   # seconds until the access token expires


# ---------------------------------------------------------------------------
# Issuer
# ---------------------------------------------------------------------------

class TokenIssuer:
    """Mints and verifies access and refresh tokens.

    Access tokens carry ``{iss, sub, jti, iat, exp, type="access"}``.
    Refresh tokens carry ``{iss, jti, iat, exp, type="refresh"}`` and nothing
    that identifies the user; identity is bound only by the registry record.
    """

    def __init__(
        self,
        access_ttl: Optional[int] = None,
        refresh_ttl: Optional[int] = None,
        algorithm: Optional[str] = None,
        signing_key: Any = None,
        verification_key: Any = None,
        issuer: Optional[str] = None,
    ):
        self.access_ttl = settings.ACCESS_TOKEN_EXPIRE_SECONDS if access_ttl is None else access_ttl
        self.refresh_ttl = settings.REFRESH_TOKEN_EXPIRE_SECONDS if refresh_ttl is None else refresh_ttl
        self.algorithm = algorithm or settings.JWT_ALGORITHM
        self.issuer = issuer or settings.JWT_ISSUER
        self._signing_key = signing_key
        self._verification_key = verification_key

    # -- keys ---------------------------------------------------------------

    def _uses_shared_secret(self) -> bool:
        return self.algorithm.upper().startswith("HS")

    def _get_signing_key(self) -> Any:
        if self._signing_key is not None:
            return self._signing_key
        return settings.JWT_SECRET if self._uses_shared_secret() else get_private_key()

    def _get_verification_key(self) -> Any:
        if self._verification_key is not None:
            return self._verification_key
        if self._signing_key is not None and self._uses_shared_secret():
            return self._signing_key
        return settings.JWT_SECRET if self._uses_shared_secret() else get_public_key()

    # -- issuance -----------------------------------------------------------

    def _encode(self, token_type: str, ttl: int, extra_claims: Dict[str, Any]) -> str:
        now = int(datetime.now(timezone.utc).timestamp())
        payload: Dict[str, Any] = {
            "iss": self.issuer,
            "jti": str(uuid.uuid4()),
            "iat": now,
            "exp": now + ttl,
            "type": token_type,
            **extra_claims,
        }
        headers = {"kid": settings.JWT_KEY_ID} if settings.JWT_KEY_ID else None
        return jwt.encode(payload, self._get_signing_key(), algorithm=self.algorithm, headers=headers)

    def issue_access_token(self, user) -> str:
        """Sign a short-lived access token whose subject is ``user.id``."""
        return self._encode(ACCESS, self.access_ttl, {"sub": str(user.id)})

    def issue_refresh_token(self) -> str:
        """Sign a long-lived refresh token with no user-identifying claim."""
        return self._encode(REFRESH, self.refresh_ttl, {})

    def issue_pair(self, user) -> TokenPair:
        return TokenPair(
            access_token=self.issue_access_token(user),
            refresh_token=self.issue_refresh_token(),
            expires_in=self.access_ttl,
        )

    # -- verification -------------------------------------------------------

    def verify(self, token: str, expected_type: str) -> VerifyResult:
        """Check signature, issuer, expiry and type of ``token``."""
        try:
            jwt.get_unverified_header(token)
        except JWTError as exc:
            return TokenFailure(TokenFailureKind.MALFORMED, str(exc))

        try:
            payload = jwt.decode(
                token,
                self._get_verification_key(),
                algorithms=[self.algorithm],
                issuer=self.issuer,
            )
        except ExpiredSignatureError:
            return TokenFailure(TokenFailureKind.EXPIRED, "Token expired")
        except JWTError as exc:
            logger.debug(f"JWT decode failed: {exc}")
            return TokenFailure(TokenFailureKind.INVALID_SIGNATURE, str(exc))

        if payload.get("type") != expected_type:
            return TokenFailure(TokenFailureKind.WRONG_TYPE, f"Expected a {expected_type} token")

        jti = payload.get("jti")
        if not jti:
            return TokenFailure(TokenFailureKind.MALFORMED, "Missing jti claim")

        sub = payload.get("sub")
        if expected_type == ACCESS and not sub:
            return TokenFailure(TokenFailureKind.MALFORMED, "Missing sub claim")

        return TokenClaims(jti=jti, type=payload["type"], exp=int(payload["exp"]), sub=sub)

    def verify_access_token(self, token: str) -> VerifyResult:
        return self.verify(token, ACCESS)

    def verify_refresh_token(self, token: str) -> VerifyResult:
        return self.verify(token, REFRESH)


_issuer: Optional[TokenIssuer] = None


def get_token_issuer() -> TokenIssuer:
    """Process-wide issuer built from settings."""
    global _issuer
    if _issuer is None:
        _issuer = TokenIssuer()
    return _issuer
