"""Response shapes returned by the Tollgate API and the session manager"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

NETWORK_ERROR = "NetworkError"
PARSE_ERROR = "ParseError"


@dataclass(frozen=True)
class User:
    id: str
    email: str
    full_name: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        """Build from the server's camelCase JSON."""
        return cls(
            id=data["id"],
            email=data["email"],
            full_name=data["fullName"],
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "fullName": self.full_name,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenPair":
        return cls(
            access_token=data["accessToken"],
            refresh_token=data["refreshToken"],
            expires_in=data.get("expiresIn"),
        )


@dataclass(frozen=True)
class ApiError:
    code: str
    message: str
    details: Any = None


@dataclass(frozen=True)
class ApiResult:
    """One HTTP exchange, normalized. ``status`` is 0 when nothing came back."""

    success: bool
    status: int
    data: Any = None
    error: Optional[ApiError] = None


@dataclass(frozen=True)
class ActionResult:
    """Outcome of a user-facing action. Actions never raise for network or server errors."""

    success: bool
    error: Optional[str] = None
    message: Optional[str] = None
    session_expired: bool = False
