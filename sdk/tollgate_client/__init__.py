"""Python client for the Tollgate authentication service"""
from tollgate_client.api import AuthApi
from tollgate_client.errors import SessionExpiredError, StorageError, TollgateClientError
from tollgate_client.models import ActionResult, ApiError, ApiResult, TokenPair, User
from tollgate_client.session import SessionManager
from tollgate_client.storage import EncryptedFileStore, InMemorySecureStore, SecureStore

__version__ = "0.1.0"

__all__ = [
    "ActionResult",
    "ApiError",
    "ApiResult",
    "AuthApi",
    "EncryptedFileStore",
    "InMemorySecureStore",
    "SecureStore",
    "SessionExpiredError",
    "SessionManager",
    "StorageError",
    "TokenPair",
    "TollgateClientError",
    "User",
]
