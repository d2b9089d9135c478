"""Secure storage for session tokens.

The session manager only needs ``get``/``set``/``delete`` on string values.
Hosts with a platform keychain can plug their own store in; two stores ship
here:

- :class:`InMemorySecureStore`: nothing survives the process.
- :class:`EncryptedFileStore`: a Fernet-encrypted JSON file.
"""
import json
import logging
import os
import tempfile
import threading
from typing import Dict, Optional, Protocol, Tuple

from cryptography.fernet import Fernet, InvalidToken

from tollgate_client.errors import StorageError
from tollgate_client.models import User

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"
USER_KEY = "user"

SESSION_KEYS = (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_KEY)


class SecureStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemorySecureStore:
    """Dictionary-backed store, mainly for tests and short-lived scripts."""

    def __init__(self):
        self._values: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)


class EncryptedFileStore:
    """All keys live in one file, encrypted as a whole with Fernet.

    Pass the ``key`` the host platform keeps for this app. When omitted a new
    key is generated and exposed as :attr:`key`; the caller has to persist it
    to read the file in a later process.
    """

    def __init__(self, path: str, key: Optional[bytes] = None):
        self.path = path
        self.key = key or Fernet.generate_key()
        self._fernet = Fernet(self.key)
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "rb") as fh:
            blob = fh.read()
        if not blob:
            return {}
        try:
            data = json.loads(self._fernet.decrypt(blob))
        except InvalidToken as exc:
            raise StorageError(f"Cannot decrypt {self.path}: wrong key or corrupted file") from exc
        except ValueError as exc:
            raise StorageError(f"Stored session in {self.path} is not valid JSON") from exc
        if not isinstance(data, dict):
            raise StorageError(f"Stored session in {self.path} has an unexpected shape")
        return data

    def _write(self, data: Dict[str, str]) -> None:
        blob = self._fernet.encrypt(json.dumps(data).encode("utf-8"))
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        # Atomic replace so a crash never leaves a half-written file
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".tollgate-")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(blob)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def delete(self, key: str) -> None:
        with self._lock:
            try:
                data = self._read()
            except StorageError:
                # Unreadable file: deleting anything means starting over
                os.unlink(self.path)
                return
            if data.pop(key, None) is not None:
                self._write(data)


# ---------------------------------------------------------------------------
# Session persistence
# ---------------------------------------------------------------------------

def save_session(store: SecureStore, user: User, access_token: str, refresh_token: str) -> None:
    store.set(USER_KEY, json.dumps(user.to_dict()))
    store.set(ACCESS_TOKEN_KEY, access_token)
    store.set(REFRESH_TOKEN_KEY, refresh_token)


def save_tokens(store: SecureStore, access_token: str, refresh_token: str) -> None:
    store.set(ACCESS_TOKEN_KEY, access_token)
    store.set(REFRESH_TOKEN_KEY, refresh_token)


def load_session(store: SecureStore) -> Optional[Tuple[User, str, str]]:
    """Return ``(user, access_token, refresh_token)``, or None if nothing is stored.

    Raises:
        StorageError: a session is partially stored or unreadable.
    """
    raw_user = store.get(USER_KEY)
    access_token = store.get(ACCESS_TOKEN_KEY)
    refresh_token = store.get(REFRESH_TOKEN_KEY)

    if raw_user is None and access_token is None and refresh_token is None:
        return None
    if not (raw_user and access_token and refresh_token):
        raise StorageError("Stored session is incomplete")

    try:
        user = User.from_dict(json.loads(raw_user))
    except (ValueError, KeyError, TypeError) as exc:
        raise StorageError("Stored user is corrupt") from exc
    return user, access_token, refresh_token


def clear_session(store: SecureStore) -> None:
    for key in SESSION_KEYS:
        store.delete(key)
