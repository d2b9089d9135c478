"""Client-side session management with single-flight token refresh"""
import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Dict, List, Optional

from tollgate_client.api import DEFAULT_TIMEOUT, AuthApi
from tollgate_client.errors import SessionExpiredError, StorageError
from tollgate_client.jwt_utils import will_expire_soon
from tollgate_client.models import ActionResult, ApiResult, TokenPair, User
from tollgate_client.storage import (
    InMemorySecureStore,
    SecureStore,
    clear_session,
    load_session,
    save_session,
    save_tokens,
)

logger = logging.getLogger(__name__)

# Statuses that mean "the access token was not accepted"
AUTH_FAILURE_STATUSES = (401, 403)

# Statuses on /refresh that mean the refresh token itself is dead
REFRESH_REJECTED_STATUSES = (400, 401, 403)

Listener = Callable[["SessionManager"], None]


class SessionManager:
    """Holds ``{user, access_token, refresh_token}`` and keeps it fresh.

    Authentication is handled transparently for :meth:`request`:

    - Before a token is attached, its ``exp`` is read locally; a token with
      less than ``refresh_threshold`` seconds left is refreshed first.
    - A 401/403 on a request that carried a token triggers one refresh and
      one retry. If the retry fails authentication too, the session is
      cleared and :class:`SessionExpiredError` is raised.
    - Only one refresh is ever in flight. Concurrent callers wait on the same
      future; a caller whose token was already rotated does not refresh at all.

    State is mirrored to ``store`` so :meth:`restore_session` can resume it in
    a later process. UI code reads the properties and registers a listener
    with :meth:`subscribe`.
    """

    def __init__(
        self,
        base_url: str,
        store: Optional[SecureStore] = None,
        http_session: Optional[Any] = None,
        timeout: float = DEFAULT_TIMEOUT,
        refresh_threshold: int = 30,
        background_threshold: int = 300,
        api: Optional[AuthApi] = None,
    ):
        self.api = api or AuthApi(base_url, session=http_session, timeout=timeout)
        self.store = store if store is not None else InMemorySecureStore()
        self.refresh_threshold = refresh_threshold
        self.background_threshold = background_threshold

        self._lock = threading.Lock()
        self._refresh_future: Optional["Future[bool]"] = None
        # Bumped when a session starts or ends
        self._generation = 0
        self._user: Optional[User] = None
        self._access_token: Optional[str] = None
        self._refresh_token: Optional[str] = None
        self._is_loading = False

        self._listeners: List[Listener] = []
        self._background_stop: Optional[threading.Event] = None
        self._background_thread: Optional[threading.Thread] = None

    # ---------------------------------------------------------------------------
    # Reactive state
    # ---------------------------------------------------------------------------

    @property
    def user(self) -> Optional[User]:
        return self._user

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    @property
    def refresh_token(self) -> Optional[str]:
        return self._refresh_token

    @property
    def is_authenticated(self) -> bool:
        with self._lock:
            return bool(self._user and self._access_token and self._refresh_token)

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(manager)`` after every state change. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Session listener raised")

    def _set_loading(self, value: bool) -> None:
        self._is_loading = value
        self._notify()

    # ---------------------------------------------------------------------------
    # Internal state transitions
    # ---------------------------------------------------------------------------

    def _start_session(self, data: Dict[str, Any]) -> None:
        user = User.from_dict(data["user"])
        tokens = TokenPair.from_dict(data)
        with self._lock:
            self._user = user
            self._access_token = tokens.access_token
            self._refresh_token = tokens.refresh_token
            self._generation += 1
        self._persist(save_session, user, tokens.access_token, tokens.refresh_token)
        self._notify()

    def _clear_session(self) -> None:
        with self._lock:
            self._user = None
            self._access_token = None
            self._refresh_token = None
            self._generation += 1
        try:
            clear_session(self.store)
        except (OSError, StorageError):
            # In-memory state is already gone; the stale file is harmless without it
            logger.warning("Failed to clear secure storage", exc_info=True)
        self._notify()

    def _persist(self, save: Callable[..., None], *args: Any) -> None:
        try:
            save(self.store, *args)
        except (OSError, StorageError):
            # The in-memory session stays usable; only restore_session loses it
            logger.warning("Failed to write session to secure storage", exc_info=True)

    # ---------------------------------------------------------------------------
    # Refresh protocol
    # ---------------------------------------------------------------------------

    def _refresh(self, stale_access_token: Optional[str] = None) -> bool:
        """Run (or join) the single in-flight refresh. Returns True on success.

        ``stale_access_token`` is the token the caller found wanting; if the
        current token already differs, someone else rotated it and no network
        call is made.
        """
        with self._lock:
            if (
                stale_access_token is not None
                and self._access_token is not None
                and self._access_token != stale_access_token
            ):
                return True

            future = self._refresh_future
            owner = future is None
            if owner:
                refresh_token = self._refresh_token
                if not refresh_token:
                    return False
                generation = self._generation
                future = Future()
                self._refresh_future = future

        if not owner:
            return future.result()

        try:
            outcome = self._perform_refresh(refresh_token, generation)
        except Exception as exc:
            with self._lock:
                self._refresh_future = None
            future.set_exception(exc)
            raise

        with self._lock:
            self._refresh_future = None
        future.set_result(outcome)
        return outcome

    def _perform_refresh(self, refresh_token: str, generation: int) -> bool:
        """Exchange ``refresh_token`` for a new pair on behalf of session ``generation``.

        If that session ended while the call was in flight (logout, or a new
        login), the new pair belongs to nobody: it is revoked on the server
        and never installed.
        """
        result = self.api.refresh(refresh_token)

        if result.success:
            tokens = TokenPair.from_dict(result.data)
            with self._lock:
                current = self._generation == generation
                if current:
                    self._access_token = tokens.access_token
                    self._refresh_token = tokens.refresh_token
            if not current:
                logger.info("Session ended during refresh; revoking the new refresh token")
                revoked = self.api.logout(tokens.refresh_token)
                if not revoked.success:
                    logger.warning("Failed to revoke orphaned refresh token: %s", revoked.error.message)
                return False
            self._persist(save_tokens, tokens.access_token, tokens.refresh_token)
            logger.info("Tokens refreshed")
            self._notify()
            return True

        with self._lock:
            current = self._generation == generation
        if not current:
            logger.info("Refresh finished after the session ended; ignoring result")
        elif result.status in REFRESH_REJECTED_STATUSES:
            logger.warning("Refresh token rejected (%s); clearing session", result.error.code)
            self._clear_session()
        else:
            # Transport trouble or server-side failure: the session may still be good
            logger.warning("Token refresh failed: %s", result.error.message)
        return False

    def _fresh_access_token(self, threshold: int) -> Optional[str]:
        token = self._access_token
        if token and will_expire_soon(token, threshold):
            logger.debug("Access token expiring soon, refreshing")
            self._refresh(stale_access_token=token)
            token = self._access_token
        return token

    # ---------------------------------------------------------------------------
    # Authenticated requests
    # ---------------------------------------------------------------------------

    def request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> ApiResult:
        """Authenticated request with proactive and reactive refresh.

        Raises:
            SessionExpiredError: not logged in, the refresh token was rejected,
                or the retry after a refresh still failed authentication.
        """
        token = self._fresh_access_token(self.refresh_threshold)
        if not token:
            raise SessionExpiredError("Not authenticated")

        result = self.api.send(method, path, json=json, access_token=token)
        if result.status not in AUTH_FAILURE_STATUSES:
            return result

        logger.info("Received HTTP %s, attempting token refresh", result.status)
        if not self._refresh(stale_access_token=token):
            if not self.is_authenticated:
                raise SessionExpiredError()
            # Refresh could not reach the server; report the original failure
            return result

        retry = self.api.send(method, path, json=json, access_token=self._access_token)
        if retry.status in AUTH_FAILURE_STATUSES:
            logger.warning("Request still unauthorized after refresh; clearing session")
            self._clear_session()
            raise SessionExpiredError()
        return retry

    def _authenticated_action(self, method: str, path: str, json: Optional[Dict[str, Any]] = None):
        """Run :meth:`request` and turn the outcome into ``(ApiResult | None, ActionResult | None)``."""
        try:
            result = self.request(method, path, json=json)
        except SessionExpiredError as exc:
            return None, ActionResult(success=False, error=exc.message, session_expired=True)
        if not result.success:
            return result, ActionResult(success=False, error=result.error.message)
        return result, None

    # ---------------------------------------------------------------------------
    # Public actions
    # ---------------------------------------------------------------------------

    def login(self, email: str, password: str) -> ActionResult:
        self._set_loading(True)
        try:
            result = self.api.login(email, password)
            if not result.success:
                return ActionResult(success=False, error=result.error.message)
            self._start_session(result.data)
            return ActionResult(success=True)
        finally:
            self._set_loading(False)

    def signup(self, email: str, password: str, full_name: str) -> ActionResult:
        self._set_loading(True)
        try:
            result = self.api.signup(email, password, full_name)
            if not result.success:
                return ActionResult(success=False, error=result.error.message)
            self._start_session(result.data)
            return ActionResult(success=True)
        finally:
            self._set_loading(False)

    def logout(self) -> ActionResult:
        """Revoke this device's refresh token, then forget the session locally.

        Local logout always happens, even when the server call fails.
        """
        self._set_loading(True)
        try:
            refresh_token = self._refresh_token
            if refresh_token:
                result = self.api.logout(refresh_token)
                if not result.success:
                    logger.warning("Server logout failed: %s", result.error.message)
            self._clear_session()
            return ActionResult(success=True)
        finally:
            self._set_loading(False)

    def logout_all_devices(self) -> ActionResult:
        self._set_loading(True)
        try:
            result, failure = self._authenticated_action("POST", "/logout-all")
            if failure is not None and not failure.session_expired:
                return failure
            self._clear_session()
            if failure is not None:
                return failure
            return ActionResult(success=True, message=result.data.get("message"))
        finally:
            self._set_loading(False)

    def reset_password(self, email: str) -> ActionResult:
        self._set_loading(True)
        try:
            result = self.api.reset_password(email)
            if not result.success:
                return ActionResult(success=False, error=result.error.message)
            return ActionResult(success=True, message=result.data.get("message"))
        finally:
            self._set_loading(False)

    def update_password(self, current_password: str, new_password: str) -> ActionResult:
        self._set_loading(True)
        try:
            result, failure = self._authenticated_action(
                "PUT",
                "/update-password",
                json={"currentPassword": current_password, "newPassword": new_password},
            )
            if failure is not None:
                return failure
            return ActionResult(success=True, message=result.data.get("message"))
        finally:
            self._set_loading(False)

    def get_profile(self) -> ActionResult:
        """Re-read the user from the server and update local state."""
        result, failure = self._authenticated_action("GET", "/profile")
        if failure is not None:
            return failure

        user = User.from_dict(result.data)
        with self._lock:
            access_token, refresh_token = self._access_token, self._refresh_token
            if access_token and refresh_token:
                self._user = user
        if not (access_token and refresh_token):
            return ActionResult(success=False, error=SessionExpiredError().message, session_expired=True)
        self._persist(save_session, user, access_token, refresh_token)
        self._notify()
        return ActionResult(success=True)

    def refresh_tokens(self) -> ActionResult:
        """Force a refresh now (joins one already in flight)."""
        if not self._refresh_token:
            return ActionResult(success=False, error="Not authenticated", session_expired=True)
        if self._refresh():
            return ActionResult(success=True)
        expired = not self.is_authenticated
        return ActionResult(
            success=False,
            error="Session expired. Please log in again." if expired else "Could not refresh session",
            session_expired=expired,
        )

    def restore_session(self) -> ActionResult:
        """Load a session saved by an earlier process.

        Incomplete or unreadable storage is wiped and the manager stays
        logged out. A restored token close to expiry is refreshed right away.
        """
        self._set_loading(True)
        try:
            try:
                stored = load_session(self.store)
            except StorageError as exc:
                logger.warning("Discarding stored session: %s", exc)
                self._clear_session()
                return ActionResult(success=False, error="Stored session was invalid")

            if stored is None:
                return ActionResult(success=False)

            user, access_token, refresh_token = stored
            with self._lock:
                self._user = user
                self._access_token = access_token
                self._refresh_token = refresh_token
                self._generation += 1
            self._notify()

            self._fresh_access_token(self.refresh_threshold)
            if not self.is_authenticated:
                return ActionResult(success=False, error="Session expired. Please log in again.", session_expired=True)
            return ActionResult(success=True)
        finally:
            self._set_loading(False)

    # ---------------------------------------------------------------------------
    # Background refresh
    # ---------------------------------------------------------------------------

    def check_and_refresh(self) -> None:
        """Refresh if the access token expires within ``background_threshold`` seconds."""
        self._fresh_access_token(self.background_threshold)

    def start_background_refresh(self, interval: float = 120) -> None:
        """Run :meth:`check_and_refresh` every ``interval`` seconds on a daemon thread."""
        if self._background_thread is not None and self._background_thread.is_alive():
            return

        stop = threading.Event()

        def run() -> None:
            while True:
                try:
                    self.check_and_refresh()
                except Exception:
                    logger.exception("Background token refresh failed")
                if stop.wait(interval):
                    return

        self._background_stop = stop
        self._background_thread = threading.Thread(target=run, name="tollgate-refresh", daemon=True)
        self._background_thread.start()

    def stop_background_refresh(self, timeout: Optional[float] = None) -> None:
        if self._background_stop is not None:
            self._background_stop.set()
        if self._background_thread is not None:
            self._background_thread.join(timeout)
        self._background_stop = None
        self._background_thread = None
