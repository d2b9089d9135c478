"""Thin HTTP layer over the Tollgate auth endpoints"""
import logging
from typing import Any, Dict, Optional

import requests

from tollgate_client.models import NETWORK_ERROR, PARSE_ERROR, ApiError, ApiResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class AuthApi:
    """Sends requests and normalizes every outcome into an :class:`ApiResult`.

    Nothing here raises for HTTP errors, unreachable servers or unparseable
    bodies; those come back as ``ApiResult(success=False, ...)`` with error
    codes ``NetworkError`` or ``ParseError``. Token bookkeeping is left to
    :class:`tollgate_client.session.SessionManager`.
    """

    def __init__(
        self,
        base_url: str,
        session: Optional[Any] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """
        Args:
            base_url: API root including the prefix (e.g. ``http://localhost:8000/api``).
            session:  Object with a ``requests.Session``-style ``request`` method.
            timeout:  Per-request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def send(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        access_token: Optional[str] = None,
    ) -> ApiResult:
        """Make one request. ``access_token`` is sent as a Bearer token when given."""
        url = f"{self.base_url}{path}"
        headers = {"Accept": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"

        try:
            response = self.session.request(method, url, json=json, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("Request to %s %s failed: %s", method, path, exc)
            return ApiResult(
                success=False,
                status=0,
                error=ApiError(NETWORK_ERROR, "Network error. Check your connection and try again."),
            )

        return self._parse(response, method, path)

    @staticmethod
    def _parse(response: Any, method: str, path: str) -> ApiResult:
        status = response.status_code
        try:
            body = response.json()
        except ValueError:
            logger.warning("Unparseable response from %s %s (HTTP %s)", method, path, status)
            return ApiResult(
                success=False,
                status=status,
                error=ApiError(PARSE_ERROR, "Unexpected response from server."),
            )

        if not isinstance(body, dict):
            return ApiResult(
                success=False,
                status=status,
                error=ApiError(PARSE_ERROR, "Unexpected response from server."),
            )

        if 200 <= status < 300 and body.get("success", False):
            return ApiResult(success=True, status=status, data=body.get("data"))

        error = body.get("error") or {}
        return ApiResult(
            success=False,
            status=status,
            error=ApiError(
                code=error.get("code", f"HTTP{status}"),
                message=error.get("message", f"Request failed with HTTP {status}"),
                details=error.get("details"),
            ),
        )

    # ========== Unauthenticated endpoints ==========

    def signup(self, email: str, password: str, full_name: str) -> ApiResult:
        return self.send("POST", "/signup", json={"email": email, "password": password, "fullName": full_name})

    def login(self, email: str, password: str) -> ApiResult:
        return self.send("POST", "/login", json={"email": email, "password": password})

    def refresh(self, refresh_token: str) -> ApiResult:
        return self.send("POST", "/refresh", json={"refreshToken": refresh_token})

    def logout(self, refresh_token: str) -> ApiResult:
        return self.send("POST", "/logout", json={"refreshToken": refresh_token})

    def reset_password(self, email: str) -> ApiResult:
        return self.send("POST", "/reset-password", json={"email": email})
