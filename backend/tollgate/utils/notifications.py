"""Fire-and-forget webhook hand-off for password reset requests.

Tollgate does not send email. When a reset is requested for an existing
account, a ``password_reset.requested`` event is posted to
``PASSWORD_RESET_WEBHOOK_URL`` and the receiver owns delivery.
"""
import hashlib
import hmac
import json
import threading
from datetime import datetime
from typing import Any, Dict

import requests

from tollgate.config import settings
from tollgate.utils.logger import logger

PASSWORD_RESET_REQUESTED = "password_reset.requested"


def _deliver(url: str, body: bytes, headers: Dict[str, str]) -> None:
    """Deliver webhook payload in a daemon background thread (fire-and-forget)."""
    try:
        resp = requests.post(url, data=body, headers=headers, timeout=5)
        logger.debug(
            "Webhook delivered",
            extra={"action": "webhook", "status": resp.status_code},
        )
    except requests.RequestException as exc:
        logger.warning(
            "Webhook delivery failed",
            extra={"action": "webhook", "error": str(exc)},
        )


def _dispatch(url: str, body: bytes, headers: Dict[str, str]) -> None:
    threading.Thread(target=_deliver, args=(url, body, headers), daemon=True).start()


def build_request(event_type: str, payload: Dict[str, Any], secret: str = None):
    """Return ``(body, headers)`` for an event, signed when ``secret`` is set."""
    body_dict: Dict[str, Any] = {
        "event": event_type,
        "timestamp": datetime.utcnow().isoformat() + "Z",
        **payload,
    }
    body = json.dumps(body_dict, default=str).encode()
    headers = {"Content-Type": "application/json"}

    if secret:
        sig = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
        headers["X-Tollgate-Signature"] = f"sha256={sig}"
    return body, headers


def send_password_reset(user_id: str, email: str) -> bool:
    """
    Hand a password reset request to the configured receiver (non-blocking).

    Configuration (backend/.env):
      - ``PASSWORD_RESET_WEBHOOK_URL``: destination URL; unset means log only.
      - ``PASSWORD_RESET_WEBHOOK_SECRET``: if set, adds
        ``X-Tollgate-Signature: sha256=<hex>`` so the receiver can verify authenticity.

    Returns True when a delivery was dispatched.
    """
    url = settings.PASSWORD_RESET_WEBHOOK_URL
    if not url:
        logger.info(
            "Password reset requested (no webhook configured)",
            extra={"user_id": user_id, "action": "reset_password"},
        )
        return False

    body, headers = build_request(
        PASSWORD_RESET_REQUESTED,
        {"user_id": user_id, "email": email},
        secret=settings.PASSWORD_RESET_WEBHOOK_SECRET,
    )
    _dispatch(url, body, headers)
    return True
