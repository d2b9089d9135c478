"""Tests for the prune script and the password reset webhook"""
import hashlib
import hmac
import json
from datetime import datetime, timedelta

from sqlalchemy.orm import sessionmaker

import prune_refresh_tokens
from tollgate.config import settings
from tollgate.models.refresh_token import RefreshToken
from tollgate.services.credential_store import CredentialStore
from tollgate.services.refresh_registry import RefreshTokenRegistry
from tollgate.utils import notifications
from tollgate.utils.auth import hash_password
from tollgate.utils.jwt_utils import TokenIssuer

issuer = TokenIssuer(algorithm="HS256", signing_key="ops-test-secret")


def _seed_records(db):
    user = CredentialStore(db).create("a@x.com", "A", hash_password("secret1"))
    registry = RefreshTokenRegistry(db, issuer)
    live = registry.store(user.id, issuer.issue_refresh_token())
    stale = registry.store(user.id, issuer.issue_refresh_token())
    stale.expires_at = datetime.utcnow() - timedelta(days=90)
    db.commit()
    return live.id, stale.id


def test_prune_deletes_stale_records(db, monkeypatch, capsys):
    live_id, _ = _seed_records(db)
    monkeypatch.setattr(prune_refresh_tokens, "SessionLocal", sessionmaker(bind=db.get_bind()))

    assert prune_refresh_tokens.main(["--days", "30"]) == 0
    assert "Deleted 1" in capsys.readouterr().out

    db.expire_all()
    assert [r.id for r in db.query(RefreshToken).all()] == [live_id]


def test_prune_dry_run_keeps_records(db, monkeypatch, capsys):
    _seed_records(db)
    monkeypatch.setattr(prune_refresh_tokens, "SessionLocal", sessionmaker(bind=db.get_bind()))

    assert prune_refresh_tokens.main(["--days", "30", "--dry-run"]) == 0
    assert "Would delete 1" in capsys.readouterr().out

    db.expire_all()
    assert db.query(RefreshToken).count() == 2


def test_webhook_signature():
    body, headers = notifications.build_request(
        notifications.PASSWORD_RESET_REQUESTED,
        {"user_id": "u1", "email": "a@x.com"},
        secret="hook-secret",
    )
    payload = json.loads(body)
    assert payload["event"] == "password_reset.requested"
    assert payload["email"] == "a@x.com"

    expected = hmac.new(b"hook-secret", body, hashlib.sha256).hexdigest()
    assert headers["X-Tollgate-Signature"] == f"sha256={expected}"


def test_webhook_unsigned_without_secret():
    _, headers = notifications.build_request("password_reset.requested", {"user_id": "u1"})
    assert "X-Tollgate-Signature" not in headers


def test_password_reset_without_webhook_only_logs(monkeypatch):
    dispatched = []
    monkeypatch.setattr(settings, "PASSWORD_RESET_WEBHOOK_URL", None)
    monkeypatch.setattr(notifications, "_dispatch", lambda *args: dispatched.append(args))

    assert notifications.send_password_reset("u1", "a@x.com") is False
    assert dispatched == []


def test_password_reset_dispatches_webhook(monkeypatch):
    dispatched = []
    monkeypatch.setattr(settings, "PASSWORD_RESET_WEBHOOK_URL", "https://hooks.example.com/reset")
    monkeypatch.setattr(settings, "PASSWORD_RESET_WEBHOOK_SECRET", "hook-secret")
    monkeypatch.setattr(notifications, "_dispatch", lambda *args: dispatched.append(args))

    assert notifications.send_password_reset("u1", "a@x.com") is True

    url, body, headers = dispatched[0]
    assert url == "https://hooks.example.com/reset"
    assert json.loads(body)["user_id"] == "u1"
    assert headers["X-Tollgate-Signature"].startswith("sha256=")
