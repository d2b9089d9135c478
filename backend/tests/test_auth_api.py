"""Tests for the session lifecycle endpoints"""
from fastapi.testclient import TestClient

from tollgate.config import settings
from tollgate.models.user import User

API = "/api"


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Signup
# ---------------------------------------------------------------------------

def test_signup_returns_user_and_tokens(client: TestClient, signup_data: dict):
    """Test signing up a fresh email"""
    response = client.post(f"{API}/signup", json=signup_data)
    assert response.status_code == 201

    body = response.json()
    assert body["success"] is True
    assert body["error"] is None

    data = body["data"]
    assert data["accessToken"]
    assert data["refreshToken"]
    assert data["tokenType"] == "bearer"
    assert data["expiresIn"] == settings.ACCESS_TOKEN_EXPIRE_SECONDS
    assert data["user"]["email"] == "a@x.com"
    assert data["user"]["fullName"] == "A"
    assert "passwordHash" not in data["user"]
    assert "password_hash" not in data["user"]


def test_signup_duplicate_email(client: TestClient, db, signup_data: dict, signed_up: dict):
    """Test that reusing an email fails and creates no user"""
    response = client.post(f"{API}/signup", json={**signup_data, "fullName": "Other"})
    assert response.status_code == 400

    body = response.json()
    assert body["success"] is False
    assert body["data"] is None
    assert body["error"]["code"] == "DuplicateEmail"
    assert body["error"]["message"] == "Email already exists"
    assert db.query(User).count() == 1


def test_signup_normalizes_email(client: TestClient):
    """Test that emails are trimmed and lower-cased"""
    response = client.post(
        f"{API}/signup",
        json={"email": "  Mixed@Example.COM ", "password": "secret1", "fullName": "M"},
    )
    assert response.status_code == 201
    assert response.json()["data"]["user"]["email"] == "mixed@example.com"

    login = client.post(f"{API}/login", json={"email": "mixed@example.com", "password": "secret1"})
    assert login.status_code == 200


def test_signup_validation_errors(client: TestClient):
    """Test that invalid input is rejected with field details"""
    cases = [
        {"email": "not-an-email", "password": "secret1", "fullName": "A"},
        {"email": "a@x.com", "password": "123", "fullName": "A"},
        {"email": "a@x.com", "password": "secret1", "fullName": ""},
        {"email": "a@x.com", "password": "secret1", "fullName": "x" * 256},
        {"email": "a@x.com", "password": "secret1"},
    ]
    for payload in cases:
        response = client.post(f"{API}/signup", json=payload)
        assert response.status_code == 400, payload
        error = response.json()["error"]
        assert error["code"] == "ValidationError"
        assert error["details"]


def test_validation_errors_do_not_echo_password(client: TestClient):
    """Test that submitted values never appear in validation details"""
    for payload in (
        {"email": "a@x.com", "password": "s3cr", "fullName": "A"},
        {"email": "a@x.com", "password": "hunter2-secret"},
    ):
        response = client.post(f"{API}/signup", json=payload)
        assert response.status_code == 400
        assert payload["password"] not in response.text
        for detail in response.json()["error"]["details"]:
            assert "input" not in detail
            assert "url" not in detail


def test_signup_accepts_snake_case_fields(client: TestClient):
    """Test that full_name is accepted as well as fullName"""
    response = client.post(
        f"{API}/signup",
        json={"email": "s@x.com", "password": "secret1", "full_name": "Snake"},
    )
    assert response.status_code == 201
    assert response.json()["data"]["user"]["fullName"] == "Snake"


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------

def test_login_after_signup(client: TestClient, signup_data: dict, signed_up: dict):
    """Test that the same credentials log in"""
    response = client.post(
        f"{API}/login",
        json={"email": signup_data["email"], "password": signup_data["password"]},
    )
    assert response.status_code == 200

    data = response.json()["data"]
    assert data["user"]["id"] == signed_up["user"]["id"]
    assert data["accessToken"] != signed_up["accessToken"]
    assert data["refreshToken"] != signed_up["refreshToken"]


def test_login_errors_do_not_reveal_account(client: TestClient, signed_up: dict):
    """Test wrong password and unknown email fail identically"""
    wrong_password = client.post(f"{API}/login", json={"email": "a@x.com", "password": "wrong"})
    unknown_email = client.post(f"{API}/login", json={"email": "nobody@x.com", "password": "secret1"})

    assert wrong_password.status_code == 401
    assert unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()
    assert wrong_password.json()["error"] == {"code": "InvalidCredentials", "message": "Invalid credentials"}


# ---------------------------------------------------------------------------
# Refresh
# ---------------------------------------------------------------------------

def test_refresh_is_single_use(client: TestClient, signed_up: dict):
    """Test that a refresh token works exactly once"""
    refresh_token = signed_up["refreshToken"]

    first = client.post(f"{API}/refresh", json={"refreshToken": refresh_token})
    assert first.status_code == 200
    pair = first.json()["data"]
    assert pair["accessToken"]
    assert pair["refreshToken"] != refresh_token
    assert "user" not in pair

    second = client.post(f"{API}/refresh", json={"refreshToken": refresh_token})
    assert second.status_code == 401
    assert second.json()["error"]["code"] == "InvalidRefreshToken"


def test_rotated_token_chain(client: TestClient, signed_up: dict):
    """Test that each rotated token can itself be rotated"""
    token = signed_up["refreshToken"]
    for _ in range(3):
        response = client.post(f"{API}/refresh", json={"refreshToken": token})
        assert response.status_code == 200
        token = response.json()["data"]["refreshToken"]


def test_refresh_rejects_garbage_and_access_tokens(client: TestClient, signed_up: dict):
    """Test that only genuine refresh tokens are accepted"""
    for token in ("garbage", signed_up["accessToken"]):
        response = client.post(f"{API}/refresh", json={"refreshToken": token})
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "InvalidRefreshToken"


def test_refresh_requires_token(client: TestClient):
    """Test that an empty refresh token is a validation error"""
    response = client.post(f"{API}/refresh", json={"refreshToken": ""})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "ValidationError"


# ---------------------------------------------------------------------------
# Logout
# ---------------------------------------------------------------------------

def test_logout_is_idempotent(client: TestClient, signed_up: dict):
    """Test that logging out twice with the same token succeeds"""
    payload = {"refreshToken": signed_up["refreshToken"]}

    first = client.post(f"{API}/logout", json=payload)
    second = client.post(f"{API}/logout", json=payload)
    assert first.status_code == 200
    assert second.status_code == 200
    assert first.json()["data"]["message"]

    refresh = client.post(f"{API}/refresh", json=payload)
    assert refresh.status_code == 401


def test_logout_unknown_token(client: TestClient):
    """Test that logging out an unknown token is a no-op success"""
    response = client.post(f"{API}/logout", json={"refreshToken": "never-issued"})
    assert response.status_code == 200
    assert response.json()["success"] is True


def test_logout_only_ends_one_session(client: TestClient, signed_up: dict):
    """Test that other devices keep their sessions"""
    other = client.post(f"{API}/login", json={"email": "a@x.com", "password": "secret1"}).json()["data"]

    client.post(f"{API}/logout", json={"refreshToken": signed_up["refreshToken"]})

    response = client.post(f"{API}/refresh", json={"refreshToken": other["refreshToken"]})
    assert response.status_code == 200


def test_logout_all_devices(client: TestClient, signed_up: dict):
    """Test that every refresh token of the user is revoked"""
    other = client.post(f"{API}/login", json={"email": "a@x.com", "password": "secret1"}).json()["data"]

    response = client.post(f"{API}/logout-all", headers=bearer(signed_up["accessToken"]))
    assert response.status_code == 200

    for token in (signed_up["refreshToken"], other["refreshToken"]):
        refresh = client.post(f"{API}/refresh", json={"refreshToken": token})
        assert refresh.status_code == 401


def test_logout_all_leaves_other_users_alone(client: TestClient, signed_up: dict):
    """Test that revocation is scoped to the caller"""
    bob = client.post(
        f"{API}/signup",
        json={"email": "b@x.com", "password": "secret1", "fullName": "B"},
    ).json()["data"]

    client.post(f"{API}/logout-all", headers=bearer(signed_up["accessToken"]))

    response = client.post(f"{API}/refresh", json={"refreshToken": bob["refreshToken"]})
    assert response.status_code == 200


# ---------------------------------------------------------------------------
# Access token checks
# ---------------------------------------------------------------------------

def test_profile_requires_token(client: TestClient):
    """Test missing bearer token"""
    response = client.get(f"{API}/profile")
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "MissingToken"


def test_profile_rejects_invalid_token(client: TestClient):
    """Test malformed bearer token"""
    response = client.get(f"{API}/profile", headers=bearer("not-a-jwt"))
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "InvalidToken"


def test_profile_rejects_refresh_token(client: TestClient, signed_up: dict):
    """Test that a refresh token cannot be used as an access token"""
    response = client.get(f"{API}/profile", headers=bearer(signed_up["refreshToken"]))
    assert response.status_code == 403


def test_profile(client: TestClient, signed_up: dict):
    """Test reading the caller's profile"""
    response = client.get(f"{API}/profile", headers=bearer(signed_up["accessToken"]))
    assert response.status_code == 200

    profile = response.json()["data"]
    assert profile["id"] == signed_up["user"]["id"]
    assert profile["email"] == "a@x.com"
    assert profile["fullName"] == "A"
    assert "createdAt" in profile
    assert "updatedAt" in profile


# ---------------------------------------------------------------------------
# Password flows
# ---------------------------------------------------------------------------

def test_update_password_scenario(client: TestClient):
    """Test signup, failed login, password change, and login with the new password"""
    signup = client.post(
        f"{API}/signup",
        json={"email": "a@x.com", "password": "secret1", "fullName": "A"},
    )
    assert signup.status_code == 201
    tokens = signup.json()["data"]
    assert tokens["accessToken"] and tokens["refreshToken"]

    wrong = client.post(f"{API}/login", json={"email": "a@x.com", "password": "wrong"})
    assert wrong.status_code == 401
    assert wrong.json()["error"]["code"] == "InvalidCredentials"

    update = client.put(
        f"{API}/update-password",
        json={"currentPassword": "secret1", "newPassword": "secret2"},
        headers=bearer(tokens["accessToken"]),
    )
    assert update.status_code == 200

    old = client.post(f"{API}/login", json={"email": "a@x.com", "password": "secret1"})
    assert old.status_code == 401
    new = client.post(f"{API}/login", json={"email": "a@x.com", "password": "secret2"})
    assert new.status_code == 200


def test_update_password_wrong_current(client: TestClient, signed_up: dict):
    """Test that a wrong current password is a 400"""
    response = client.put(
        f"{API}/update-password",
        json={"currentPassword": "wrong-one", "newPassword": "secret2"},
        headers=bearer(signed_up["accessToken"]),
    )
    assert response.status_code == 400
    assert response.json()["error"] == {
        "code": "InvalidCredentials",
        "message": "Current password is incorrect",
    }


def test_update_password_short_wrong_current(client: TestClient, signed_up: dict):
    """Test that a short current password is checked, not rejected as malformed"""
    response = client.put(
        f"{API}/update-password",
        json={"currentPassword": "abc", "newPassword": "secret2"},
        headers=bearer(signed_up["accessToken"]),
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "InvalidCredentials"


def test_update_password_keeps_sessions_by_default(client: TestClient, signed_up: dict):
    """Test that other sessions survive a password change"""
    client.put(
        f"{API}/update-password",
        json={"currentPassword": "secret1", "newPassword": "secret2"},
        headers=bearer(signed_up["accessToken"]),
    )
    response = client.post(f"{API}/refresh", json={"refreshToken": signed_up["refreshToken"]})
    assert response.status_code == 200


def test_update_password_can_revoke_sessions(client: TestClient, signed_up: dict, monkeypatch):
    """Test REVOKE_SESSIONS_ON_PASSWORD_CHANGE"""
    monkeypatch.setattr(settings, "REVOKE_SESSIONS_ON_PASSWORD_CHANGE", True)

    client.put(
        f"{API}/update-password",
        json={"currentPassword": "secret1", "newPassword": "secret2"},
        headers=bearer(signed_up["accessToken"]),
    )
    response = client.post(f"{API}/refresh", json={"refreshToken": signed_up["refreshToken"]})
    assert response.status_code == 401


def test_update_password_requires_token(client: TestClient):
    response = client.put(
        f"{API}/update-password",
        json={"currentPassword": "secret1", "newPassword": "secret2"},
    )
    assert response.status_code == 401


def test_reset_password_always_succeeds(client: TestClient, signed_up: dict):
    """Test that reset does not reveal whether the account exists"""
    known = client.post(f"{API}/reset-password", json={"email": "a@x.com"})
    unknown = client.post(f"{API}/reset-password", json={"email": "nobody@x.com"})

    assert known.status_code == 200
    assert unknown.status_code == 200
    assert known.json() == unknown.json()


def test_reset_password_validates_email(client: TestClient):
    response = client.post(f"{API}/reset-password", json={"email": "nope"})
    assert response.status_code == 400


# ---------------------------------------------------------------------------
# Envelope and headers
# ---------------------------------------------------------------------------

def test_unknown_route_uses_envelope(client: TestClient):
    response = client.get(f"{API}/does-not-exist")
    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "NotFound"


def test_request_id_header(client: TestClient):
    """Test that responses carry tracing headers"""
    response = client.get("/health", headers={"X-Request-ID": "req_test"})
    assert response.headers["X-Request-ID"] == "req_test"
    assert response.headers["X-Response-Time"].endswith("s")
