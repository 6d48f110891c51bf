"""
Tests for credentials, identity tokens and the bearer-token guard.

Coverage:
- Login against the demo roster and the users table
- Uniform failure for unknown email and wrong password
- Missing, malformed, expired and forged tokens
- Registration only with a database
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from auth import ALGORITHM, decode_token, display_name, issue_token, verify_credentials
from config import settings
from conftest import ALEX
from errors import InvalidCredentials, Unauthorized
from schemas import User, UserView


async def test_login_returns_token_with_identity_claims(client):
    res = await client.post("/api/auth/login", json={"email": ALEX, "password": settings.DEMO_PASSWORD})

    assert res.status_code == 200
    body = res.json()
    assert body["user"] == {"id": "alex-user-id", "email": ALEX, "role": "employee", "name": "Alex Smith"}
    claims = jwt.decode(body["token"], settings.JWT_SECRET, algorithms=[ALGORITHM])
    assert claims["id"] == "alex-user-id"
    assert claims["email"] == ALEX
    assert claims["role"] == "employee"
    assert timedelta(days=6) < datetime.fromtimestamp(claims["exp"], timezone.utc) - datetime.now(timezone.utc)


async def test_login_email_is_case_insensitive(client):
    res = await client.post("/api/auth/login", json={"email": "  ASmith@Beyond26Advisors.com", "password": settings.DEMO_PASSWORD})
    assert res.status_code == 200


@pytest.mark.parametrize(
    "email,password",
    [
        (ALEX, "wrong-password"),
        ("nobody@example.com", "Password123!"),
        (ALEX, ""),
    ],
)
async def test_login_failures_are_indistinguishable(client, email, password):
    res = await client.post("/api/auth/login", json={"email": email, "password": password})

    assert res.status_code == 401
    assert res.json() == {"error": "Invalid credentials"}


async def test_profile_echoes_token_claims(client, alex):
    res = await client.get("/api/auth/profile", headers=alex)

    assert res.status_code == 200
    user = res.json()["user"]
    assert user["id"] == "alex-user-id"
    assert user["role"] == "employee"


@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"Authorization": ""},
        {"Authorization": "Bearer "},
        {"Authorization": "Token abc"},
        {"Authorization": "Bearer not.a.jwt"},
    ],
)
async def test_protected_routes_reject_missing_or_malformed_tokens(client, headers):
    res = await client.get("/api/projects", headers=headers)

    assert res.status_code == 401
    assert res.json() == {"error": "Unauthorized"}


async def test_expired_token_is_rejected(client):
    past = datetime.now(timezone.utc) - timedelta(days=8)
    token = jwt.encode(
        {"id": "alex-user-id", "email": ALEX, "role": "employee", "iat": past, "exp": past + timedelta(days=7)},
        settings.JWT_SECRET,
        algorithm=ALGORITHM,
    )
    res = await client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 401


async def test_token_signed_with_another_secret_is_rejected(client):
    token = jwt.encode(
        {"id": "alex-user-id", "email": ALEX, "role": "admin", "exp": datetime.now(timezone.utc) + timedelta(days=1)},
        "some-other-secret",
        algorithm=ALGORITHM,
    )
    res = await client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 401


async def test_register_needs_a_database(memory_client):
    res = await memory_client.post("/api/auth/register", json={"email": "new@example.com", "password": "pw-123456"})

    assert res.status_code == 500
    assert res.json() == {"error": "Database not configured"}


async def test_register_then_login(sql_client):
    res = await sql_client.post(
        "/api/auth/register",
        json={"email": "New.Person@example.com", "password": "pw-123456", "name": "New Person", "role": "employee"},
    )
    assert res.status_code == 200
    assert res.json() == {"ok": True}

    res = await sql_client.post("/api/auth/login", json={"email": "new.person@example.com", "password": "pw-123456"})
    assert res.status_code == 200
    assert res.json()["user"]["role"] == "employee"
    assert res.json()["user"]["name"] == "New Person"


async def test_register_rejects_duplicate_email(sql_client):
    res = await sql_client.post("/api/auth/register", json={"email": ALEX, "password": "pw-123456"})

    assert res.status_code == 400
    assert res.json() == {"error": "Email already registered"}


async def test_register_rejects_unknown_role(sql_client):
    res = await sql_client.post(
        "/api/auth/register", json={"email": "x@example.com", "password": "pw", "role": "superuser"}
    )
    assert res.status_code == 422


def test_token_outlives_role_change_until_expiry():
    """Claims are a snapshot from login; nothing revokes an issued token."""
    token = issue_token(UserView(id="u1", email="u1@example.com", role="admin", name="U One"))
    # the stored user could be demoted here; the token still says admin
    assert decode_token(token).role == "admin"


def test_verify_credentials_raises_for_wrong_password(memory_backend):
    with pytest.raises(InvalidCredentials):
        verify_credentials(memory_backend, ALEX, "nope")


def test_decode_token_rejects_garbage():
    with pytest.raises(Unauthorized):
        decode_token("garbage")


@pytest.mark.parametrize(
    "fields,expected",
    [
        ({"first_name": "Ada", "last_name": "Lovelace", "name": "ignored"}, "Ada Lovelace"),
        ({"first_name": "Ada"}, "Ada"),
        ({"last_name": "Lovelace"}, "Lovelace"),
        ({"name": "Countess"}, "Countess"),
        ({}, "User"),
    ],
)
def test_display_name_preference(fields, expected):
    user = User(id="u", email="u@example.com", password_hash="x", **fields)
    assert display_name(user) == expected


@pytest.mark.parametrize("missing", ["exp", "iat"])
async def test_token_without_lifetime_claims_is_rejected(client, missing):
    now = datetime.now(timezone.utc)
    claims = {"id": "alex-user-id", "email": ALEX, "role": "employee", "iat": now, "exp": now + timedelta(days=7)}
    del claims[missing]
    token = jwt.encode(claims, settings.JWT_SECRET, algorithm=ALGORITHM)

    res = await client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})

    assert res.status_code == 401
    assert res.json() == {"error": "Unauthorized"}
