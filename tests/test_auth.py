"""Unit tests for authentication helpers and endpoints."""

from __future__ import annotations

from datetime import timedelta

import jwt
import pytest
from fastapi import HTTPException

from app.api.auth import login_user
from app.api.deps import get_user_from_token
from app.core.security import create_access_token, decode_access_token, get_password_hash
from app.models import User
from app.schemas import LoginRequest
from huddle.realtime.errors import UnauthorizedError


@pytest.fixture()
def user(db_session):
    db_user = User(username="tester", hashed_password=get_password_hash("supersecret"))
    db_session.add(db_user)
    db_session.commit()
    return db_user


def test_login_user_returns_token(db_session, user):
    """Successful login should return a bearer token bound to the username."""

    token = login_user(LoginRequest(username="tester", password="supersecret"), db_session)

    assert token.token_type == "bearer"
    assert token.username == "tester"
    assert token.expires_in and token.expires_in > 0
    assert decode_access_token(token.access_token)["sub"] == str(user.id)


def test_login_user_rejects_invalid_credentials(db_session, user):
    """Invalid credentials must raise an HTTP 401 error."""

    with pytest.raises(HTTPException) as exc:
        login_user(LoginRequest(username="tester", password="wrong-password"), db_session)

    assert exc.value.status_code == 401
    assert "Incorrect username" in exc.value.detail


def test_get_user_from_token(db_session, user):
    """Tokens should resolve to existing users."""

    resolved = get_user_from_token(create_access_token({"sub": str(user.id)}), db_session)

    assert resolved.id == user.id
    assert resolved.username == "tester"


@pytest.mark.parametrize("claims", [{}, {"sub": "abc"}, {"sub": "999"}])
def test_get_user_from_token_invalid_payload(db_session, user, claims):
    """Tokens without a resolvable subject must result in a 401 error."""

    with pytest.raises(HTTPException) as exc:
        get_user_from_token(create_access_token(claims), db_session)

    assert exc.value.status_code == 401
    assert exc.value.headers == {"WWW-Authenticate": "Bearer"}


def test_decode_rejects_foreign_signature():
    token = jwt.encode({"sub": "1"}, "not-the-server-secret", algorithm="HS256")

    with pytest.raises(UnauthorizedError):
        decode_access_token(token)


def test_decode_rejects_expired_token():
    token = create_access_token({"sub": "1"}, expires_delta=timedelta(seconds=-5))

    with pytest.raises(UnauthorizedError) as exc:
        decode_access_token(token)

    assert exc.value.detail == "Token has expired"


def test_register_and_login_over_http(client):
    created = client.post("/api/auth/register", json={"username": "newbie", "password": "password123"})
    assert created.status_code == 201
    assert created.json()["username"] == "newbie"
    assert "hashed_password" not in created.json()

    duplicate = client.post("/api/auth/register", json={"username": "newbie", "password": "password123"})
    assert duplicate.status_code == 400

    short = client.post("/api/auth/register", json={"username": "ab", "password": "password123"})
    assert short.status_code == 422

    login = client.post("/api/auth/login", json={"username": "newbie", "password": "password123"})
    assert login.status_code == 200
    body = login.json()
    assert body["token_type"] == "bearer"
    assert body["username"] == "newbie"

    messages = client.get("/messages", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert messages.status_code == 200
