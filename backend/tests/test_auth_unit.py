"""Unit tests for authentication helpers and endpoints."""

from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi import HTTPException

from app.api.auth import login_user
from app.api.deps import get_user_from_token
from app.core.security import create_access_token, get_password_hash, token_subject
from app.models import User
from app.schemas import LoginRequest


@pytest.fixture()
def user(db_session):
    db_user = User(
        email="tester@example.com",
        hashed_password=get_password_hash("supersecret"),
        first_name="Test",
        last_name="Er",
    )
    db_session.add(db_user)
    db_session.commit()
    return db_user


def test_login_user_returns_token(db_session, user):
    """Successful login should return a bearer token."""

    credentials = LoginRequest(email="Tester@Example.com", password="supersecret")
    token = login_user(credentials, db_session)

    assert token.token_type == "bearer"
    assert isinstance(token.access_token, str) and token.access_token
    assert token_subject(token.access_token) == user.id


def test_login_user_rejects_invalid_credentials(db_session, user):
    """Invalid credentials must raise an HTTP 401 error."""

    credentials = LoginRequest(email="tester@example.com", password="doesnotmatter")
    with pytest.raises(HTTPException) as exc:
        login_user(credentials, db_session)

    assert exc.value.status_code == 401
    assert "Incorrect email" in exc.value.detail


def test_get_user_from_token(db_session, user):
    """Tokens should resolve to existing users."""

    token = create_access_token({"sub": str(user.id)})
    resolved = get_user_from_token(token, db_session)

    assert resolved.id == user.id
    assert resolved.email == user.email


@pytest.mark.parametrize(
    "claims",
    [{"sub": "not-a-number"}, {"user": "1"}],
)
def test_get_user_from_token_invalid_payload(db_session, claims):
    """Tokens without a numeric subject must result in a 401 error."""

    token = create_access_token(claims)
    with pytest.raises(HTTPException) as exc:
        get_user_from_token(token, db_session)

    assert exc.value.status_code == 401


def test_expired_token_is_rejected(db_session, user):
    token = create_access_token({"sub": str(user.id)}, expires_delta=timedelta(seconds=-1))

    with pytest.raises(HTTPException) as exc:
        get_user_from_token(token, db_session)

    assert exc.value.detail == "Token has expired"
