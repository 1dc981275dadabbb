from datetime import timedelta

import jwt
import pytest
from fastapi import HTTPException

from auth import create_access_token, decode_token
from config import JWT_ALGORITHM, JWT_AUDIENCE, JWT_ISSUER
from generate_token import generate_token


def test_token_carries_account_claims():
    token = create_access_token(7, "alice", "alice@example.com")

    payload = decode_token(token)

    assert payload.user_id == 7
    assert payload.username == "alice"
    assert payload.email == "alice@example.com"


def test_token_expires_after_one_hour():
    token = create_access_token(7, "alice", "alice@example.com")

    payload = decode_token(token)
    claims = jwt.decode(token, options={"verify_signature": False})

    assert claims["exp"] - claims["iat"] == 3600
    assert payload.exp is not None


def test_expired_token_is_rejected():
    token = create_access_token(7, "alice", "alice@example.com", timedelta(seconds=-1))

    with pytest.raises(HTTPException) as excinfo:
        decode_token(token)

    assert excinfo.value.status_code == 401


def test_token_signed_with_other_key_is_rejected():
    forged = jwt.encode(
        {"sub": "7", "username": "alice", "email": "alice@example.com", "iss": JWT_ISSUER, "aud": JWT_AUDIENCE},
        "some-other-secret",
        algorithm=JWT_ALGORITHM,
    )

    with pytest.raises(HTTPException) as excinfo:
        decode_token(forged)

    assert excinfo.value.status_code == 401


def test_expired_token_is_unauthorized_on_protected_route(client, make_user):
    user = make_user()
    token = create_access_token(user.id, user.username, user.email, timedelta(seconds=-1))

    response = client.get("/api/todos", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json() == {"message": "Invalid token."}


def test_generate_token_for_existing_account(session, make_user):
    user = make_user()

    payload = decode_token(generate_token("Alice@Example.com", session))

    assert payload.user_id == user.id
    assert payload.username == "alice"


def test_generate_token_for_unknown_account(session):
    with pytest.raises(LookupError):
        generate_token("ghost@example.com", session)
