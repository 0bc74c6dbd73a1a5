from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth import Identity, TokenService, hash_password, verify_password
from errors import AuthError


@pytest.fixture
def tokens():
    return TokenService("unit-secret")


def test_hash_password_is_salted():
    first = hash_password("engine-123")
    second = hash_password("engine-123")

    assert first != second
    assert verify_password("engine-123", first)
    assert verify_password("engine-123", second)
    assert not verify_password("engine-124", first)


def test_verify_password_rejects_garbage_hash():
    assert not verify_password("engine-123", "")
    assert not verify_password("engine-123", "no-separator")


def test_issue_and_verify(tokens):
    identity = Identity(user_id="65a1f0c2e4b0a1b2c3d4e5f6", role="customer")

    assert tokens.verify(tokens.issue(identity)) == identity


def test_token_carries_minimal_claims(tokens):
    token = tokens.issue(Identity(user_id="65a1f0c2e4b0a1b2c3d4e5f6", role="admin"))

    claims = jwt.get_unverified_claims(token)
    assert set(claims) == {"sub", "role", "iat", "exp"}
    assert claims["exp"] - claims["iat"] == 3600


def test_expired_token(tokens):
    issued = datetime.now(timezone.utc) - timedelta(hours=1, seconds=5)
    token = tokens.issue(Identity(user_id="u1", role="customer"), now=issued)

    with pytest.raises(AuthError) as excinfo:
        tokens.verify(token)
    assert excinfo.value.reason == "expired"
    assert excinfo.value.status_code == 401


def test_token_still_valid_inside_window(tokens):
    issued = datetime.now(timezone.utc) - timedelta(minutes=59)
    token = tokens.issue(Identity(user_id="u1", role="customer"), now=issued)

    assert tokens.verify(token).user_id == "u1"


def test_wrong_signature(tokens):
    token = TokenService("someone-else").issue(Identity(user_id="u1", role="customer"))

    with pytest.raises(AuthError) as excinfo:
        tokens.verify(token)
    assert excinfo.value.reason == "signature-invalid"


@pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
def test_malformed_token(tokens, token):
    with pytest.raises(AuthError) as excinfo:
        tokens.verify(token)
    assert excinfo.value.reason == "malformed"


def test_token_without_subject_is_malformed(tokens):
    token = jwt.encode({"role": "customer"}, "unit-secret", algorithm="HS256")

    with pytest.raises(AuthError) as excinfo:
        tokens.verify(token)
    assert excinfo.value.reason == "malformed"


def test_secret_is_required():
    with pytest.raises(ValueError):
        TokenService("")
