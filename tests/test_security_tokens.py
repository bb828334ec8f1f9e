from datetime import timedelta

import pytest

from nearby.core.exceptions import TokenExpiredError, TokenInvalidError
from nearby.core.security import TokenCodec, generate_token_id, hash_password, token_codec, verify_password
from nearby.core.clock import utcnow
from tests.helpers import generate_pem_pair


def test_access_token_rejects_refresh_typ():
    refresh, _ = token_codec.create_refresh_token("1", generate_token_id())
    with pytest.raises(TokenInvalidError):
        token_codec.decode_access_token(refresh)


def test_access_token_round_trip():
    token = token_codec.create_access_token({"sub": "7", "email": "alice@x.com", "role": "user"})
    payload = token_codec.decode_access_token(token)
    assert payload["sub"] == "7"
    assert payload["typ"] == "access"
    assert payload["jti"]


def test_refresh_token_carries_record_id():
    token_id = generate_token_id()
    token, expires_at = token_codec.create_refresh_token("9", token_id)
    payload = token_codec.decode_refresh_token(token)
    assert payload["typ"] == "refresh"
    assert payload["jti"] == token_id
    assert abs((expires_at - utcnow()) - timedelta(days=7)) < timedelta(minutes=1)


def test_expired_token_is_rejected():
    token = token_codec.create_access_token({"sub": "1"}, expires_delta=timedelta(seconds=-5))
    with pytest.raises(TokenExpiredError):
        token_codec.decode_access_token(token)


def test_token_signed_with_other_key_is_rejected():
    other_private, other_public = generate_pem_pair()
    foreign = TokenCodec(private_key=other_private, public_key=other_public)
    token = foreign.create_access_token({"sub": "1"})
    with pytest.raises(TokenInvalidError):
        token_codec.decode_access_token(token)


def test_password_hash_round_trip():
    hashed = hash_password("Password123!", rounds=4)
    assert verify_password("Password123!", hashed)
    assert not verify_password("password123!", hashed)
    assert not verify_password("Password123!", "not-a-bcrypt-hash")
