from datetime import timedelta

import pytest

from nearby.core.cache import RedisCache
from nearby.core.clock import utcnow
from nearby.core.exceptions import (
    AccountNotActiveError,
    AuthenticationError,
    DuplicateEmailError,
    InvalidCredentialsError,
    TokenInvalidError,
)
from nearby.core.security import token_codec
from nearby.models.security import PasswordResetToken, RefreshToken
from nearby.models.user import User
from nearby.schemas.user import ClientInfo, RegisterRequest
from nearby.services.auth_service import AuthService
from nearby.services.cache_keys import access_validation_key, refresh_validation_key
from nearby.services.token_service import TokenService
from tests.helpers import BrokenRedis


def _register(service, db, email="a@x.com", password="Password123!"):
    return service.register(db, RegisterRequest(email=email, password=password, name="Alice"))


def _live_tokens(db, user_id):
    return (
        db.query(RefreshToken)
        .filter(RefreshToken.user_id == user_id, RefreshToken.is_revoked == False)  # noqa: E712
        .count()
    )


def test_register_then_login_issues_distinct_refresh_tokens(db, memory_cache):
    service = AuthService(cache=memory_cache)

    registered = _register(service, db)
    logged_in = service.login(db, "a@x.com", "Password123!")

    assert registered.access_token and registered.refresh_token
    assert logged_in.refresh_token != registered.refresh_token
    assert logged_in.user.email == "a@x.com"
    assert db.query(User).filter(User.email == "a@x.com").one().last_login_at is not None


def test_register_persists_refresh_record_with_client_info(db, memory_cache):
    service = AuthService(cache=memory_cache)
    response = service.register(
        db,
        RegisterRequest(email="b@x.com", password="Password123!", name="Bob"),
        ClientInfo(ip_address="10.0.0.1", user_agent="pytest"),
    )

    payload = token_codec.decode_refresh_token(response.refresh_token)
    record = db.get(RefreshToken, payload["jti"])
    assert record.token == response.refresh_token
    assert record.ip_address == "10.0.0.1"
    assert record.device_info == {"user_agent": "pytest"}


def test_register_rejects_duplicate_email_case_insensitively(db, memory_cache):
    service = AuthService(cache=memory_cache)
    _register(service, db)

    with pytest.raises(DuplicateEmailError):
        _register(service, db, email="A@X.com")
    assert db.query(User).count() == 1


def test_login_failures_look_the_same(db, memory_cache):
    service = AuthService(cache=memory_cache)
    _register(service, db)

    with pytest.raises(InvalidCredentialsError) as wrong_password:
        service.login(db, "a@x.com", "Wrong123!")
    with pytest.raises(InvalidCredentialsError) as unknown_email:
        service.login(db, "nobody@x.com", "Password123!")

    assert wrong_password.value.message == unknown_email.value.message
    assert wrong_password.value.status_code == unknown_email.value.status_code == 401


def test_login_rejects_inactive_account(db, memory_cache, make_user):
    make_user(email="sleepy@x.com", status="suspended")
    service = AuthService(cache=memory_cache)

    with pytest.raises(AccountNotActiveError):
        service.login(db, "sleepy@x.com", "Password123!")


def test_access_validation_caches_password_free_projection(db, memory_cache):
    service = AuthService(cache=memory_cache)
    response = _register(service, db)

    view = service.validate_access_token(db, response.access_token)

    cached = memory_cache.get(access_validation_key(view.id))
    assert cached["email"] == "a@x.com"
    assert "password_hash" not in cached
    assert service.validate_access_token(db, response.access_token).id == view.id
    assert memory_cache.stats()["hits"] >= 1


def test_access_validation_rejects_deleted_account(db, memory_cache):
    service = AuthService(cache=memory_cache)
    response = _register(service, db)
    user = db.query(User).one()
    user.deleted_at = user.created_at
    db.commit()

    with pytest.raises(AuthenticationError):
        service.validate_access_token(db, response.access_token)


def test_refresh_token_is_single_use(db, memory_cache):
    service = AuthService(cache=memory_cache)
    registered = _register(service, db)

    claims = service.validate_refresh_token(db, registered.refresh_token)
    rotated = service.refresh(db, claims.user_id, claims.token_id)

    assert rotated.refresh_token != registered.refresh_token
    assert memory_cache.get(refresh_validation_key(claims.token_id)) is None
    with pytest.raises(TokenInvalidError):
        service.validate_refresh_token(db, registered.refresh_token)
    with pytest.raises(AuthenticationError):
        service.refresh(db, claims.user_id, claims.token_id)
    assert service.validate_refresh_token(db, rotated.refresh_token).user_id == claims.user_id
    assert _live_tokens(db, claims.user_id) == 1


def test_refresh_rejects_substituted_token(db, memory_cache):
    service = AuthService(cache=memory_cache)
    registered = _register(service, db)
    claims = service.validate_refresh_token(db, registered.refresh_token)

    # Same id, validly signed, but not the stored token string
    forged, _ = token_codec.create_refresh_token(claims.user_id, claims.token_id, expires_delta=timedelta(days=1))

    with pytest.raises(TokenInvalidError):
        service.validate_refresh_token(db, forged)


def test_refresh_validation_cache_holds_owner_and_digest_only(db, memory_cache):
    service = AuthService(cache=memory_cache)
    registered = _register(service, db)

    claims = service.validate_refresh_token(db, registered.refresh_token)
    cached = memory_cache.get(refresh_validation_key(claims.token_id))

    assert set(cached) == {"user_id", "token_digest"}
    assert registered.refresh_token not in cached.values()


def test_refresh_session_requires_live_account(db, memory_cache):
    service = AuthService(cache=memory_cache)
    registered = _register(service, db)
    user = db.query(User).one()
    user.status = "inactive"
    db.commit()

    with pytest.raises(AuthenticationError):
        service.refresh_session(db, registered.refresh_token)


def test_logout_single_session(db, memory_cache):
    service = AuthService(cache=memory_cache)
    registered = _register(service, db)
    second = service.login(db, "a@x.com", "Password123!")

    revoked = service.logout_token(db, registered.user.id, registered.refresh_token)

    assert revoked == 1
    assert _live_tokens(db, registered.user.id) == 1
    assert service.validate_refresh_token(db, second.refresh_token).user_id == registered.user.id


def test_logout_all_sessions_clears_cached_validations(db, memory_cache):
    service = AuthService(cache=memory_cache)
    registered = _register(service, db)
    second = service.login(db, "a@x.com", "Password123!")
    claims = service.validate_refresh_token(db, second.refresh_token)

    assert service.logout(db, registered.user.id) == 2
    assert _live_tokens(db, registered.user.id) == 0
    assert memory_cache.get(refresh_validation_key(claims.token_id)) is None
    with pytest.raises(TokenInvalidError):
        service.validate_refresh_token(db, second.refresh_token)


def test_logout_token_of_other_user_is_rejected(db, memory_cache):
    service = AuthService(cache=memory_cache)
    alice = _register(service, db)
    bob = _register(service, db, email="bob@x.com")

    with pytest.raises(TokenInvalidError):
        service.logout_token(db, alice.user.id, bob.refresh_token)


def test_cache_outage_does_not_fail_authentication(db):
    service = AuthService(cache=RedisCache(BrokenRedis()))
    registered = _register(service, db)

    assert service.validate_access_token(db, registered.access_token).email == "a@x.com"
    claims = service.validate_refresh_token(db, registered.refresh_token)
    assert service.refresh(db, claims.user_id, claims.token_id).refresh_token


def test_purge_removes_expired_refresh_and_spent_reset_tokens(db, make_user):
    user = make_user()
    now = utcnow()
    db.add_all([
        RefreshToken(user_id=user.id, token="old", expires_at=now - timedelta(days=1)),
        RefreshToken(user_id=user.id, token="live", expires_at=now + timedelta(days=1)),
        PasswordResetToken(user_id=user.id, token="expired", expires_at=now - timedelta(minutes=1)),
        PasswordResetToken(user_id=user.id, token="used", expires_at=now + timedelta(hours=1), is_used=True),
        PasswordResetToken(user_id=user.id, token="pending", expires_at=now + timedelta(hours=1)),
    ])
    db.commit()

    counts = TokenService().purge_expired_tokens(db)

    assert counts == {"refresh_tokens": 1, "password_reset_tokens": 2}
    assert [row.token for row in db.query(RefreshToken).filter(RefreshToken.user_id == user.id)] == ["live"]
    assert [row.token for row in db.query(PasswordResetToken).all()] == ["pending"]
