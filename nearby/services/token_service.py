"""Refresh token issuance, rotation and revocation service."""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from nearby.config import settings
from nearby.core.cache import CacheBackend, cache as default_cache
from nearby.core.clock import naive_utc, utcnow
from nearby.core.exceptions import AuthenticationError, TokenExpiredError, TokenInvalidError
from nearby.core.security import TokenCodec, generate_token_id, token_codec
from nearby.models.security import PasswordResetToken, RefreshToken
from nearby.models.user import User
from nearby.schemas.user import AccountView, AuthResponse, ClientInfo, SessionClaims
from nearby.services.cache_keys import refresh_validation_key

logger = logging.getLogger(__name__)


def _digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class TokenService:
    """Manage the persisted side of refresh tokens.

    Methods that write take part in the caller's unit of work and never
    commit, except ``purge_expired_tokens`` which runs on its own.
    """

    def __init__(self, cache: Optional[CacheBackend] = None, codec: Optional[TokenCodec] = None):
        self.cache = cache if cache is not None else default_cache
        self.codec = codec if codec is not None else token_codec

    def issue_token_pair(self, db: Session, user: User, client: Optional[ClientInfo] = None) -> AuthResponse:
        """
        Mint an access token and a persisted refresh token for ``user``

        Args:
            db: Database session with an open unit of work
            user: Account the pair is issued to; must already be flushed
            client: Optional device metadata stored with the refresh record

        Returns:
            AuthResponse with both tokens and the account projection
        """
        client = client or ClientInfo()
        access_token = self.codec.create_access_token(
            {"sub": str(user.id), "email": user.email, "role": user.role}
        )

        token_id = generate_token_id()
        refresh_token, expires_at = self.codec.create_refresh_token(str(user.id), token_id)
        db.add(RefreshToken(
            id=token_id,
            user_id=user.id,
            token=refresh_token,
            device_info={"user_agent": client.user_agent} if client.user_agent else None,
            ip_address=client.ip_address,
            expires_at=naive_utc(expires_at),
            is_revoked=False,
        ))
        db.flush()

        return AuthResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=int(self.codec.access_token_ttl.total_seconds()),
            user=AccountView.model_validate(user),
        )

    def validate_refresh_token(self, db: Session, token: str) -> SessionClaims:
        """
        Check a presented refresh token against its persisted record

        The record check is cached per token id. The presented token must
        match the stored one on cache hits as well as misses.

        Raises:
            TokenInvalidError: Unknown, revoked or substituted token
            TokenExpiredError: Token or record past its expiry
            AuthenticationError: Owning account is gone or not active
        """
        payload = self.codec.decode_refresh_token(token)
        user_id = str(payload["sub"])
        token_id = str(payload["jti"])
        key = refresh_validation_key(token_id)

        cached = self.cache.get(key)
        if cached is None:
            record = db.get(RefreshToken, token_id)
            if record is None or record.user_id != user_id:
                raise TokenInvalidError("Refresh token not recognized")
            if record.is_revoked:
                raise TokenInvalidError("Refresh token has been revoked")
            if naive_utc(record.expires_at) <= utcnow():
                raise TokenExpiredError()
            cached = {
                "user_id": record.user_id,
                "token_digest": _digest(record.token),
            }
            self.cache.set(key, cached, settings.AUTH_CACHE_TTL_SECONDS)
        else:
            logger.debug(f"Refresh validation cache hit for {token_id}")

        if cached.get("user_id") != user_id or not hmac.compare_digest(
            str(cached.get("token_digest", "")), _digest(token)
        ):
            raise TokenInvalidError("Refresh token mismatch")

        user = db.get(User, user_id)
        if user is None or user.deleted_at is not None:
            raise AuthenticationError("User not found")
        if not user.is_active:
            raise AuthenticationError("User account is not active")

        return SessionClaims(user_id=user_id, token_id=token_id, user=AccountView.model_validate(user))

    def rotate(self, db: Session, user: User, token_id: str, client: Optional[ClientInfo] = None) -> AuthResponse:
        """
        Revoke ``token_id`` and mint its replacement in the caller's unit of work

        Revocation is conditional on the record still being live, so two
        concurrent rotations of one token cannot both succeed.
        """
        revoked = (
            db.query(RefreshToken)
            .filter(
                RefreshToken.id == token_id,
                RefreshToken.user_id == user.id,
                RefreshToken.is_revoked == False,  # noqa: E712
            )
            .update(
                {RefreshToken.is_revoked: True, RefreshToken.revoked_at: utcnow()},
                synchronize_session=False,
            )
        )
        if revoked != 1:
            raise AuthenticationError("Refresh token already used")
        return self.issue_token_pair(db, user, client)

    def revoke_tokens(self, db: Session, user_id: str, token_id: Optional[str] = None) -> List[str]:
        """Revoke one live refresh token, or every live one for the account; returns revoked ids"""
        query = db.query(RefreshToken).filter(
            RefreshToken.user_id == user_id,
            RefreshToken.is_revoked == False,  # noqa: E712
        )
        if token_id is not None:
            query = query.filter(RefreshToken.id == token_id)

        now = utcnow()
        records = query.all()
        for record in records:
            record.is_revoked = True
            record.revoked_at = now
        db.flush()
        return [record.id for record in records]

    def forget_validations(self, token_ids: List[str]) -> None:
        """Drop cached refresh validations; call after commit"""
        for token_id in token_ids:
            self.cache.delete(refresh_validation_key(token_id))

    def purge_expired_tokens(self, db: Session) -> dict:
        """
        Delete expired refresh tokens and spent password reset tokens

        Returns:
            Counts of deleted rows per table
        """
        now = utcnow()
        refresh_deleted = (
            db.query(RefreshToken)
            .filter(RefreshToken.expires_at <= now)
            .delete(synchronize_session=False)
        )
        reset_deleted = (
            db.query(PasswordResetToken)
            .filter(or_(PasswordResetToken.expires_at <= now, PasswordResetToken.is_used == True))  # noqa: E712
            .delete(synchronize_session=False)
        )
        db.commit()
        logger.info(f"Purged {refresh_deleted} refresh tokens and {reset_deleted} reset tokens")
        return {"refresh_tokens": refresh_deleted, "password_reset_tokens": reset_deleted}


token_service = TokenService()
