"""Authentication service - registration, login and session lifecycle"""

from functools import lru_cache
from typing import Optional
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from nearby.config import settings
from nearby.core.cache import CacheBackend, cache as default_cache
from nearby.core.clock import utcnow
from nearby.core.database import transaction
from nearby.core.exceptions import (
    AccountNotActiveError,
    AuthenticationError,
    DuplicateEmailError,
    InvalidCredentialsError,
    TokenInvalidError,
)
from nearby.core.security import TokenCodec, hash_password, token_codec, verify_password
from nearby.models.user import User
from nearby.schemas.user import AccountView, AuthResponse, ClientInfo, RegisterRequest, SessionClaims
from nearby.services.cache_keys import access_validation_key
from nearby.services.token_service import TokenService

logger = logging.getLogger(__name__)


@lru_cache()
def _dummy_hash() -> str:
    # Checked for unknown e-mails so both login failures cost one bcrypt verify
    return hash_password("nearby-dummy-password")


class AuthService:
    """Session/auth manager built from a token service, cache and codec"""

    def __init__(
        self,
        tokens: Optional[TokenService] = None,
        cache: Optional[CacheBackend] = None,
        codec: Optional[TokenCodec] = None,
    ):
        self.cache = cache if cache is not None else default_cache
        self.codec = codec if codec is not None else token_codec
        self.tokens = tokens if tokens is not None else TokenService(cache=self.cache, codec=self.codec)

    @staticmethod
    def _find_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email.strip().lower()).first()

    def register(self, db: Session, data: RegisterRequest, client: Optional[ClientInfo] = None) -> AuthResponse:
        """
        Create an account and its first token pair in one transaction

        Args:
            db: Database session
            data: Registration payload
            client: Optional device metadata

        Returns:
            AuthResponse for the new account

        Raises:
            DuplicateEmailError: E-mail already registered
        """
        email = data.email.strip().lower()
        if self._find_by_email(db, email):
            raise DuplicateEmailError()

        try:
            with transaction(db):
                user = User(
                    email=email,
                    password_hash=hash_password(data.password),
                    name=data.name.strip(),
                    phone=data.phone,
                    role="user",
                    status="active",
                )
                db.add(user)
                db.flush()
                response = self.tokens.issue_token_pair(db, user, client)
        except IntegrityError:
            # Lost a race against a concurrent registration
            raise DuplicateEmailError()

        logger.info(f"Registered user: {email}")
        return response

    def login(self, db: Session, email: str, password: str, client: Optional[ClientInfo] = None) -> AuthResponse:
        """
        Authenticate by e-mail and password and mint a new token pair

        Raises:
            InvalidCredentialsError: Unknown e-mail or wrong password
            AccountNotActiveError: Account status is not active
        """
        user = self._find_by_email(db, email)
        if user is None or user.deleted_at is not None:
            verify_password(password, _dummy_hash())
            raise InvalidCredentialsError()

        if not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()

        if user.status != "active":
            raise AccountNotActiveError()

        with transaction(db):
            user.last_login_at = utcnow()
            response = self.tokens.issue_token_pair(db, user, client)

        logger.info(f"User authenticated: {user.email}")
        return response

    def validate_access_token(self, db: Session, token: str) -> AccountView:
        """
        Resolve a bearer access token to its account

        The account projection is cached per user id; any change to the
        account's status, role or credentials deletes that entry.
        """
        payload = self.codec.decode_access_token(token)
        user_id = str(payload["sub"])
        key = access_validation_key(user_id)

        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Access validation cache hit for user {user_id}")
            return AccountView.model_validate(cached)

        user = db.get(User, user_id)
        if user is None or user.deleted_at is not None:
            raise AuthenticationError("User not found")
        if user.status != "active":
            raise AccountNotActiveError()

        view = AccountView.model_validate(user)
        self.cache.set(key, view.model_dump(mode="json"), settings.AUTH_CACHE_TTL_SECONDS)
        return view

    def validate_refresh_token(self, db: Session, token: str) -> SessionClaims:
        return self.tokens.validate_refresh_token(db, token)

    def refresh(
        self,
        db: Session,
        user_id: str,
        token_id: str,
        client: Optional[ClientInfo] = None,
    ) -> AuthResponse:
        """
        Rotate refresh token ``token_id`` of ``user_id``

        The old record is revoked and the new pair minted in one
        transaction; the old token's cached validation is dropped after
        commit.
        """
        user = db.get(User, user_id)
        if user is None or user.deleted_at is not None:
            raise AuthenticationError("User not found")
        if user.status != "active":
            raise AccountNotActiveError()

        with transaction(db):
            response = self.tokens.rotate(db, user, token_id, client)

        self.tokens.forget_validations([token_id])
        logger.info(f"Rotated refresh token for user {user_id}")
        return response

    def refresh_session(self, db: Session, refresh_token: str, client: Optional[ClientInfo] = None) -> AuthResponse:
        """Validate a presented refresh token, then rotate it"""
        claims = self.validate_refresh_token(db, refresh_token)
        return self.refresh(db, claims.user_id, claims.token_id, client)

    def logout(self, db: Session, user_id: str, token_id: Optional[str] = None) -> int:
        """
        Revoke one refresh token, or all live ones when ``token_id`` is None

        Returns:
            Number of revoked tokens
        """
        with transaction(db):
            revoked = self.tokens.revoke_tokens(db, user_id, token_id)

        self.tokens.forget_validations(revoked)
        logger.info(f"Logged out user {user_id}: {len(revoked)} session(s) revoked")
        return len(revoked)

    def logout_token(self, db: Session, user_id: str, refresh_token: str) -> int:
        """Revoke the session behind ``refresh_token``; it must belong to ``user_id``"""
        payload = self.codec.decode_refresh_token(refresh_token)
        if str(payload["sub"]) != str(user_id):
            raise TokenInvalidError("Refresh token does not belong to this user")
        return self.logout(db, user_id, str(payload["jti"]))


# Singleton instance
auth_service = AuthService()
