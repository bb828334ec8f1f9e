"""Security utilities - password hashing and RS256 token codec"""

from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional, Dict, Any, Tuple
import secrets
import threading
import uuid

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from nearby.config import settings
from nearby.core.clock import utcnow
from nearby.core.exceptions import TokenExpiredError, TokenInvalidError

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash

    Args:
        plain_password: Plain text password
        hashed_password: Hashed password

    Returns:
        bool: True if password matches
    """
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        # Malformed stored hash
        return False


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    """
    Hash a password using bcrypt

    Args:
        password: Plain text password
        rounds: Cost factor, defaults to BCRYPT_ROUNDS

    Returns:
        str: Hashed password
    """
    return bcrypt.hashpw(
        password.encode('utf-8'),
        bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    ).decode('utf-8')


def generate_token_id() -> str:
    """Identifier shared by a refresh token and its persisted record"""
    return str(uuid.uuid4())


def generate_reset_token() -> str:
    """Opaque password reset token"""
    return secrets.token_urlsafe(32)


def _read_key(inline_value: str, path: str) -> str:
    if inline_value:
        # Allow single-line env values with escaped newlines
        return inline_value.replace("\\n", "\n")
    key_file = Path(path)
    if not key_file.is_file():
        raise RuntimeError(f"JWT key file not found: {path}")
    return key_file.read_text(encoding="utf-8")


class TokenCodec:
    """Sign and verify access/refresh tokens with an asymmetric keypair."""

    def __init__(
        self,
        private_key: Optional[str] = None,
        public_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        access_token_ttl: Optional[timedelta] = None,
        refresh_token_ttl: Optional[timedelta] = None,
    ) -> None:
        self._private_key = private_key
        self._public_key = public_key
        self._algorithm = algorithm
        self._access_token_ttl = access_token_ttl
        self._refresh_token_ttl = refresh_token_ttl
        self._lock = threading.Lock()

    @property
    def algorithm(self) -> str:
        return self._algorithm or settings.JWT_ALGORITHM

    @property
    def access_token_ttl(self) -> timedelta:
        return self._access_token_ttl or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    @property
    def refresh_token_ttl(self) -> timedelta:
        return self._refresh_token_ttl or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

    def _signing_key(self) -> str:
        with self._lock:
            if self._private_key is None:
                self._private_key = _read_key(settings.JWT_PRIVATE_KEY, settings.get_private_key_path())
            return self._private_key

    def _verifying_key(self) -> str:
        with self._lock:
            if self._public_key is None:
                self._public_key = _read_key(settings.JWT_PUBLIC_KEY, settings.get_public_key_path())
            return self._public_key

    def _encode(self, claims: Dict[str, Any], token_type: str, ttl: timedelta) -> Tuple[str, datetime]:
        now = utcnow()
        expires_at = now + ttl
        to_encode = dict(claims)
        to_encode.update({
            "typ": token_type,
            "iat": now,
            "exp": expires_at,
        })
        to_encode.setdefault("jti", generate_token_id())
        return jwt.encode(to_encode, self._signing_key(), algorithm=self.algorithm), expires_at

    def create_access_token(self, data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        """
        Create access token

        Args:
            data: Claims to encode; must contain a string "sub"
            expires_delta: Token lifetime, defaults to the configured access lifetime

        Returns:
            str: Encoded token
        """
        token, _ = self._encode(data, ACCESS_TOKEN_TYPE, expires_delta or self.access_token_ttl)
        return token

    def create_refresh_token(
        self,
        subject: str,
        token_id: str,
        expires_delta: Optional[timedelta] = None,
    ) -> Tuple[str, datetime]:
        """
        Create refresh token whose jti is the persisted record id

        Returns:
            Tuple of (encoded token, expiry)
        """
        return self._encode(
            {"sub": subject, "jti": token_id},
            REFRESH_TOKEN_TYPE,
            expires_delta or self.refresh_token_ttl,
        )

    def decode_token(self, token: str) -> Dict[str, Any]:
        """
        Decode and verify a token of any type

        Raises:
            TokenExpiredError: If the token is past its expiry
            TokenInvalidError: If the signature or structure is invalid
        """
        try:
            return jwt.decode(token, self._verifying_key(), algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise TokenExpiredError()
        except JWTError:
            raise TokenInvalidError()

    def _decode_typed(self, token: str, token_type: str) -> Dict[str, Any]:
        payload = self.decode_token(token)
        if payload.get("typ") != token_type:
            raise TokenInvalidError(f"Token is not a valid {token_type} token")
        if not payload.get("sub") or not payload.get("jti"):
            raise TokenInvalidError("Invalid token payload")
        return payload

    def decode_access_token(self, token: str) -> Dict[str, Any]:
        return self._decode_typed(token, ACCESS_TOKEN_TYPE)

    def decode_refresh_token(self, token: str) -> Dict[str, Any]:
        return self._decode_typed(token, REFRESH_TOKEN_TYPE)


token_codec = TokenCodec()
