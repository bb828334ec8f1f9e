"""User service - account profile, password and admin management"""

from datetime import timedelta
from typing import Optional
import logging

from sqlalchemy.orm import Session

from nearby.config import settings
from nearby.core.cache import CacheBackend, cache as default_cache
from nearby.core.clock import naive_utc, utcnow
from nearby.core.database import transaction
from nearby.core.exceptions import InvalidCredentialsError, InvalidResetTokenError, ResourceNotFoundError
from nearby.core.security import generate_reset_token, hash_password, verify_password
from nearby.models.security import PasswordResetToken
from nearby.models.user import User
from nearby.schemas.user import AccountView, UpdateProfileRequest, UserRole, UserStatus
from nearby.services.cache_keys import access_validation_key

logger = logging.getLogger(__name__)

FORGOT_PASSWORD_MESSAGE = "If the email exists, a password reset link has been sent"


class UserService:
    """Service for account management"""

    def __init__(self, cache: Optional[CacheBackend] = None):
        self.cache = cache if cache is not None else default_cache

    def _invalidate(self, user_id: str) -> None:
        self.cache.delete(access_validation_key(user_id))

    @staticmethod
    def get_user(db: Session, user_id: str) -> User:
        """Get a live (not soft-deleted) user by ID or raise 404"""
        user = db.query(User).filter(User.id == user_id, User.deleted_at.is_(None)).first()
        if not user:
            raise ResourceNotFoundError("User")
        return user

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        """Get a live user by e-mail"""
        return (
            db.query(User)
            .filter(User.email == email.strip().lower(), User.deleted_at.is_(None))
            .first()
        )

    def get_profile(self, db: Session, user_id: str) -> AccountView:
        return AccountView.model_validate(self.get_user(db, user_id))

    def update_profile(self, db: Session, user_id: str, data: UpdateProfileRequest) -> AccountView:
        """
        Update name, phone or avatar

        Args:
            db: Database session
            user_id: Account to update
            data: Fields to change; unset fields are left alone

        Returns:
            Updated account projection
        """
        user = self.get_user(db, user_id)
        with transaction(db):
            for field, value in data.model_dump(exclude_unset=True).items():
                # null clears optional columns only
                if value is None and not User.__table__.columns[field].nullable:
                    continue
                setattr(user, field, value)
        self._invalidate(user_id)
        db.refresh(user)
        return AccountView.model_validate(user)

    def change_password(self, db: Session, user_id: str, current_password: str, new_password: str) -> None:
        """
        Replace the password after checking the current one

        Raises:
            InvalidCredentialsError: Current password does not match
        """
        user = self.get_user(db, user_id)
        if not verify_password(current_password, user.password_hash):
            raise InvalidCredentialsError("Current password is incorrect")

        with transaction(db):
            user.password_hash = hash_password(new_password)
        self._invalidate(user_id)
        logger.info(f"Password changed for user {user_id}")

    def issue_reset_token(self, db: Session, user: User) -> PasswordResetToken:
        """Retire prior unused reset tokens of ``user`` and issue a fresh one"""
        now = utcnow()
        with transaction(db):
            (
                db.query(PasswordResetToken)
                .filter(PasswordResetToken.user_id == user.id, PasswordResetToken.is_used == False)  # noqa: E712
                .update({PasswordResetToken.is_used: True, PasswordResetToken.used_at: now}, synchronize_session=False)
            )
            record = PasswordResetToken(
                user_id=user.id,
                token=generate_reset_token(),
                expires_at=now + timedelta(minutes=settings.PASSWORD_RESET_TOKEN_EXPIRE_MINUTES),
            )
            db.add(record)
        return record

    def forgot_password(self, db: Session, email: str) -> str:
        """
        Start a password reset

        The response is the same whether or not the e-mail is registered.
        """
        user = self.get_user_by_email(db, email)
        if user is not None:
            record = self.issue_reset_token(db, user)
            logger.info(f"Password reset requested for user {user.id}")
            if settings.DEBUG:
                logger.debug(f"Password reset token for {user.email}: {record.token}")
        return FORGOT_PASSWORD_MESSAGE

    def reset_password(self, db: Session, token: str, new_password: str) -> None:
        """
        Consume a reset token and set a new password

        Raises:
            InvalidResetTokenError: Token unknown, already used or expired
        """
        record = db.query(PasswordResetToken).filter(PasswordResetToken.token == token).first()
        if record is None or record.is_used:
            raise InvalidResetTokenError()
        if naive_utc(record.expires_at) <= utcnow():
            raise InvalidResetTokenError("Reset token has expired")

        user = record.user
        if user is None or user.deleted_at is not None:
            raise InvalidResetTokenError()

        with transaction(db):
            consumed = (
                db.query(PasswordResetToken)
                .filter(PasswordResetToken.id == record.id, PasswordResetToken.is_used == False)  # noqa: E712
                .update({PasswordResetToken.is_used: True, PasswordResetToken.used_at: utcnow()}, synchronize_session=False)
            )
            if consumed != 1:
                raise InvalidResetTokenError()
            user.password_hash = hash_password(new_password)

        self._invalidate(user.id)
        logger.info(f"Password reset completed for user {user.id}")

    def remove(self, db: Session, user_id: str) -> None:
        """Soft-delete an account"""
        user = self.get_user(db, user_id)
        with transaction(db):
            user.deleted_at = utcnow()
        self._invalidate(user_id)
        logger.info(f"Deleted user {user_id}")

    def set_status(self, db: Session, user_id: str, status: UserStatus) -> AccountView:
        user = self.get_user(db, user_id)
        with transaction(db):
            user.status = UserStatus(status).value
        self._invalidate(user_id)
        logger.info(f"Status of user {user_id} set to {user.status}")
        return AccountView.model_validate(user)

    def set_role(self, db: Session, user_id: str, role: UserRole) -> AccountView:
        user = self.get_user(db, user_id)
        with transaction(db):
            user.role = UserRole(role).value
        self._invalidate(user_id)
        logger.info(f"Role of user {user_id} set to {user.role}")
        return AccountView.model_validate(user)

    def ensure_admin(self, db: Session) -> bool:
        """
        Create the bootstrap admin account when it does not exist

        Returns:
            True if an account was created
        """
        email = settings.ADMIN_EMAIL.strip().lower()
        if db.query(User).filter(User.email == email).first():
            return False

        with transaction(db):
            db.add(User(
                email=email,
                password_hash=hash_password(settings.ADMIN_PASSWORD),
                name="Administrator",
                role=UserRole.ADMIN.value,
                status=UserStatus.ACTIVE.value,
                email_verified=True,
            ))
        logger.info(f"Created bootstrap admin account: {email}")
        return True


# Singleton instance
user_service = UserService()
