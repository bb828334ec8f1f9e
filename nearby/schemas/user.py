"""Account and authentication schemas"""

import re
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

_PASSWORD_RULES = (
    (re.compile(r"[A-Z]"), "an uppercase letter"),
    (re.compile(r"[a-z]"), "a lowercase letter"),
    (re.compile(r"[\d\W_]"), "a digit or special character"),
)


def check_password_strength(value: str) -> str:
    """Reject passwords missing any required character class"""
    missing = [label for pattern, label in _PASSWORD_RULES if not pattern.search(value)]
    if missing:
        raise ValueError(f"Password must contain {', '.join(missing)}")
    return value


class UserRole(str, Enum):
    """User role enumeration"""
    USER = "user"
    ADMIN = "admin"


class UserStatus(str, Enum):
    """Account status enumeration"""
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class RegisterRequest(BaseModel):
    """Registration payload"""
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()

    @field_validator('password')
    @classmethod
    def password_strength(cls, v):
        return check_password_strength(v)


class LoginRequest(BaseModel):
    """Login payload"""
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class RefreshTokenRequest(BaseModel):
    """Refresh token request"""
    refresh_token: str = Field(..., min_length=20)


class LogoutRequest(BaseModel):
    """Logout request; without a refresh token every session is revoked"""
    refresh_token: Optional[str] = Field(None, min_length=20)


class AccountView(BaseModel):
    """Password-free account projection"""
    id: str
    email: str
    name: str
    phone: Optional[str] = None
    avatar: Optional[str] = None
    role: str
    status: str
    email_verified: bool = False
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


class ClientInfo(BaseModel):
    """Device metadata recorded with a refresh token"""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class TokenPair(BaseModel):
    """Access/refresh token pair"""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class AuthResponse(TokenPair):
    """Token pair plus the authenticated account"""
    user: AccountView


class SessionClaims(BaseModel):
    """Validated refresh token claims"""
    user_id: str
    token_id: str
    user: AccountView


class UpdateProfileRequest(BaseModel):
    """Profile fields a user may change"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    avatar: Optional[str] = Field(None, max_length=2048)


class ChangePasswordRequest(BaseModel):
    """Change password payload"""
    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=8, max_length=128)

    @field_validator('new_password')
    @classmethod
    def password_strength(cls, v):
        return check_password_strength(v)


class ForgotPasswordRequest(BaseModel):
    """Password reset request"""
    email: EmailStr

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class ResetPasswordRequest(BaseModel):
    """Password reset with a previously issued token"""
    token: str = Field(..., min_length=1, max_length=255)
    new_password: str = Field(..., min_length=8, max_length=128)

    @field_validator('new_password')
    @classmethod
    def password_strength(cls, v):
        return check_password_strength(v)


class UpdateStatusRequest(BaseModel):
    """Admin status change"""
    status: UserStatus


class UpdateRoleRequest(BaseModel):
    """Admin role change"""
    role: UserRole


class MessageResponse(BaseModel):
    """Plain acknowledgement"""
    message: str
