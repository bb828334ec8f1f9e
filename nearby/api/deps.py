"""API dependencies - authentication and authorization"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from nearby.core.database import get_db
from nearby.core.exceptions import AuthenticationError, AuthorizationError
from nearby.schemas.user import AccountView, ClientInfo
from nearby.services.auth_service import auth_service

# HTTP Bearer token scheme; missing credentials are reported as 401 below
security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> AccountView:
    """
    Get current authenticated account from the bearer access token

    Raises:
        AuthenticationError: Missing, invalid or expired token, or inactive account
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authenticated")
    return auth_service.validate_access_token(db, credentials.credentials)


def get_current_admin_user(
    current_user: AccountView = Depends(get_current_user)
) -> AccountView:
    """
    Get current admin account (authorization check)

    Raises:
        AuthorizationError: If the account is not an admin
    """
    if not current_user.is_admin:
        raise AuthorizationError("Admin access required")
    return current_user


def get_client_info(request: Request) -> ClientInfo:
    """Device metadata recorded with issued refresh tokens"""
    return ClientInfo(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
