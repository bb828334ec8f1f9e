"""Authentication routes"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from nearby.api.deps import get_client_info, get_current_user
from nearby.core.database import get_db
from nearby.schemas.user import (
    AccountView,
    AuthResponse,
    ClientInfo,
    LoginRequest,
    LogoutRequest,
    RefreshTokenRequest,
    RegisterRequest,
)
from nearby.services.auth_service import auth_service

router = APIRouter()


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    data: RegisterRequest,
    client: ClientInfo = Depends(get_client_info),
    db: Session = Depends(get_db)
):
    """
    Register a new account and return its first token pair

    Args:
        data: E-mail, password and profile
        db: Database session

    Returns:
        Tokens and account info
    """
    return auth_service.register(db, data, client)


@router.post("/login", response_model=AuthResponse, status_code=status.HTTP_200_OK)
def login(
    credentials: LoginRequest,
    client: ClientInfo = Depends(get_client_info),
    db: Session = Depends(get_db)
):
    """
    Login endpoint - authenticate and return a new token pair

    Args:
        credentials: E-mail and password
        db: Database session

    Returns:
        Tokens and account info
    """
    return auth_service.login(db, credentials.email, credentials.password, client)


@router.post("/refresh", response_model=AuthResponse)
def refresh_token(
    req: RefreshTokenRequest,
    client: ClientInfo = Depends(get_client_info),
    db: Session = Depends(get_db),
):
    """
    Rotate a refresh token

    The presented token is revoked; reusing it afterwards fails.
    """
    return auth_service.refresh_session(db, req.refresh_token, client)


@router.post("/logout", status_code=status.HTTP_200_OK)
def logout(
    body: Optional[LogoutRequest] = None,
    current_user: AccountView = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Logout endpoint - revoke one session, or all sessions without a refresh token

    Returns:
        Success message and the number of revoked sessions
    """
    if body and body.refresh_token:
        revoked = auth_service.logout_token(db, current_user.id, body.refresh_token)
    else:
        revoked = auth_service.logout(db, current_user.id)

    return {
        "success": True,
        "message": "Logged out successfully",
        "revoked_sessions": revoked,
    }


@router.get("/me", response_model=AccountView)
def get_current_user_info(
    current_user: AccountView = Depends(get_current_user)
):
    """Get current account information"""
    return current_user
