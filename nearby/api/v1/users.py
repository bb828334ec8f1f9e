"""User account routes"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from nearby.api.deps import get_current_admin_user, get_current_user
from nearby.core.database import get_db
from nearby.schemas.user import (
    AccountView,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    MessageResponse,
    ResetPasswordRequest,
    UpdateProfileRequest,
    UpdateRoleRequest,
    UpdateStatusRequest,
)
from nearby.services.user_service import user_service

router = APIRouter()


@router.get("/profile", response_model=AccountView)
def get_profile(
    current_user: AccountView = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get current user profile"""
    return user_service.get_profile(db, current_user.id)


@router.put("/profile", response_model=AccountView)
def update_profile(
    data: UpdateProfileRequest,
    current_user: AccountView = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Update current user profile

    Args:
        data: Fields to change
        current_user: Current authenticated user
        db: Database session

    Returns:
        Updated profile
    """
    return user_service.update_profile(db, current_user.id, data)


@router.post("/change-password", response_model=MessageResponse)
def change_password(
    data: ChangePasswordRequest,
    current_user: AccountView = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Change password of the current user"""
    user_service.change_password(db, current_user.id, data.current_password, data.new_password)
    return MessageResponse(message="Password changed successfully")


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    data: ForgotPasswordRequest,
    db: Session = Depends(get_db)
):
    """Request a password reset; the answer never reveals whether the e-mail exists"""
    return MessageResponse(message=user_service.forgot_password(db, data.email))


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    data: ResetPasswordRequest,
    db: Session = Depends(get_db)
):
    """Set a new password with a reset token"""
    user_service.reset_password(db, data.token, data.new_password)
    return MessageResponse(message="Password has been reset successfully")


@router.delete("/account", status_code=status.HTTP_200_OK)
def delete_account(
    current_user: AccountView = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Soft-delete the current account"""
    user_service.remove(db, current_user.id)
    return {
        "success": True,
        "message": "Account deleted successfully"
    }


@router.put("/{user_id}/status", response_model=AccountView)
def update_status(
    user_id: str,
    data: UpdateStatusRequest,
    current_user: AccountView = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """Change account status (admin only)"""
    return user_service.set_status(db, user_id, data.status)


@router.put("/{user_id}/role", response_model=AccountView)
def update_role(
    user_id: str,
    data: UpdateRoleRequest,
    current_user: AccountView = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """Change account role (admin only)"""
    return user_service.set_role(db, user_id, data.role)
