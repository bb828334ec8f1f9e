"""Favorite routes"""

from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from nearby.api.deps import get_current_user
from nearby.core.database import get_db
from nearby.schemas.favorite import FavoriteCreate, FavoriteResponse, FavoriteStatus
from nearby.schemas.user import AccountView
from nearby.services.favorite_service import favorite_service

router = APIRouter()


@router.post("/", response_model=FavoriteResponse, status_code=status.HTTP_201_CREATED)
def add_favorite(
    data: FavoriteCreate,
    current_user: AccountView = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Favorite a service

    Returns:
        Created favorite; 409 if the service is already a favorite
    """
    return favorite_service.create(db, current_user.id, data.service_id)


@router.get("/", response_model=List[FavoriteResponse])
def list_favorites(
    current_user: AccountView = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return favorite_service.list_for_user(db, current_user.id)


@router.get("/by-type", response_model=List[FavoriteResponse])
def list_favorites_by_type(
    service_type_id: str = Query(...),
    current_user: AccountView = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Favorites of one service type"""
    return favorite_service.list_by_service_type(db, current_user.id, service_type_id)


@router.get("/check/{service_id}", response_model=FavoriteStatus)
def check_favorite(
    service_id: str,
    current_user: AccountView = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return FavoriteStatus(
        service_id=service_id,
        is_favorite=favorite_service.is_favorite(db, current_user.id, service_id),
    )


@router.get("/{favorite_id}", response_model=FavoriteResponse)
def get_favorite(
    favorite_id: str,
    current_user: AccountView = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return favorite_service.get(db, current_user.id, favorite_id)


@router.delete("/{favorite_id}", status_code=status.HTTP_200_OK)
def remove_favorite(
    favorite_id: str,
    current_user: AccountView = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    favorite_service.remove(db, current_user.id, favorite_id)
    return {
        "success": True,
        "message": "Favorite removed successfully"
    }
