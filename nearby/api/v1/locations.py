"""User location routes"""

from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from nearby.api.deps import get_current_user
from nearby.config import settings
from nearby.core.database import get_db
from nearby.schemas.location import LocationCreate, LocationResponse, LocationUpdate
from nearby.schemas.service import DistanceResponse
from nearby.schemas.user import AccountView
from nearby.services.location_service import location_service

router = APIRouter()


@router.post("/track", response_model=LocationResponse, status_code=status.HTTP_201_CREATED)
def track_location(
    data: LocationCreate,
    current_user: AccountView = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Record a location for the current user

    Args:
        data: Place and coordinates; ``is_default`` makes it the current location
        current_user: Current authenticated user
        db: Database session

    Returns:
        Stored location
    """
    return location_service.track_location(db, current_user.id, data)


@router.get("/current", response_model=LocationResponse)
def current_location(
    current_user: AccountView = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return location_service.get_current_location(db, current_user.id)


@router.get("/history", response_model=List[LocationResponse])
def location_history(
    limit: int = Query(settings.DEFAULT_LOCATION_HISTORY_LIMIT, ge=1, le=1000),
    current_user: AccountView = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Locations of the current user, newest first"""
    return location_service.get_location_history(db, current_user.id, limit)


@router.get("/nearby-users", response_model=List[LocationResponse])
def nearby_users(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    radius: float = Query(settings.DEFAULT_SEARCH_RADIUS_METERS, gt=0),
    limit: int = Query(settings.DEFAULT_NEARBY_LIMIT, ge=1, le=settings.MAX_PAGE_SIZE),
    current_user: AccountView = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Current locations of users around a point"""
    return location_service.get_nearby_users(db, latitude, longitude, radius, limit)


@router.get("/distance", response_model=DistanceResponse)
def distance_between(
    from_id: str = Query(..., alias="from"),
    to_id: str = Query(..., alias="to"),
    current_user: AccountView = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Distance in meters between two of the current user's locations"""
    return DistanceResponse(
        distance=location_service.get_distance_between(db, from_id, to_id, user_id=current_user.id)
    )


@router.put("/{location_id}", response_model=LocationResponse)
def update_location(
    location_id: str,
    data: LocationUpdate,
    current_user: AccountView = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return location_service.update_location(db, current_user.id, location_id, data)


@router.delete("/{location_id}", status_code=status.HTTP_200_OK)
def delete_location(
    location_id: str,
    current_user: AccountView = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    location_service.delete_location(db, current_user.id, location_id)
    return {
        "success": True,
        "message": "Location deleted successfully"
    }
