"""Service directory routes - public reads, admin writes"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from nearby.api.deps import get_current_admin_user
from nearby.config import settings
from nearby.core.database import get_db
from nearby.schemas.service import (
    DistanceResponse,
    PaginatedServices,
    ServiceCreate,
    ServiceResponse,
    ServiceSearchParams,
    ServiceTypeResponse,
    ServiceUpdate,
)
from nearby.schemas.user import AccountView
from nearby.services.service_directory import service_directory

router = APIRouter()


@router.get("/search", response_model=PaginatedServices)
def search_services(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    radius: float = Query(settings.DEFAULT_SEARCH_RADIUS_METERS, gt=0),
    service_type_id: Optional[str] = None,
    keyword: Optional[str] = Query(None, max_length=255),
    tags: Optional[str] = Query(None, description="Comma-separated tags; any may match"),
    min_rating: Optional[float] = Query(None, ge=0, le=5),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db)
):
    """
    Search active services around a point

    Returns:
        Services within ``radius`` meters matching every filter, nearest first
    """
    params = ServiceSearchParams(
        latitude=latitude,
        longitude=longitude,
        radius=radius,
        service_type_id=service_type_id,
        keyword=keyword,
        tags=tags,
        min_rating=min_rating,
        page=page,
        limit=limit,
    )
    return service_directory.search(db, params)


@router.get("/nearby", response_model=List[ServiceResponse])
def nearby_services(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    radius: float = Query(settings.DEFAULT_SEARCH_RADIUS_METERS, gt=0),
    limit: int = Query(settings.DEFAULT_NEARBY_LIMIT, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db)
):
    """Closest active services, no pagination"""
    return service_directory.search_nearby(db, latitude, longitude, radius, limit)


@router.get("/types", response_model=List[ServiceTypeResponse])
def list_service_types(db: Session = Depends(get_db)):
    """Active service types"""
    return service_directory.get_service_types(db)


@router.get("/types/{service_type_id}", response_model=ServiceTypeResponse)
def get_service_type(service_type_id: str, db: Session = Depends(get_db)):
    return service_directory.get_service_type(db, service_type_id)


@router.get("/distance", response_model=DistanceResponse)
def distance_between(
    from_id: str = Query(..., alias="from"),
    to_id: str = Query(..., alias="to"),
    db: Session = Depends(get_db)
):
    """Distance in meters between two services"""
    return DistanceResponse(distance=service_directory.get_distance_between(db, from_id, to_id))


@router.get("/", response_model=PaginatedServices)
def list_services(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db)
):
    """Newest active services"""
    return service_directory.list_services(db, page, limit)


@router.get("/{service_id}", response_model=ServiceResponse)
def get_service(service_id: str, db: Session = Depends(get_db)):
    """Get a service; counts as a view"""
    return service_directory.get_service(db, service_id)


@router.post("/", response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
def create_service(
    data: ServiceCreate,
    current_user: AccountView = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """
    Create a service (admin only)

    Args:
        data: Service fields
        current_user: Current admin user
        db: Database session

    Returns:
        Created service
    """
    return service_directory.create_service(db, data)


@router.put("/{service_id}", response_model=ServiceResponse)
def update_service(
    service_id: str,
    data: ServiceUpdate,
    current_user: AccountView = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """Update a service (admin only)"""
    return service_directory.update_service(db, service_id, data)


@router.delete("/{service_id}", status_code=status.HTTP_200_OK)
def delete_service(
    service_id: str,
    current_user: AccountView = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """Soft-delete a service (admin only)"""
    service_directory.remove_service(db, service_id)
    return {
        "success": True,
        "message": "Service deleted successfully"
    }
