"""Location service - user location tracking and nearby discovery"""

from typing import List, Optional
import logging

from sqlalchemy.orm import Session

from nearby.config import settings
from nearby.core.database import transaction
from nearby.core.exceptions import ResourceNotFoundError, ValidationError
from nearby.core.geo import apply_bounding_box, bounding_box, haversine_meters, rank_by_distance, validate_coordinates
from nearby.models.location import UserLocation
from nearby.models.user import User
from nearby.schemas.location import LocationCreate, LocationResponse, LocationUpdate

logger = logging.getLogger(__name__)


def to_response(location: UserLocation, distance: Optional[float] = None) -> LocationResponse:
    response = LocationResponse.model_validate(location)
    response.distance = distance
    return response


class LocationService:
    """Service for user locations"""

    @staticmethod
    def _clear_defaults(db: Session, user_id: str, keep_id: Optional[str] = None) -> int:
        query = db.query(UserLocation).filter(
            UserLocation.user_id == user_id,
            UserLocation.is_default == True,  # noqa: E712
        )
        if keep_id is not None:
            query = query.filter(UserLocation.id != keep_id)
        return query.update({UserLocation.is_default: False}, synchronize_session="fetch")

    @staticmethod
    def _get_owned(db: Session, user_id: str, location_id: str) -> UserLocation:
        location = (
            db.query(UserLocation)
            .filter(UserLocation.id == location_id, UserLocation.user_id == user_id)
            .first()
        )
        if not location:
            raise ResourceNotFoundError("Location")
        return location

    def track_location(self, db: Session, user_id: str, data: LocationCreate) -> LocationResponse:
        """
        Record a location for a user

        When ``is_default`` is set, every other default of the user is
        cleared in the same transaction as the insert.
        """
        with transaction(db):
            if data.is_default:
                self._clear_defaults(db, user_id)
            location = UserLocation(
                user_id=user_id,
                name=data.name,
                address=data.address,
                type=data.type.value,
                latitude=data.latitude,
                longitude=data.longitude,
                is_default=data.is_default,
            )
            db.add(location)

        db.refresh(location)
        logger.info(f"Tracked location {location.id} for user {user_id} (default={location.is_default})")
        return to_response(location)

    @staticmethod
    def get_current_location(db: Session, user_id: str) -> LocationResponse:
        """The user's default location"""
        location = (
            db.query(UserLocation)
            .filter(UserLocation.user_id == user_id, UserLocation.is_default == True)  # noqa: E712
            .first()
        )
        if not location:
            raise ResourceNotFoundError("Current location")
        return to_response(location)

    @staticmethod
    def get_location_history(db: Session, user_id: str, limit: Optional[int] = None) -> List[LocationResponse]:
        """Locations of a user, newest first"""
        limit = limit or settings.DEFAULT_LOCATION_HISTORY_LIMIT
        rows = (
            db.query(UserLocation)
            .filter(UserLocation.user_id == user_id)
            .order_by(UserLocation.created_at.desc(), UserLocation.id.desc())
            .limit(limit)
            .all()
        )
        return [to_response(row) for row in rows]

    def update_location(self, db: Session, user_id: str, location_id: str, data: LocationUpdate) -> LocationResponse:
        """
        Update an owned location

        Raises:
            ResourceNotFoundError: Location missing or owned by someone else
        """
        location = self._get_owned(db, user_id, location_id)
        updates = data.model_dump(exclude_unset=True, exclude_none=True, mode="json")

        with transaction(db):
            if updates.get("is_default"):
                self._clear_defaults(db, user_id, keep_id=location.id)
            for field, value in updates.items():
                setattr(location, field, value)

        db.refresh(location)
        return to_response(location)

    def delete_location(self, db: Session, user_id: str, location_id: str) -> None:
        location = self._get_owned(db, user_id, location_id)
        with transaction(db):
            db.delete(location)
        logger.info(f"Deleted location {location_id} of user {user_id}")

    @staticmethod
    def get_nearby_users(
        db: Session,
        latitude: float,
        longitude: float,
        radius: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> List[LocationResponse]:
        """
        Default locations of active users within ``radius``, nearest first

        Only a user's current (default) location counts.
        """
        if not validate_coordinates(latitude, longitude):
            raise ValidationError("Invalid coordinates", details={"latitude": latitude, "longitude": longitude})
        radius = radius if radius is not None else settings.DEFAULT_SEARCH_RADIUS_METERS
        limit = min(limit or settings.DEFAULT_NEARBY_LIMIT, settings.MAX_PAGE_SIZE)

        query = (
            db.query(UserLocation)
            .join(User, User.id == UserLocation.user_id)
            .filter(
                UserLocation.is_default == True,  # noqa: E712
                User.deleted_at.is_(None),
                User.status == "active",
            )
        )
        query = apply_bounding_box(
            query,
            UserLocation.latitude,
            UserLocation.longitude,
            bounding_box(latitude, longitude, radius),
        )
        ranked = rank_by_distance(query.all(), latitude, longitude, radius, limit=limit)
        return [to_response(location, distance) for location, distance in ranked]

    @staticmethod
    def get_distance_between(
        db: Session,
        first_id: str,
        second_id: str,
        user_id: Optional[str] = None,
    ) -> float:
        """Meters between two locations; 0 when either id is unresolved"""
        query = db.query(UserLocation)
        if user_id is not None:
            query = query.filter(UserLocation.user_id == user_id)
        first = query.filter(UserLocation.id == first_id).first()
        second = query.filter(UserLocation.id == second_id).first()
        if first is None or second is None:
            return 0.0
        return haversine_meters(first.latitude, first.longitude, second.latitude, second.longitude)


# Singleton instance
location_service = LocationService()
