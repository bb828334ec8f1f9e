"""Favorite service - saved services and their counters"""

from typing import List
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from nearby.core.database import transaction
from nearby.core.exceptions import ResourceAlreadyExistsError, ResourceNotFoundError
from nearby.models.favorite import Favorite
from nearby.models.service import Service
from nearby.schemas.favorite import FavoriteResponse

logger = logging.getLogger(__name__)


class FavoriteService:
    """Service for favorites"""

    @staticmethod
    def _already_favorited() -> ResourceAlreadyExistsError:
        return ResourceAlreadyExistsError("Favorite", "Service is already in favorites")

    def create(self, db: Session, user_id: str, service_id: str) -> FavoriteResponse:
        """
        Favorite a service and bump its counter in one transaction

        Raises:
            ResourceNotFoundError: Unknown service
            ResourceAlreadyExistsError: Already favorited
        """
        service = db.query(Service).filter(Service.id == service_id, Service.deleted_at.is_(None)).first()
        if not service:
            raise ResourceNotFoundError("Service")
        if self.is_favorite(db, user_id, service_id):
            raise self._already_favorited()

        try:
            with transaction(db):
                favorite = Favorite(user_id=user_id, service_id=service_id)
                db.add(favorite)
                db.flush()
                (
                    db.query(Service)
                    .filter(Service.id == service_id)
                    .update({Service.favorite_count: Service.favorite_count + 1}, synchronize_session=False)
                )
        except IntegrityError:
            raise self._already_favorited()

        db.refresh(favorite)
        db.refresh(service)
        logger.info(f"User {user_id} favorited service {service_id}")
        return FavoriteResponse.model_validate(favorite)

    @staticmethod
    def list_for_user(db: Session, user_id: str) -> List[FavoriteResponse]:
        rows = (
            db.query(Favorite)
            .filter(Favorite.user_id == user_id)
            .order_by(Favorite.created_at.desc(), Favorite.id)
            .all()
        )
        return [FavoriteResponse.model_validate(row) for row in rows]

    @staticmethod
    def _get_owned(db: Session, user_id: str, favorite_id: str) -> Favorite:
        favorite = (
            db.query(Favorite)
            .filter(Favorite.id == favorite_id, Favorite.user_id == user_id)
            .first()
        )
        if not favorite:
            raise ResourceNotFoundError("Favorite")
        return favorite

    def get(self, db: Session, user_id: str, favorite_id: str) -> FavoriteResponse:
        return FavoriteResponse.model_validate(self._get_owned(db, user_id, favorite_id))

    @staticmethod
    def is_favorite(db: Session, user_id: str, service_id: str) -> bool:
        return (
            db.query(Favorite.id)
            .filter(Favorite.user_id == user_id, Favorite.service_id == service_id)
            .first()
        ) is not None

    @staticmethod
    def list_by_service_type(db: Session, user_id: str, service_type_id: str) -> List[FavoriteResponse]:
        """Favorites of a user restricted to one service type"""
        rows = (
            db.query(Favorite)
            .join(Service, Service.id == Favorite.service_id)
            .filter(Favorite.user_id == user_id, Service.service_type_id == service_type_id)
            .order_by(Favorite.created_at.desc(), Favorite.id)
            .all()
        )
        return [FavoriteResponse.model_validate(row) for row in rows]

    def remove(self, db: Session, user_id: str, favorite_id: str) -> None:
        """Delete a favorite and decrement the counter, never below zero"""
        favorite = self._get_owned(db, user_id, favorite_id)
        service_id = favorite.service_id
        with transaction(db):
            db.delete(favorite)
            (
                db.query(Service)
                .filter(Service.id == service_id, Service.favorite_count > 0)
                .update({Service.favorite_count: Service.favorite_count - 1}, synchronize_session=False)
            )
        logger.info(f"User {user_id} removed favorite {favorite_id}")


# Singleton instance
favorite_service = FavoriteService()
