"""Service directory - radius search, listings and service CRUD"""

from math import ceil
from typing import List, Optional
import logging

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from nearby.config import settings
from nearby.core.cache import CacheBackend, build_cache_key, cache as default_cache, invalidate_prefixes
from nearby.core.clock import utcnow
from nearby.core.database import transaction
from nearby.core.exceptions import ResourceNotFoundError, ValidationError
from nearby.core.geo import apply_bounding_box, bounding_box, haversine_meters, rank_by_distance, validate_coordinates
from nearby.models.service import Service, ServiceType
from nearby.schemas.service import (
    PaginatedServices,
    ServiceCreate,
    ServiceResponse,
    ServiceSearchParams,
    ServiceStatus,
    ServiceTypeResponse,
    ServiceUpdate,
    join_csv,
)
from nearby.services.cache_keys import (
    POPULAR_SCOPE,
    SEARCH_SCOPE,
    SERVICE_LISTING_PREFIXES,
    SERVICE_TYPES_ALL_KEY,
    SERVICE_TYPES_PREFIX,
    service_type_key,
)

logger = logging.getLogger(__name__)


def total_pages(total: int, limit: int) -> int:
    return ceil(total / limit) if limit else 0


def to_response(service: Service, distance: Optional[float] = None) -> ServiceResponse:
    response = ServiceResponse.model_validate(service)
    response.distance = distance
    return response


class ServiceDirectory:
    """Geo search engine over service listings"""

    def __init__(self, cache: Optional[CacheBackend] = None):
        self.cache = cache if cache is not None else default_cache

    @staticmethod
    def _searchable(db: Session):
        return db.query(Service).filter(
            Service.status == ServiceStatus.ACTIVE.value,
            Service.deleted_at.is_(None),
        )

    @staticmethod
    def _require_coordinates(latitude: float, longitude: float) -> None:
        if not validate_coordinates(latitude, longitude):
            raise ValidationError(
                "Invalid coordinates",
                details={"latitude": latitude, "longitude": longitude},
            )

    def invalidate_service_caches(self) -> int:
        """Clear every cached search and listing page"""
        return invalidate_prefixes(self.cache, SERVICE_LISTING_PREFIXES)

    def invalidate_service_types(self) -> int:
        return invalidate_prefixes(self.cache, [SERVICE_TYPES_PREFIX])

    def search(self, db: Session, params: ServiceSearchParams) -> PaginatedServices:
        """
        Radius search with filters, ranked by distance and paginated

        Candidates are pruned with a bounding box on the indexed
        latitude/longitude columns, then filtered and ordered by exact
        great-circle distance.

        Args:
            db: Database session
            params: Point, radius, filters and page

        Returns:
            One page of matching services with their distances
        """
        self._require_coordinates(params.latitude, params.longitude)
        key = build_cache_key(SEARCH_SCOPE, params.model_dump(mode="json"))
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Search cache hit: {key}")
            return PaginatedServices.model_validate(cached)

        query = apply_bounding_box(
            self._searchable(db),
            Service.latitude,
            Service.longitude,
            bounding_box(params.latitude, params.longitude, params.radius),
        )
        if params.service_type_id:
            query = query.filter(Service.service_type_id == params.service_type_id)
        if params.keyword:
            keyword = params.keyword.lower()
            query = query.filter(or_(
                func.lower(Service.name).contains(keyword, autoescape=True),
                func.lower(func.coalesce(Service.description, "")).contains(keyword, autoescape=True),
            ))
        if params.tags:
            query = query.filter(or_(*[
                func.lower(func.coalesce(Service.tags, "")).contains(tag.lower(), autoescape=True)
                for tag in params.tags
            ]))
        if params.min_rating is not None:
            query = query.filter(Service.rating >= params.min_rating)

        ranked = rank_by_distance(query.all(), params.latitude, params.longitude, params.radius)
        offset = (params.page - 1) * params.limit
        page_rows = ranked[offset:offset + params.limit]

        result = PaginatedServices(
            items=[to_response(service, distance) for service, distance in page_rows],
            total=len(ranked),
            page=params.page,
            limit=params.limit,
            total_pages=total_pages(len(ranked), params.limit),
        )
        self.cache.set(key, result.model_dump(mode="json"), settings.SEARCH_CACHE_TTL_SECONDS)
        logger.debug(f"Search cache miss: {key} ({result.total} results)")
        return result

    def search_nearby(
        self,
        db: Session,
        latitude: float,
        longitude: float,
        radius: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> List[ServiceResponse]:
        """Top-N active services by distance; not cached"""
        self._require_coordinates(latitude, longitude)
        radius = radius if radius is not None else settings.DEFAULT_SEARCH_RADIUS_METERS
        limit = min(limit or settings.DEFAULT_NEARBY_LIMIT, settings.MAX_PAGE_SIZE)

        query = apply_bounding_box(
            self._searchable(db),
            Service.latitude,
            Service.longitude,
            bounding_box(latitude, longitude, radius),
        )
        ranked = rank_by_distance(query.all(), latitude, longitude, radius, limit=limit)
        return [to_response(service, distance) for service, distance in ranked]

    def list_services(self, db: Session, page: int = 1, limit: Optional[int] = None) -> PaginatedServices:
        """Newest active services, paginated and cached"""
        limit = min(limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
        page = max(page, 1)
        key = build_cache_key(POPULAR_SCOPE, {"page": page, "limit": limit})
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Listing cache hit: {key}")
            return PaginatedServices.model_validate(cached)

        query = self._searchable(db)
        total = query.count()
        rows = (
            query.order_by(Service.created_at.desc(), Service.id)
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        result = PaginatedServices(
            items=[to_response(service) for service in rows],
            total=total,
            page=page,
            limit=limit,
            total_pages=total_pages(total, limit),
        )
        self.cache.set(key, result.model_dump(mode="json"), settings.POPULAR_CACHE_TTL_SECONDS)
        return result

    @staticmethod
    def _get_live(db: Session, service_id: str) -> Service:
        service = db.query(Service).filter(Service.id == service_id, Service.deleted_at.is_(None)).first()
        if not service:
            raise ResourceNotFoundError("Service")
        return service

    def get_service(self, db: Session, service_id: str) -> ServiceResponse:
        """
        Fetch one service and count the view

        The view counter is not part of any cached result, so it does not
        invalidate them.
        """
        service = self._get_live(db, service_id)
        with transaction(db):
            (
                db.query(Service)
                .filter(Service.id == service.id)
                .update({Service.view_count: Service.view_count + 1}, synchronize_session=False)
            )
        db.refresh(service)
        return to_response(service)

    @staticmethod
    def _require_type(db: Session, service_type_id: str) -> ServiceType:
        service_type = db.get(ServiceType, service_type_id)
        if not service_type:
            raise ResourceNotFoundError("Service type")
        return service_type

    def create_service(self, db: Session, data: ServiceCreate) -> ServiceResponse:
        """
        Create a service listing

        Raises:
            ResourceNotFoundError: Unknown service type
        """
        self._require_type(db, data.service_type_id)
        fields = data.model_dump(exclude={"tags", "images", "status"})
        with transaction(db):
            service = Service(
                **fields,
                status=data.status.value,
                tags=join_csv(data.tags),
                images=join_csv(data.images),
            )
            db.add(service)

        self.invalidate_service_caches()
        db.refresh(service)
        logger.info(f"Created service {service.id}: {service.name}")
        return to_response(service)

    def update_service(self, db: Session, service_id: str, data: ServiceUpdate) -> ServiceResponse:
        """Apply a partial update; a move re-derives the stored geometry"""
        service = self._get_live(db, service_id)
        updates = data.model_dump(exclude_unset=True)
        if updates.get("service_type_id"):
            self._require_type(db, updates["service_type_id"])
        for field in ("tags", "images"):
            if field in updates:
                updates[field] = join_csv(updates[field])
        if updates.get("status") is not None:
            updates["status"] = ServiceStatus(updates["status"]).value

        with transaction(db):
            for field, value in updates.items():
                if value is None and not Service.__table__.columns[field].nullable:
                    continue
                setattr(service, field, value)

        self.invalidate_service_caches()
        db.refresh(service)
        logger.info(f"Updated service {service_id}")
        return to_response(service)

    def remove_service(self, db: Session, service_id: str) -> None:
        """Soft-delete: mark deleted and closed"""
        service = self._get_live(db, service_id)
        with transaction(db):
            service.deleted_at = utcnow()
            service.status = ServiceStatus.CLOSED.value

        self.invalidate_service_caches()
        logger.info(f"Removed service {service_id}")

    @staticmethod
    def get_distance_between(db: Session, first_id: str, second_id: str) -> float:
        """Meters between two services; 0 when either id is unresolved"""
        first = db.query(Service).filter(Service.id == first_id, Service.deleted_at.is_(None)).first()
        second = db.query(Service).filter(Service.id == second_id, Service.deleted_at.is_(None)).first()
        if first is None or second is None:
            return 0.0
        return haversine_meters(first.latitude, first.longitude, second.latitude, second.longitude)

    def get_service_types(self, db: Session) -> List[ServiceTypeResponse]:
        """Active service types ordered by name"""
        cached = self.cache.get(SERVICE_TYPES_ALL_KEY)
        if cached is not None:
            return [ServiceTypeResponse.model_validate(item) for item in cached]

        rows = (
            db.query(ServiceType)
            .filter(ServiceType.is_active == True)  # noqa: E712
            .order_by(ServiceType.name)
            .all()
        )
        types = [ServiceTypeResponse.model_validate(row) for row in rows]
        self.cache.set(
            SERVICE_TYPES_ALL_KEY,
            [item.model_dump(mode="json") for item in types],
            settings.SERVICE_TYPES_CACHE_TTL_SECONDS,
        )
        return types

    def get_service_type(self, db: Session, service_type_id: str) -> ServiceTypeResponse:
        key = service_type_key(service_type_id)
        cached = self.cache.get(key)
        if cached is not None:
            return ServiceTypeResponse.model_validate(cached)

        result = ServiceTypeResponse.model_validate(self._require_type(db, service_type_id))
        self.cache.set(key, result.model_dump(mode="json"), settings.SERVICE_TYPES_CACHE_TTL_SECONDS)
        return result


# Singleton instance
service_directory = ServiceDirectory()
