"""Service directory models"""

import uuid

from sqlalchemy import (
    Column, String, Text, Integer, Boolean, DateTime, ForeignKey, Index, JSON, Numeric, CheckConstraint,
)
from sqlalchemy.orm import relationship

from nearby.core.clock import utcnow
from nearby.core.database import Base
from nearby.models.geo import GeoPointMixin


class ServiceType(Base):
    """Reference data: category of a service"""

    __tablename__ = "service_types"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), unique=True, nullable=False)
    slug = Column(String(255), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    icon = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    services = relationship("Service", back_populates="service_type")

    def __repr__(self):
        return f"<ServiceType(id={self.id}, slug='{self.slug}')>"


class Service(GeoPointMixin, Base):
    """Geotagged service listing"""

    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    service_type_id = Column(String(36), ForeignKey("service_types.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    address = Column(String(500), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    country = Column(String(100), nullable=True)
    postal_code = Column(String(20), nullable=True)
    phone = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)
    website = Column(String(500), nullable=True)
    opening_hours = Column(JSON, nullable=True)
    rating = Column(Numeric(3, 2, asdecimal=False), default=0, nullable=True)
    review_count = Column(Integer, default=0, nullable=False)
    price_range = Column(Numeric(10, 2, asdecimal=False), nullable=True)
    # Comma-joined; searched with substring matches
    tags = Column(Text, nullable=True)
    images = Column(Text, nullable=True)
    status = Column(String(20), default="active", nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    is_featured = Column(Boolean, default=False, nullable=False)
    view_count = Column(Integer, default=0, nullable=False)
    favorite_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    service_type = relationship("ServiceType", back_populates="services")
    favorites = relationship("Favorite", back_populates="service", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_services_type', 'service_type_id'),
        Index('idx_services_status', 'status'),
        Index('idx_services_lat_lng', 'latitude', 'longitude'),
        CheckConstraint('latitude >= -90 AND latitude <= 90', name='chk_services_latitude'),
        CheckConstraint('longitude >= -180 AND longitude <= 180', name='chk_services_longitude'),
        CheckConstraint('favorite_count >= 0', name='chk_services_favorite_count'),
        CheckConstraint(
            "status IN ('active', 'inactive', 'pending', 'closed')",
            name='chk_services_status'
        ),
    )

    def __repr__(self):
        return f"<Service(id={self.id}, name='{self.name}', status='{self.status}')>"
