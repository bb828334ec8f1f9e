"""User location model"""

import uuid

from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship

from nearby.core.clock import utcnow
from nearby.core.database import Base
from nearby.models.geo import GeoPointMixin


class UserLocation(GeoPointMixin, Base):
    """A place recorded for a user; ``is_default`` marks the current one"""

    __tablename__ = "user_locations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    address = Column(Text, nullable=False)
    type = Column(String(10), default="other", nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User", back_populates="locations")

    __table_args__ = (
        Index('idx_user_locations_user', 'user_id'),
        Index('idx_user_locations_default', 'user_id', 'is_default'),
        Index('idx_user_locations_lat_lng', 'latitude', 'longitude'),
        CheckConstraint('latitude >= -90 AND latitude <= 90', name='chk_user_locations_latitude'),
        CheckConstraint('longitude >= -180 AND longitude <= 180', name='chk_user_locations_longitude'),
        CheckConstraint("type IN ('home', 'work', 'other')", name='chk_user_locations_type'),
    )

    def __repr__(self):
        return f"<UserLocation(id={self.id}, user_id={self.user_id}, is_default={self.is_default})>"
