"""Favorite model"""

import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import relationship

from nearby.core.clock import utcnow
from nearby.core.database import Base


class Favorite(Base):
    """A user's saved service; one row per (user, service)"""

    __tablename__ = "favorites"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    service_id = Column(String(36), ForeignKey("services.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="favorites")
    service = relationship("Service", back_populates="favorites")

    __table_args__ = (
        UniqueConstraint('user_id', 'service_id', name='uq_favorites_user_service'),
        Index('idx_favorites_user', 'user_id'),
        Index('idx_favorites_service', 'service_id'),
    )
