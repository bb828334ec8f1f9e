"""Favorite schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from nearby.schemas.service import ServiceResponse


class FavoriteCreate(BaseModel):
    """Favorite creation schema"""
    service_id: str


class FavoriteResponse(BaseModel):
    """Favorite response schema"""
    id: str
    user_id: str
    service_id: str
    created_at: Optional[datetime] = None
    service: Optional[ServiceResponse] = None

    model_config = ConfigDict(from_attributes=True)


class FavoriteStatus(BaseModel):
    """Whether the caller has favorited a service"""
    service_id: str
    is_favorite: bool
