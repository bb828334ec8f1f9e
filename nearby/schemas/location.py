"""User location schemas"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class LocationType(str, Enum):
    """Location type enumeration"""
    HOME = "home"
    WORK = "work"
    OTHER = "other"


class LocationCreate(BaseModel):
    """Track location payload"""
    name: str = Field(..., min_length=1, max_length=255)
    address: str = Field(..., min_length=1)
    type: LocationType = LocationType.OTHER
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    is_default: bool = False


class LocationUpdate(BaseModel):
    """Partial location update"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    address: Optional[str] = Field(None, min_length=1)
    type: Optional[LocationType] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    is_default: Optional[bool] = None


class LocationResponse(BaseModel):
    """Location response schema"""
    id: str
    user_id: str
    name: str
    address: str
    type: str
    latitude: float
    longitude: float
    location: Optional[str] = None
    is_default: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    distance: Optional[float] = None

    model_config = ConfigDict(from_attributes=True)
