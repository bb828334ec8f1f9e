"""Service directory schemas"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def split_csv(value: Any) -> List[str]:
    """Comma-joined blob to list"""
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(part).strip() for part in value if str(part).strip()]


def join_csv(values: Optional[List[str]]) -> Optional[str]:
    """List to comma-joined blob; None for an empty list"""
    cleaned = split_csv(values or [])
    return ",".join(cleaned) if cleaned else None


class ServiceStatus(str, Enum):
    """Listing status enumeration"""
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"
    CLOSED = "closed"


class ServiceTypeResponse(BaseModel):
    """Service type response schema"""
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    icon: Optional[str] = None
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True)


class ServiceBase(BaseModel):
    description: Optional[str] = None
    address: Optional[str] = Field(None, max_length=500)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=255)
    website: Optional[str] = Field(None, max_length=500)
    opening_hours: Optional[Dict[str, Any]] = None
    price_range: Optional[float] = Field(None, ge=0)


class ServiceCreate(ServiceBase):
    """Service creation schema"""
    service_type_id: str
    name: str = Field(..., min_length=1, max_length=255)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    tags: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    status: ServiceStatus = ServiceStatus.ACTIVE
    is_verified: bool = False
    is_featured: bool = False

    @field_validator('tags', 'images', mode='before')
    @classmethod
    def parse_csv(cls, v):
        return split_csv(v)


class ServiceUpdate(ServiceBase):
    """Partial service update; only provided fields change"""
    service_type_id: Optional[str] = None
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    tags: Optional[List[str]] = None
    images: Optional[List[str]] = None
    status: Optional[ServiceStatus] = None
    is_verified: Optional[bool] = None
    is_featured: Optional[bool] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    review_count: Optional[int] = Field(None, ge=0)

    @field_validator('tags', 'images', mode='before')
    @classmethod
    def parse_csv(cls, v):
        return None if v is None else split_csv(v)


class ServiceResponse(ServiceBase):
    """Service response schema"""
    id: str
    service_type_id: str
    name: str
    latitude: float
    longitude: float
    location: Optional[str] = None
    rating: Optional[float] = None
    review_count: int = 0
    tags: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    status: str
    is_verified: bool = False
    is_featured: bool = False
    view_count: int = 0
    favorite_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    distance: Optional[float] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator('tags', 'images', mode='before')
    @classmethod
    def parse_csv(cls, v):
        return split_csv(v)


class ServiceSearchParams(BaseModel):
    """Radius search query"""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    radius: float = Field(5000.0, gt=0)
    service_type_id: Optional[str] = None
    keyword: Optional[str] = Field(None, max_length=255)
    tags: List[str] = Field(default_factory=list)
    min_rating: Optional[float] = Field(None, ge=0, le=5)
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)

    @field_validator('tags', mode='before')
    @classmethod
    def parse_tags(cls, v):
        return split_csv(v)

    @field_validator('keyword')
    @classmethod
    def blank_keyword(cls, v):
        if v is None:
            return None
        return v.strip() or None


class PaginatedServices(BaseModel):
    """One page of services"""
    items: List[ServiceResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class DistanceResponse(BaseModel):
    """Distance between two entities"""
    distance: float
    unit: str = "meters"
