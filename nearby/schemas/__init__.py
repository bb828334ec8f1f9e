"""Pydantic schemas for API validation"""

from nearby.schemas.user import (
    RegisterRequest,
    LoginRequest,
    RefreshTokenRequest,
    LogoutRequest,
    AccountView,
    AuthResponse,
    TokenPair,
    SessionClaims,
)
from nearby.schemas.service import (
    ServiceCreate,
    ServiceUpdate,
    ServiceResponse,
    ServiceSearchParams,
    ServiceTypeResponse,
    PaginatedServices,
)
from nearby.schemas.location import LocationCreate, LocationUpdate, LocationResponse
from nearby.schemas.favorite import FavoriteCreate, FavoriteResponse, FavoriteStatus
from nearby.schemas.response import ErrorResponse

__all__ = [
    "RegisterRequest", "LoginRequest", "RefreshTokenRequest", "LogoutRequest",
    "AccountView", "AuthResponse", "TokenPair", "SessionClaims",
    "ServiceCreate", "ServiceUpdate", "ServiceResponse", "ServiceSearchParams",
    "ServiceTypeResponse", "PaginatedServices",
    "LocationCreate", "LocationUpdate", "LocationResponse",
    "FavoriteCreate", "FavoriteResponse", "FavoriteStatus",
    "ErrorResponse",
]
