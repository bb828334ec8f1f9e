"""Database models"""

from nearby.models.user import User
from nearby.models.security import RefreshToken, PasswordResetToken
from nearby.models.service import ServiceType, Service
from nearby.models.location import UserLocation
from nearby.models.favorite import Favorite

__all__ = ["User", "RefreshToken", "PasswordResetToken", "ServiceType", "Service", "UserLocation", "Favorite"]
