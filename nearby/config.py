"""Application configuration management"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, List
from urllib.parse import quote_plus

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode

# Base directory: repository root
_BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Application
    APP_NAME: str = "Nearby Services API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 4

    # Database (MySQL)
    DATABASE_URL: str = ""
    MYSQL_HOST: str = "localhost"
    MYSQL_PORT: int = 3306
    MYSQL_DB: str = "nearby_services"
    MYSQL_USER: str = "nearby"
    MYSQL_PASSWORD: str = "nearby"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10

    # JWT (asymmetric signing)
    JWT_ALGORITHM: str = "RS256"
    JWT_PRIVATE_KEY: str = ""
    JWT_PUBLIC_KEY: str = ""
    JWT_PRIVATE_KEY_PATH: str = "keys/jwt-private.pem"
    JWT_PUBLIC_KEY_PATH: str = "keys/jwt-public.pem"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Passwords
    BCRYPT_ROUNDS: int = 12
    PASSWORD_RESET_TOKEN_EXPIRE_MINUTES: int = 60

    # Cache
    CACHE_REDIS_URL: str = ""
    CACHE_SOCKET_TIMEOUT_SECONDS: float = 0.75
    AUTH_CACHE_TTL_SECONDS: int = 900
    SEARCH_CACHE_TTL_SECONDS: int = 300
    POPULAR_CACHE_TTL_SECONDS: int = 600
    SERVICE_TYPES_CACHE_TTL_SECONDS: int = 3600

    # Geo search defaults
    DEFAULT_SEARCH_RADIUS_METERS: float = 5000.0
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100
    DEFAULT_NEARBY_LIMIT: int = 20
    DEFAULT_LOCATION_HISTORY_LIMIT: int = 100

    # Token housekeeping
    TOKEN_PURGE_INTERVAL_SECONDS: int = 3600

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    # CORS
    CORS_ORIGINS: Annotated[List[str], NoDecode] = ["http://localhost:3000"]

    # Admin
    ADMIN_EMAIL: str = "admin@nearby.local"
    ADMIN_PASSWORD: str = "Admin12345!"
    CREATE_ADMIN_ON_STARTUP: bool = True

    # Database initialization
    DB_INIT_MODE: str = "create_all"  # create_all | off

    class Config:
        env_file = ".env"
        case_sensitive = True

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, value: Any) -> Any:
        """
        Accept JSON array or comma-separated origins from env.

        Examples:
            CORS_ORIGINS=["http://localhost:3000","http://example.com"]
            CORS_ORIGINS=http://localhost:3000,http://example.com
        """
        if not isinstance(value, str):
            return value

        raw = value.strip()
        if not raw:
            return []

        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None

        if isinstance(parsed, str):
            return [parsed]
        if isinstance(parsed, list):
            return [str(origin).strip() for origin in parsed if str(origin).strip()]

        return [origin.strip() for origin in raw.split(",") if origin.strip()]

    def _resolve_path(self, value: str, default: str) -> str:
        """Resolve relative paths against the repository root"""
        if not value:
            return str(_BASE_DIR / default)
        path = Path(value)
        if path.is_absolute():
            return value
        return str(_BASE_DIR / path)

    def get_private_key_path(self) -> str:
        return self._resolve_path(self.JWT_PRIVATE_KEY_PATH, "keys/jwt-private.pem")

    def get_public_key_path(self) -> str:
        return self._resolve_path(self.JWT_PUBLIC_KEY_PATH, "keys/jwt-public.pem")

    def get_log_file(self) -> str:
        return self._resolve_path(self.LOG_FILE, "logs/app.log")

    def get_database_url(self) -> str:
        """
        Resolve database URL.

        Priority:
          1) Explicit DATABASE_URL
          2) Construct from MYSQL_* parts with safe URL encoding
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL

        user = quote_plus(self.MYSQL_USER)
        password = quote_plus(self.MYSQL_PASSWORD)
        return (
            f"mysql+pymysql://{user}:{password}"
            f"@{self.MYSQL_HOST}:{self.MYSQL_PORT}/{self.MYSQL_DB}?charset=utf8mb4"
        )

    def validate_security_settings(self) -> None:
        """
        Validate runtime security defaults in production.

        Raises:
            ValueError: If insecure defaults are detected.
        """
        if self.ENVIRONMENT.lower() != "production":
            return

        if self.JWT_ALGORITHM != "RS256":
            raise ValueError("JWT_ALGORITHM must be RS256 in production.")

        has_private = bool(self.JWT_PRIVATE_KEY) or Path(self.get_private_key_path()).is_file()
        has_public = bool(self.JWT_PUBLIC_KEY) or Path(self.get_public_key_path()).is_file()
        if not (has_private and has_public):
            raise ValueError(
                "JWT signing keys are missing. Run scripts/generate_keys.py or set JWT_PRIVATE_KEY/JWT_PUBLIC_KEY."
            )

        insecure_admin_passwords = {"", "Admin12345!", "change-me"}
        if self.CREATE_ADMIN_ON_STARTUP and (
            self.ADMIN_PASSWORD in insecure_admin_passwords or len(self.ADMIN_PASSWORD) < 10
        ):
            raise ValueError(
                "Insecure ADMIN_PASSWORD for production. Set a strong admin password before startup."
            )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
