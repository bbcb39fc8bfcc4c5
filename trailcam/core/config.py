"""Application configuration using Pydantic Settings"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=Path.cwd() / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # JWT Configuration
    jwt_secret_key: str = Field(..., description="Secret key for JWT token signing")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    jwt_expire_days: int = Field(default=30, description="JWT token expiration in days")

    # Database
    database_url: str = Field(..., description="PostgreSQL database URL")
    database_ssl: bool = Field(default=False, description="Require SSL for the database pool")

    # Server URLs
    frontend_url: str = Field(default="http://localhost:3000", description="Frontend URL for CORS")

    # Environment
    environment: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")

    # Chunk relay
    storage_dir: Path = Field(
        default=Path("storage/live-streams"), description="Root directory for stream segments"
    )
    chunk_window: int = Field(default=20, ge=1, description="Segments kept behind the newest one")
    max_chunk_age_seconds: int = Field(
        default=120, ge=1, description="Age after which a non-init segment is not served"
    )
    cleanup_interval_seconds: int = Field(
        default=0, ge=0, description="Periodic storage sweep interval (0 disables)"
    )
    cleanup_max_age_hours: float = Field(
        default=1.0, gt=0, description="Age threshold for the periodic storage sweep"
    )

    # Thumbnails
    thumbnail_dir: Path = Field(
        default=Path("storage/thumbnails"), description="Directory for stream preview images"
    )
    thumbnail_url_prefix: str = Field(
        default="/storage/thumbnails", description="Public URL path for thumbnails"
    )

    # Chat
    chat_rate_limit: int = Field(default=3, ge=1, description="Messages allowed per window")
    chat_rate_window_seconds: int = Field(default=10, ge=1, description="Chat rate window")

    # Realtime fan-out
    broadcast_driver: str = Field(default="log", description="'log' or 'pusher'")
    pusher_app_id: str = Field(default="", description="Pusher app id")
    pusher_key: str = Field(default="", description="Pusher key")
    pusher_secret: str = Field(default="", description="Pusher secret")
    pusher_cluster: str = Field(default="mt1", description="Pusher cluster")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    @field_validator("broadcast_driver")
    @classmethod
    def validate_broadcast_driver(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in ("log", "pusher"):
            logger.warning(f"Unknown broadcast driver '{v}', falling back to log")
            return "log"
        return v_lower

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS allowed origins"""
        return [self.frontend_url]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment"""
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()  # type: ignore[call-arg]
