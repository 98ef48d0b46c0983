"""
Centralized application settings using Pydantic.
All configuration is loaded from environment variables.
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode
from typing import Annotated, Optional, List
from functools import lru_cache
import json


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "BarterPOSSync"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development, staging, production

    # Database
    DATABASE_URL: str = "sqlite:///./data/pos_sync.db"

    # Caller authentication (tokens issued by the identity service)
    JWT_SECRET_KEY: str = "local-dev-secret-key-change-in-production"
    JWT_ALGORITHM: str = "HS256"

    # Credential encryption (urlsafe base64 encoded 32 byte AES key)
    POS_TOKEN_ENCRYPTION_KEY: Optional[str] = None

    # CORS - accepts a JSON list or a comma-separated string
    CORS_ORIGINS: Annotated[List[str], NoDecode] = ["http://localhost:3000", "http://localhost:8000", "http://127.0.0.1:8000"]

    # Provider HTTP
    POS_HTTP_TIMEOUT_SECONDS: float = 30.0

    # Square Integration
    SQUARE_APP_ID: Optional[str] = None
    SQUARE_APP_SECRET: Optional[str] = None
    SQUARE_ENVIRONMENT: str = "production"
    SQUARE_API_VERSION: str = "2023-12-13"

    # Clover Integration
    CLOVER_APP_ID: Optional[str] = None
    CLOVER_APP_SECRET: Optional[str] = None
    CLOVER_ENVIRONMENT: str = "production"

    # Lightspeed Integration
    LIGHTSPEED_CLIENT_ID: Optional[str] = None
    LIGHTSPEED_CLIENT_SECRET: Optional[str] = None

    # Shopify Integration
    SHOPIFY_API_VERSION: str = "2024-01"

    # Sentry Error Monitoring
    SENTRY_DSN: Optional[str] = None

    # Scheduler
    SYNC_SCHEDULE_HOUR: int = 3  # 3 AM UTC daily product sync
    SYNC_ENABLED: bool = True

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, value):
        if isinstance(value, str):
            # Handle JSON string from environment
            if value.strip().startswith("["):
                return json.loads(value)
            # Handle comma-separated string
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
