from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # Database - stores the identifier mapping cache and normalized webhook events
    database_url: str = Field(
        default="sqlite:///./channex_sync.db",
        alias="DATABASE_URL"
    )

    # Dashboard origins allowed to call the sync API (comma-separated)
    allowed_origins: str = Field(default="http://localhost:5173", alias="ALLOWED_ORIGINS")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=True, alias="LOG_JSON")

    # ==============================================
    # Channex API (Server-Side Only!)
    # ==============================================
    # Base URL for Channex API (staging vs production)
    channex_base_url: str = Field(
        default="https://app.channex.io/api/v1",
        alias="CHANNEX_BASE_URL"
    )

    # API Key - NEVER commit to git
    channex_api_key: str = Field(default="", alias="CHANNEX_API_KEY")

    # HTTP timeout for Channex requests
    channex_timeout_seconds: int = Field(default=30, alias="CHANNEX_TIMEOUT_SECONDS")

    # Webhook secret for validating incoming webhooks (empty = no signature check)
    channex_webhook_secret: str = Field(default="", alias="CHANNEX_WEBHOOK_SECRET")

    # Callback registered on the Channex webhook resource of every synced property
    webhook_callback_url: str = Field(
        default="https://YOUR-WEBSITE.COM/api/push_message",
        alias="WEBHOOK_CALLBACK_URL"
    )

    # Retry policy shared by the Channex and backend clients
    http_max_retries: int = Field(default=3, alias="HTTP_MAX_RETRIES")
    http_retry_base_delay: float = Field(default=1.0, alias="HTTP_RETRY_BASE_DELAY")

    # ==============================================
    # Local backend (sync views + event persistence)
    # ==============================================
    backend_base_url: str = Field(default="http://localhost:3000/api", alias="BACKEND_BASE_URL")
    backend_api_token: str = Field(default="", alias="BACKEND_API_TOKEN")
    backend_timeout_seconds: int = Field(default=20, alias="BACKEND_TIMEOUT_SECONDS")

    # Where normalized webhook events are written: "database" or "backend"
    event_store_backend: str = Field(default="database", alias="EVENT_STORE_BACKEND")
    event_store_max_workers: int = Field(default=4, alias="EVENT_STORE_MAX_WORKERS")

    @field_validator('event_store_backend')
    @classmethod
    def validate_event_store_backend(cls, v: str) -> str:
        """Only the two known stores are accepted"""
        value = v.strip().lower()
        if value not in ("database", "backend"):
            raise ValueError("EVENT_STORE_BACKEND must be 'database' or 'backend'")
        return value

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def cors_origins(self) -> List[str]:
        """Parse allowed origins from comma-separated string, without duplicates"""
        origins = []
        for origin in self.allowed_origins.split(","):
            origin = origin.strip().rstrip("/")
            if origin and origin not in origins:
                origins.append(origin)
        return origins or ["http://localhost:5173"]

    @property
    def uses_backend_event_store(self) -> bool:
        return self.event_store_backend == "backend"

    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Initialize settings on module load
settings = get_settings()
