"""Application configuration."""
from pydantic_settings import BaseSettings
from functools import lru_cache


DEFAULT_JWT_SECRET = "change-me-in-production"


class Settings(BaseSettings):
    """Application settings."""

    # App
    APP_NAME: str = "VeroScale"
    ENV: str = "development"
    DEBUG: bool = True
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Database
    DATABASE_URL: str = "sqlite:///./veroscale.db"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10

    # Storage backend: "sql" talks to DATABASE_URL through SQLAlchemy,
    # "baas" talks to the hosted PostgREST API.
    STORAGE_BACKEND: str = "sql"
    BAAS_URL: str | None = None
    BAAS_SERVICE_KEY: str | None = None
    BAAS_SCHEMA: str = "weightmanagementdb"
    BAAS_TIMEOUT_SECONDS: int = 10

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_SOCKET_TIMEOUT_SECONDS: float = 0.5

    # Proxy / client IP handling
    # Only trust X-Forwarded-* headers when running behind a trusted reverse proxy (e.g. nginx).
    TRUST_PROXY_HEADERS: bool = False

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"

    # JWT
    JWT_SECRET_KEY: str = DEFAULT_JWT_SECRET
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 8 * 60
    JWT_LEEWAY_SECONDS: int = 30  # clock skew tolerance for exp validation

    PASSWORD_MIN_LENGTH: int = 8

    # Perimeter rate limiting (fixed window, per client IP).
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_MAX_REQUESTS: int = 100
    RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60
    RATE_LIMIT_LOGIN_MAX_REQUESTS: int = 5

    # IoT telemetry feed (Firebase Realtime Database REST layout)
    IOT_FEED_URL: str | None = None
    IOT_FEED_AUTH_TOKEN: str | None = None
    IOT_FEED_TIMEOUT_SECONDS: int = 5
    IOT_DEFAULT_DEVICE_ID: str = "esp32_timbangan_001"
    IOT_DEVICE_IDS: str = "esp32_timbangan_001"
    IOT_LIVENESS_TIMEOUT_SECONDS: int = 10
    IOT_LIVENESS_CHECK_INTERVAL_SECONDS: int = 5
    # "memory" keeps liveness per process, "redis" shares it with the worker.
    IOT_LIVENESS_STORE: str = "memory"
    IOT_VALID_MIN_WEIGHT: float = 0.01
    IOT_VALID_MAX_WEIGHT: float = 1000.0
    IOT_DEFAULT_MATERIAL_ID: int = 1
    IOT_DEFAULT_DESTINATION: str = "Warehouse"
    IOT_AUTO_SYNC_ENABLED: bool = False
    IOT_AUTO_SYNC_MATERIAL_ID: int = 1
    IOT_AUTO_SYNC_THRESHOLD: float = 0.1
    IOT_AUTO_SYNC_MIN_WEIGHT: float = 0.05
    IOT_WEBHOOK_SECRET: str | None = None

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS origins as list."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    @property
    def iot_device_ids(self) -> list[str]:
        """Get polled IoT device ids as list."""
        return [device.strip() for device in self.IOT_DEVICE_IDS.split(",") if device.strip()]

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
