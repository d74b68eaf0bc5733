from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    # Application settings
    app_name: str = "Homepage CMS"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Database settings
    database_url: str = "sqlite+aiosqlite:///./homepage_cms.db"

    # Redis settings
    redis_url: str | None = None
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: str | None = None

    # Locales
    default_locale: str = "en"
    supported_locales: list[str] = ["en"]

    # Cache TTLs in seconds
    cache_ttl_homepage: int = 3600
    cache_ttl_admin: int = 300
    cache_enabled: bool = True
    cache_warm_on_startup: bool = False

    # Schedule sweep
    scheduler_enabled: bool = True
    scheduler_interval_seconds: int = 60
    scheduler_batch_size: int = 50

    # Bounded retry for idempotent store operations (seconds between attempts)
    store_retry_backoff: list[float] = [0.05, 0.2, 0.5]

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # CORS settings
    allowed_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
