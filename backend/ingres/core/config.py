# backend/ingres/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ---- Core ----
    PROJECT_NAME: str = "INGRES Locator API"
    ENV: str = "dev"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ---- Database / KV / CORS ----
    # Any SQLAlchemy URL; SQLite file by default
    DATABASE_URL: str = "sqlite:///./data/ingres.sqlite3"
    # Empty -> in-process KV (single worker only)
    REDIS_URL: str = ""
    KV_MAX_ENTRIES: int = 10000
    # Comma-separated allowed origins
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    # ---- Portal ----
    PORTAL_BASE: str = "https://ingres.iith.ac.in/gecdataonline/gis/INDIA"
    PORTAL_API_BASE: str = "https://ingres.iith.ac.in/api"
    PORTAL_API_KEY: str | None = None
    DEFAULT_ASSESSMENT_YEAR: str = "2024-2025"
    DEFAULT_COMPUTATION_TYPE: str = "normal"

    # ---- Fetching ----
    FIRECRAWL_API_KEY: str | None = None
    FIRECRAWL_API_URL: str = "https://api.firecrawl.dev"
    USER_AGENT: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    )
    FETCH_TIMEOUT_SECONDS: float = 20
    SCRAPE_WAIT_MS: int = 10000
    RESOLVE_WAIT_MS: int = 2000
    SCRAPE_TTL_SECONDS: int = 21600

    # ---- Resolution / retries ----
    FUZZY_THRESHOLD: float = 0.3
    RETRY_BASE_DELAY: float = 0.25
    MAX_RETRIES: int = 2
    API_CACHE_TTL_SECONDS: int = 300
    # JSON list of {"name", "type", "locuuid", "stateuuid"}
    INGRES_LOCATION_OVERRIDES: str = ""

    # ---- Rate limiting ----
    RATE_LIMIT_REQUESTS: int = 60
    RATE_LIMIT_WINDOW_SECONDS: int = 60

    # ---- Background jobs ----
    SCHEDULER_ENABLED: bool = True
    CACHE_PURGE_INTERVAL_MIN: int = 60

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip().rstrip("/") for o in self.CORS_ORIGINS.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()


# singleton (import this everywhere)
settings = get_settings()
