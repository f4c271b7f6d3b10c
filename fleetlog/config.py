"""
Application configuration using Pydantic-Settings.
All settings can be overridden via environment variables or .env file.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Backend API ───────────────────────────────────────────────────────
    API_BASE_URL: str = "https://gis-lab-eco-tourism.vercel.app/fuel-app/api"
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # ── Photo bucket ──────────────────────────────────────────────────────
    BUCKET_UPLOAD_URL: str = "https://cms-dev.gisforestry.com/backend/upload/new"
    UPLOAD_PATH_TAG: str = "DriverAPP"

    # ── Device ────────────────────────────────────────────────────────────
    LOCATION_TIMEOUT_SECONDS: float = 12.0

    # ── Paging ────────────────────────────────────────────────────────────
    PAGE_SIZE: int = 10
    ADMIN_PAGE_SIZE: int = 20

    # ── Local cache (session token + travel drafts) ──────────────────────
    CACHE_DATABASE_URL: str = "sqlite:///./fleetlog_cache.db"

    # ── Fleet ─────────────────────────────────────────────────────────────
    VEHICLES: list[str] = ["SLJ-1112", "SAJ-321", "LEG-2106", "GBF-848", "Hiace APL-2025"]

    # ── Logging ───────────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
