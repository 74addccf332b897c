"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """All configuration loaded from environment / .env file."""

    # ── Application ──────────────────────────────────────────────
    app_name: str = "nobar"
    secret_key: str = "change-me-to-a-random-string"
    debug: bool = False
    log_level: str = "info"

    # ── Upstream providers ───────────────────────────────────────
    drama_api_url: str = "https://api.sansekai.my.id/api"
    anime_api_url: str = "https://www.sankavollerei.com/anime/samehadaku"
    komik_api_url: str = "https://api-manga-five.vercel.app"
    komik_provider: str = "shinigami"

    upstream_timeout: float = 15.0
    anime_timeout: float = 20.0
    upstream_cache_ttl: float = 300.0  # seconds, 0 disables

    # ── Byte proxy ───────────────────────────────────────────────
    image_proxy_timeout: float = 15.0
    video_proxy_timeout: float = 30.0
    video_proxy_max_bytes: int = 100 * 1024 * 1024

    # ── Database ─────────────────────────────────────────────────
    database_url: Optional[str] = None  # e.g. postgresql+asyncpg://nobar:nobar@db:5432/nobar
    db_health_interval: float = 30.0

    # ── Auth ─────────────────────────────────────────────────────
    access_token_expire_hours: int = 24
    # Only used when no database is configured
    fallback_admin_username: str = "admin"
    fallback_admin_password: str = "admin123"
    # Seeded as superadmin on startup when the account table is empty
    bootstrap_admin_username: Optional[str] = None
    bootstrap_admin_email: Optional[str] = None
    bootstrap_admin_password: Optional[str] = None

    # ── Analytics ────────────────────────────────────────────────
    active_session_minutes: int = 5

    # ── Server ───────────────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = 8000

    @property
    def has_database(self) -> bool:
        return bool(self.database_url)

    @property
    def has_bootstrap_admin(self) -> bool:
        return bool(self.bootstrap_admin_username and self.bootstrap_admin_password)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
