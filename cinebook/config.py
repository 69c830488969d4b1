from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "CineBook"
    DEBUG: bool = True
    REDIS_URL: str = "redis://localhost:6379/0"
    # Remote cinema API (catalog, promotions, bookings)
    CINEMA_API_BASE_URL: str = "http://localhost:4999/api"
    CINEMA_API_TIMEOUT_SECONDS: float = 10.0
    # Booking draft hand-off between the seat page and checkout
    DRAFT_STORE_BACKEND: str = "redis"
    DRAFT_TTL_SECONDS: int = 30 * 60
    SUBMIT_LOCK_TTL_SECONDS: int = 30
    SESSION_COOKIE_NAME: str = "cinebook_session"
    CATALOG_PATH: str = "/movies"
    PAYMENT_METHODS: List[str] = ["Credit Card", "MoMo", "Banking", "Cash"]
    SENTRY_DSN: str = ""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


settings = Settings()
