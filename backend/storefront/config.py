from decimal import Decimal
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    DATABASE_URL: str = "sqlite:///./dev.db"
    APP_HOST: str = "127.0.0.1"
    APP_PORT: int = 8000
    FRONTEND_ORIGINS: List[str] = ["http://localhost:3000"]
    LOG_LEVEL: str = "INFO"

    # money: everything persisted is in BASE_CURRENCY
    BASE_CURRENCY: str = "USD"
    PRICE_TOLERANCE: Decimal = Decimal("0.01")

    # payment processor
    PAYMENT_PROVIDER: str = "mock"  # mock | stripe
    PAYMENT_MOCK_DELAY_MS: int = 200
    PAYMENT_MAX_RETRIES: int = 2
    PAYMENT_CONFIRM_TIMEOUT_SECONDS: float = 10.0
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None
    STRIPE_API_VERSION: str = "2023-10-16"

    # finalization
    FINALIZE_WAIT_SECONDS: float = 2.0
    # an IN_PROGRESS marker untouched this long belongs to a dead worker
    FINALIZE_STALE_SECONDS: float = 60.0
    LOCKS_DIR: Optional[str] = None
    LOCK_TIMEOUT_SECONDS: float = 10.0

    # auth sessions
    SESSION_TTL_SECONDS: int = 7 * 24 * 3600
    SESSION_COOKIE_NAME: str = "sid"
    SESSION_PURGE_INTERVAL_SECONDS: int = 300
    SCHEDULER_ENABLED: bool = True


settings = Settings()
