from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    """Application settings - All values are loaded from .env file automatically"""

    # API Settings
    APP_NAME: str = "FrontDesk API"
    APP_VERSION: str = "1.0.0"
    API_V1_PREFIX: str = "/api/v1"

    # Database Settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./frontdesk.db"

    # CORS Settings
    BACKEND_CORS_ORIGINS: str = "http://localhost:3000"

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # Server Settings (optional)
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Monitoring / cache (optional)
    SENTRY_DSN: Optional[str] = None
    REDIS_URL: Optional[str] = None

    # Billing
    DEFAULT_TAX_RATE: float = 0.05
    ALLOW_OVERPAYMENT: bool = False
    MAX_DISCOUNT_RATIO: float = 1.0  # Share of the subtotal a discount may cover

    # Reminders
    REMINDER_POLLING_ENABLED: bool = True
    REMINDER_INTERVAL_SECONDS: int = 60
    REMINDER_PERSIST_READ_STATE: bool = False
    REMINDER_STATE_TTL_SECONDS: int = 86400
    STARTING_SOON_MINUTES: int = 30
    OVERDUE_WINDOW_MINUTES: int = 120
    WAITING_ALERT_MINUTES: int = 15

    # Scheduling grid
    SLOT_MINUTES: int = 30
    SLOT_GRID_START: str = "08:00"
    SLOT_GRID_END: str = "18:00"

    model_config = {
        "env_file": ".env",
        "case_sensitive": True,
        "extra": "ignore"  # Ignore extra fields from .env
    }

settings = Settings()
