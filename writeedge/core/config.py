# writeedge/core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,  # Environment vars are uppercase
        extra="ignore",      # Ignore unexpected vars instead of raising
    )

    # Core application settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./writeedge.db"
    GOOGLE_API_KEY: str = ""
    HOST: str = "0.0.0.0"
    PORT: int = 5001
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_FILE: str = "writeedge.log"
    AUTO_CREATE_TABLES: bool = False

    # CORS settings
    ALLOWED_ORIGINS: list[str] = ["*"]  # In production, specify actual origins
    ALLOW_CREDENTIALS: bool = True
    ALLOWED_METHODS: list[str] = ["*"]
    ALLOWED_HEADERS: list[str] = ["*"]

    # Gemini settings
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_MAX_RETRIES: int = 3

    # Evaluation pipeline
    EVALUATION_MAX_ATTEMPTS: int = 3
    EVALUATION_BACKOFF_SECONDS: float = 5.0
    EVALUATION_MAX_BACKOFF_SECONDS: float = 300.0
    EVALUATION_WORKER_ENABLED: bool = True
    EVALUATION_POLL_INTERVAL_SECONDS: float = 2.0
    EVALUATION_STALE_CLAIM_SECONDS: int = 600
    EVALUATION_BATCH_SIZE: int = 10
    MAX_ANSWER_CHARS: int = 8000

    # Client polling
    POLL_DELAY_SECONDS: float = 3.0
    POLL_MAX_ATTEMPTS: int = 10


def _normalize_settings(settings: Settings) -> None:
    """Normalize driver-less database URLs into their async variants."""
    url = settings.DATABASE_URL
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    if url.startswith("postgresql://"):
        settings.DATABASE_URL = "postgresql+asyncpg://" + url[len("postgresql://"):]
    elif url.startswith("sqlite:///"):
        settings.DATABASE_URL = "sqlite+aiosqlite:///" + url[len("sqlite:///"):]


def _validate_settings(settings: Settings) -> None:
    """Validate critical application settings."""
    if not settings.DATABASE_URL:
        raise ValueError("DATABASE_URL is required")
    if settings.ENVIRONMENT not in ("development", "test") and not settings.GOOGLE_API_KEY:
        raise ValueError("GOOGLE_API_KEY is required")
    if settings.EVALUATION_MAX_ATTEMPTS < 1:
        raise ValueError("EVALUATION_MAX_ATTEMPTS must be at least 1")

    # Environment-specific validations
    if settings.ENVIRONMENT == "production" and settings.DEBUG:
        print("WARNING: DEBUG is enabled in production. Consider setting DEBUG=False.")


# Initialize settings with error handling
try:
    settings = Settings()
    _normalize_settings(settings)
    _validate_settings(settings)
except Exception as e:
    print(f"Error initializing settings: {e}")
    raise
