from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Postgres (integration + workflow lookups)
    DATABASE_URL: str | None = None

    # Google Calendar OAuth settings (system credentials)
    GOOGLE_CALENDAR_CLIENT_ID: str | None = None
    GOOGLE_CALENDAR_CLIENT_SECRET: str | None = None

    ENCRYPTION_KEY: str | None = None

    # Internal callers (automation engine)
    INTERNAL_API_KEY: str | None = None
    N8N_API_KEY: str | None = None

    # Dashboard session tokens
    SESSION_JWKS_URL: str = "http://localhost:3000/.well-known/jwks.json"
    SESSION_JWT_AUDIENCE: str = "authenticated"

    # Comma separated; "*" allows any origin
    CORS_ALLOWED_ORIGINS: str = "*"

    # Scheduling defaults
    DEFAULT_TIMEZONE: str = "UTC"
    DEFAULT_BOOKING_DESCRIPTION: str = "Booked via BookingDesk"
    CALENDAR_REQUEST_TIMEOUT: float = 30.0
    TOKEN_REFRESH_BUFFER_MINUTES: int = 5

    # =================================================================
    # DATABASE POOL SETTINGS
    # =================================================================
    DB_POOL_MIN_SIZE: int = 2
    DB_POOL_MAX_SIZE: int = 10
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def internal_api_key(self) -> str | None:
        """API key expected from internal callers, if one is configured."""
        return self.INTERNAL_API_KEY or self.N8N_API_KEY

    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ALLOWED_ORIGINS.split(",") if origin.strip()]

    def database_configured(self) -> bool:
        return bool(self.DATABASE_URL)

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            config.update(
                {
                    "min_size": 1,
                    "max_size": 4,
                    "timeout": 15.0,
                }
            )

        return config


settings = Settings()
