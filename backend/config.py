from pydantic_settings import BaseSettings
from pathlib import Path


class Settings(BaseSettings):
    ENVIRONMENT: str = "development"  # development | test | staging | production
    APP_NAME: str = "Health Log"
    SECRET_KEY: str = "change-me-in-production"
    REFRESH_SECRET_KEY: str = "change-me-in-production-refresh"
    DATABASE_URL: str = "sqlite:///data/healthlog.db"
    DATA_DIR: Path = Path("data")
    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRY_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRY_DAYS: int = 7
    RESET_TOKEN_TTL_MINUTES: int = 60
    RESET_TOKEN_ISSUE_ATTEMPTS: int = 3
    PAGE_SIZE_DEFAULT: int = 20
    PAGE_SIZE_MAX: int = 100
    STATS_MOOD_WINDOW_DAYS: int = 30
    STATS_TOP_SYMPTOMS_LIMIT: int = 5
    STATS_STREAK_LOOKBACK_DAYS: int = 365
    STATS_STREAK_MAX_DAYS: int = 366
    STATS_WORKERS: int = 4
    SEED_DEFAULTS_ON_STARTUP: bool = True
    LOG_LEVEL: str = "INFO"
    SECURITY_HEADERS_ENABLED: bool = True
    SECURITY_CSP: str = (
        "default-src 'self'; "
        "frame-ancestors 'none'; "
        "base-uri 'self'; "
        "form-action 'self';"
    )

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def is_production_like(self) -> bool:
        return (self.ENVIRONMENT or "").strip().lower() in {"production", "prod", "staging"}

    @property
    def is_sqlite(self) -> bool:
        return (self.DATABASE_URL or "").startswith("sqlite")

    def validate_security_configuration(self) -> None:
        if not self.is_production_like:
            return

        errors: list[str] = []
        if self.SECRET_KEY == "change-me-in-production":
            errors.append("SECRET_KEY must be changed from the default value")
        if self.REFRESH_SECRET_KEY == "change-me-in-production-refresh":
            errors.append("REFRESH_SECRET_KEY must be changed from the default value")
        if self.SECRET_KEY == self.REFRESH_SECRET_KEY:
            errors.append("SECRET_KEY and REFRESH_SECRET_KEY must differ")
        if len((self.SECRET_KEY or "").strip()) < 32:
            errors.append("SECRET_KEY must be at least 32 characters")
        if errors:
            joined = "; ".join(errors)
            raise RuntimeError(f"Insecure production configuration: {joined}")


settings = Settings()
settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
