from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator, model_validator
from typing import Any, ClassVar
import json
from pathlib import Path
import os


class Settings(BaseSettings):
    API_V1_STR: str = "/api/v1"

    # JWT configuration (provide a fallback for local development)
    SECRET_KEY: str = "fallback_secret_for_dev_only"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Database URL
    # Use an absolute path so running the app from different directories
    # (e.g., repo root or backend/) always resolves the same DB file.
    BASE_DIR: ClassVar[Path] = Path(__file__).resolve().parents[2]
    SQLALCHEMY_DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'vowmarket.db'}"

    # Identity provider: "database" (users table + JWT) or "memory" (test double)
    AUTH_BACKEND: str = "database"

    # Admin allowlist. Only these emails may register with the admin role.
    ADMIN_EMAILS: str = ""

    # Payment gateway: "mock" or "http"
    PAYMENT_GATEWAY: str = "mock"
    PAYMENT_GATEWAY_URL: str = "https://example.com"
    PAYMENT_GATEWAY_API_KEY: str = ""
    # Upper bound on a single payment call. Slower calls count as failed.
    PAYMENT_TIMEOUT_SECONDS: float = 10.0
    MOCK_PAYMENT_SUCCESS_RATE: float = 0.9

    # Default currency code used for every charge
    DEFAULT_CURRENCY: str = "INR"

    # Booking window and input bounds
    BOOKING_HORIZON_DAYS: int = 90
    BOOKING_NOTES_MAX_LENGTH: int = 500

    # Optimistic retries for vendor rating aggregate updates
    AGGREGATE_MAX_ATTEMPTS: int = 5

    # Reviews are open to any signed-in user unless this is enabled
    REVIEW_REQUIRES_COMPLETED_BOOKING: bool = False

    # CORS origins
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]
    CORS_ALLOW_ALL: bool = False

    LOG_LEVEL: str = "INFO"
    ENABLE_CONSOLE_TRACING: bool = False

    model_config = SettingsConfigDict(extra="ignore", case_sensitive=True)

    @field_validator("CORS_ORIGINS", mode="before")
    def split_origins(cls, v: Any) -> list[str]:
        """Parse comma-separated or JSON list of origins from environment."""
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
                if isinstance(parsed, list):
                    return parsed
            except json.JSONDecodeError:
                pass
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @field_validator("ADMIN_EMAILS", mode="before")
    def strip_admin_values(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("AUTH_BACKEND", "PAYMENT_GATEWAY", mode="before")
    def lower_backend_names(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("MOCK_PAYMENT_SUCCESS_RATE")
    def clamp_success_rate(cls, v: float) -> float:
        return 0.0 if v < 0 else (1.0 if v > 1 else v)

    @model_validator(mode="after")
    def allow_all_if_requested(cls, values: "Settings") -> "Settings":
        if values.CORS_ALLOW_ALL:
            values.CORS_ORIGINS = ["*"]
        return values

    @property
    def admin_emails(self) -> set[str]:
        return {e.strip().lower() for e in self.ADMIN_EMAILS.split(",") if e.strip()}


def load_settings() -> "Settings":
    return Settings(_env_file=os.getenv("ENV_FILE", str(Path(__file__).resolve().parents[3] / ".env")))


settings = load_settings()
