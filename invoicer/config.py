from pydantic_settings import BaseSettings
from pydantic import field_validator, model_validator
from functools import lru_cache


# Shared secrets that must never guard a production deployment
WEAK_APP_PASSWORDS = {
    "",
    "password",
    "changeme",
    "secret",
    "admin",
    "123456",
    "development-password-change-in-production",
}

MIN_PRODUCTION_PASSWORD_LENGTH = 16


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./invoices.db"

    @field_validator('DATABASE_URL', mode='before')
    @classmethod
    def convert_database_url(cls, v: str) -> str:
        """Convert postgresql:// to postgresql+asyncpg:// for async support."""
        if v and v.startswith('postgresql://'):
            return v.replace('postgresql://', 'postgresql+asyncpg://', 1)
        return v

    # Auth: single shared secret sent as the x-app-password header
    APP_PASSWORD: str | None = None

    # CORS
    FRONTEND_URL: str = "http://localhost:5173"

    # Routing
    API_PREFIX: str = "/api"

    # Invoice numbering
    INVOICE_NUMBER_PREFIX: str = "INV-"
    INVOICE_NUMBER_WIDTH: int = 5
    INVOICE_COUNTER_ID: str = "invoice_number"

    # Printed at the top of invoice PDFs
    COMPANY_NAME: str = "Invoicer"

    # Lifecycle: when enabled, canceled/collected behave as terminal states
    ENFORCE_LIFECYCLE_TRANSITIONS: bool = False

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    DOCS_ENABLED: bool = True

    @model_validator(mode='after')
    def validate_production(self) -> "Settings":
        """Reject weak secrets and force debug off outside development."""
        if self.is_production:
            password = self.APP_PASSWORD or ""
            if password in WEAK_APP_PASSWORDS:
                raise ValueError("APP_PASSWORD must be set to a strong value in production")
            if len(password) < MIN_PRODUCTION_PASSWORD_LENGTH:
                raise ValueError(
                    f"APP_PASSWORD must be at least {MIN_PRODUCTION_PASSWORD_LENGTH} characters in production"
                )
            self.DEBUG = False
        return self

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() in ("production", "staging")

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    @property
    def sqlalchemy_echo(self) -> bool:
        # Never echo SQL in production, statements may carry customer data
        return self.DEBUG and not self.is_production

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
