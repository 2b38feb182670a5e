"""
helpmate/core/config.py

Purpose: Application configuration

- Loads environment variables
- Centralizes config values (DB URI, secrets, LLM and scraping limits)
- Validates configuration on startup
- Environment-specific settings
"""

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, Literal


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Validates all required configs on startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Environment
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"

    # MongoDB
    MONGODB_URL: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI"
    )
    MONGODB_DB_NAME: str = Field(
        default="helpmate",
        description="MongoDB database name"
    )

    # LLM provider (OpenAI-compatible API)
    OPENAI_API_KEY: Optional[str] = Field(
        default=None,
        description="API key for the chat completion provider"
    )
    OPENAI_BASE_URL: Optional[str] = Field(
        default=None,
        description="Override for OpenAI-compatible endpoints"
    )
    OPENAI_MODEL: str = Field(
        default="gpt-4",
        description="Model used for customer replies"
    )
    OPENAI_TITLE_MODEL: str = Field(
        default="gpt-3.5-turbo",
        description="Cheaper model used for titles and summaries"
    )
    LLM_TIMEOUT_SECONDS: float = Field(
        default=60.0,
        description="Timeout for a single completion request"
    )

    # Auth
    JWT_SECRET: str = Field(
        default="change-me-in-production",
        description="Secret used to sign access tokens"
    )
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_DAYS: int = Field(
        default=30,
        description="Access token lifetime in days"
    )

    # Widget
    PUBLIC_BASE_URL: str = Field(
        default="http://localhost:8000",
        description="Public origin serving /widget.js and the chat API"
    )

    # External chat sessions
    SESSION_TTL_HOURS: int = Field(
        default=24,
        description="Lifetime of an in-memory widget chat session"
    )
    SESSION_HISTORY_LIMIT: int = Field(
        default=20,
        description="Maximum number of past messages sent to the LLM"
    )
    SESSION_PURGE_INTERVAL_SECONDS: int = Field(
        default=600,
        description="How often expired sessions are purged"
    )
    SESSION_MAX_ENTRIES: int = Field(
        default=10000,
        description="Maximum number of sessions held in memory"
    )

    # Knowledge base / context assembly
    MAX_SCRAPE_URLS: int = Field(
        default=5,
        description="Maximum knowledge base URLs scraped per message"
    )
    SCRAPE_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Timeout for fetching a knowledge base URL"
    )
    SCRAPE_CACHE_TTL_SECONDS: int = Field(
        default=3600,
        description="How long scraped page text is reused"
    )
    SCRAPE_CACHE_MAX_ENTRIES: int = Field(
        default=500,
        description="Maximum number of scraped pages held in memory"
    )
    MAX_SECTION_CHARS: int = Field(
        default=1000,
        description="Maximum characters kept from a single knowledge source"
    )
    CONTEXT_CHAR_BUDGET: int = Field(
        default=6000,
        description="Maximum characters of knowledge context in the system prompt"
    )
    CONTEXT_SUMMARIZE_OVERFLOW: bool = Field(
        default=True,
        description="Summarize knowledge that does not fit the budget"
    )
    SUMMARY_MAX_TOKENS: int = Field(
        default=300,
        description="Token limit for the overflow summary"
    )

    # Subscriptions
    TRIAL_DAYS: int = Field(
        default=14,
        description="Length of the free trial"
    )

    # Application
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    API_PREFIX: str = Field(
        default="/api",
        description="API route prefix"
    )
    CORS_ORIGINS: list = Field(
        default=["*"],
        description="Allowed CORS origins"
    )

    @field_validator("JWT_SECRET")
    @classmethod
    def validate_jwt_secret(cls, v: str, info: ValidationInfo) -> str:
        """Ensure the signing secret is changed in production."""
        if info.data.get("ENVIRONMENT") == "production" and v == "change-me-in-production":
            raise ValueError("JWT_SECRET must be changed in production environment")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    @property
    def session_ttl_seconds(self) -> int:
        return self.SESSION_TTL_HOURS * 3600


# Global settings instance
settings = Settings()


def validate_settings():
    """
    Validates critical settings on application startup.
    Raises ValueError if any required setting is missing or invalid.
    """
    errors = []

    if not settings.MONGODB_URL:
        errors.append("MONGODB_URL is required")

    if not settings.PUBLIC_BASE_URL:
        errors.append("PUBLIC_BASE_URL is required")

    if settings.MAX_SECTION_CHARS > settings.CONTEXT_CHAR_BUDGET:
        errors.append("MAX_SECTION_CHARS cannot exceed CONTEXT_CHAR_BUDGET")

    # Production-specific validations
    if settings.is_production:
        if not settings.OPENAI_API_KEY:
            errors.append("OPENAI_API_KEY is required in production")

    if errors:
        raise ValueError(f"Configuration validation failed: {', '.join(errors)}")

    return True
