"""Settings for the CAPA tracker, read from the environment and .env."""

from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

try:
    load_dotenv()
except OSError:
    # Unreadable .env; variables must come from the process environment
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase configuration (required)
    SUPABASE_URL: str = Field(..., description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str = Field(..., description="Supabase service role key")

    # Anthropic configuration (optional - suggestions are disabled without it)
    ANTHROPIC_API_KEY: Optional[str] = Field(
        default=None, description="Anthropic API key for plan suggestions"
    )

    # Environment
    CAPA_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")

    # Suggestion model configuration
    SUGGESTION_MODEL: str = Field(
        default="claude-haiku-4-5-20251001", description="Model for plan suggestions and summaries"
    )
    SUGGESTION_MAX_TOKENS: int = Field(default=1024, description="Max tokens per suggestion")

    # Plan suggestion sampling
    PLAN_SUGGESTION_TEMPERATURE: float = Field(default=0.7, ge=0.0, le=1.0)
    PLAN_SUGGESTION_TOP_P: Optional[float] = Field(default=None, gt=0.0, le=1.0)
    PLAN_SUGGESTION_TOP_K: Optional[int] = Field(default=40, ge=1)

    # Incident summary sampling
    INCIDENT_SUMMARY_TEMPERATURE: float = Field(default=0.5, ge=0.0, le=1.0)
    INCIDENT_SUMMARY_TOP_P: Optional[float] = Field(default=None, gt=0.0, le=1.0)
    INCIDENT_SUMMARY_TOP_K: Optional[int] = Field(default=32, ge=1)

    # Record lifecycle
    CAPA_FOLIO_PREFIX: str = Field(default="CAPA", description="Prefix for CAPA folios")
    CAPA_DUE_SOON_DAYS: int = Field(
        default=7, ge=0, description="Days ahead of the commitment date to raise a notice"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If required environment variables are missing
    """
    return Settings()
