"""
Application settings and configuration management.

This module handles environment variables, API keys and the remote endpoints
used by the enrichment pipeline, using Pydantic settings management for type
safety and validation.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All sensitive values are stored as SecretStr to prevent accidental logging.
    Settings are validated on load and cached for performance.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # API Keys
    anthropic_api_key: SecretStr = Field(..., alias="ANTHROPIC_API_KEY")

    # Application Configuration
    app_env: Literal["development", "staging", "production"] = Field(
        default="development",
        alias="APP_ENV"
    )
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        alias="LOG_LEVEL"
    )
    log_json: bool = Field(default=False, alias="LOG_JSON")

    # Model Configuration
    claude_model: str = Field(
        default="claude-sonnet-4-20250514",
        alias="CLAUDE_MODEL"
    )
    claude_max_tokens: int = Field(default=4000, alias="CLAUDE_MAX_TOKENS")
    base_profile_temperature: float = Field(default=0.7, alias="BASE_PROFILE_TEMPERATURE")

    # Rate Limits
    max_requests_per_minute: int = Field(default=50, alias="MAX_REQUESTS_PER_MINUTE")
    llm_max_retries: int = Field(default=3, alias="LLM_MAX_RETRIES")
    request_timeout_seconds: int = Field(default=30, alias="REQUEST_TIMEOUT_SECONDS")

    # Knowledge Sources
    http_user_agent: str = Field(
        default="BrandProfileBot/1.0 (brand profile enrichment)",
        alias="HTTP_USER_AGENT",
    )
    wikipedia_api_url: str = Field(
        default="https://en.wikipedia.org/w/api.php",
        alias="WIKIPEDIA_API_URL",
    )
    wikidata_api_url: str = Field(
        default="https://www.wikidata.org/w/api.php",
        alias="WIKIDATA_API_URL",
    )
    wikidata_sparql_url: str = Field(
        default="https://query.wikidata.org/sparql",
        alias="WIKIDATA_SPARQL_URL",
    )

    @field_validator("anthropic_api_key", mode="before")
    @classmethod
    def validate_anthropic_key(cls, v: str) -> str:
        """Validate Anthropic API key format."""
        if not v or not v.startswith("sk-"):
            raise ValueError("Invalid Anthropic API key format")
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
