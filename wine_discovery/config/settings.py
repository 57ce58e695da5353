"""
Application settings and configuration management.

This module handles all environment variables, API keys, and discovery
configuration using Pydantic settings management for type safety and validation.
"""

from functools import lru_cache
from typing import Literal, Optional

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
        populate_by_name=True,
    )

    # API Keys
    anthropic_api_key: Optional[SecretStr] = Field(default=None, alias="ANTHROPIC_API_KEY")
    serper_api_key: Optional[SecretStr] = Field(default=None, alias="SERPER_API_KEY")
    serpapi_api_key: Optional[SecretStr] = Field(default=None, alias="SERPAPI_API_KEY")

    # Application Configuration
    app_env: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        alias="APP_ENV"
    )
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        alias="LOG_LEVEL"
    )
    log_json: bool = Field(default=True, alias="LOG_JSON")

    # Persistence
    database_url: str = Field(default="sqlite:///wines.db", alias="DATABASE_URL")

    # Search Settings
    serper_base_url: str = Field(default="https://google.serper.dev", alias="SERPER_BASE_URL")
    max_search_results: int = Field(default=3, ge=1, le=100, alias="MAX_SEARCH_RESULTS")
    search_timeout_seconds: float = Field(default=10.0, gt=0, alias="SEARCH_TIMEOUT_SECONDS")
    search_max_attempts: int = Field(default=2, ge=1, alias="SEARCH_MAX_ATTEMPTS")

    # Model Configuration
    anthropic_base_url: Optional[str] = Field(default=None, alias="ANTHROPIC_BASE_URL")
    claude_model: str = Field(
        default="claude-sonnet-4-20250514",
        alias="CLAUDE_MODEL"
    )
    claude_max_tokens: int = Field(default=1024, alias="CLAUDE_MAX_TOKENS")
    extraction_temperature: float = Field(default=0.0, alias="EXTRACTION_TEMPERATURE")
    extraction_timeout_seconds: float = Field(default=30.0, gt=0, alias="EXTRACTION_TIMEOUT_SECONDS")
    max_retries: int = Field(default=3, ge=1, alias="MAX_RETRIES")

    # Extraction
    extraction_strategy: Literal["auto", "ai", "heuristic"] = Field(
        default="auto",
        alias="EXTRACTION_STRATEGY",
    )
    ai_extraction_enabled: bool = Field(default=True, alias="AI_EXTRACTION_ENABLED")
    extra_grape_varieties: list[str] = Field(default_factory=list, alias="EXTRA_GRAPE_VARIETIES")
    extra_wine_regions: dict[str, str] = Field(default_factory=dict, alias="EXTRA_WINE_REGIONS")

    # Enrichment
    image_enrichment_enabled: bool = Field(default=True, alias="IMAGE_ENRICHMENT_ENABLED")

    @field_validator("anthropic_api_key", mode="before")
    @classmethod
    def validate_anthropic_key(cls, v: Optional[str]) -> Optional[str]:
        """Validate Anthropic API key format when one is supplied."""
        if v is None or v == "":
            return None
        raw = v.get_secret_value() if isinstance(v, SecretStr) else v
        if not raw.startswith("sk-"):
            raise ValueError("Invalid Anthropic API key format")
        return v

    @field_validator("serper_api_key", "serpapi_api_key", mode="before")
    @classmethod
    def blank_key_is_unset(cls, v: Optional[str]) -> Optional[str]:
        """Treat empty environment values as missing keys."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return v

    @property
    def ai_extraction_available(self) -> bool:
        """Whether the model-backed extraction strategy can be used."""
        return self.ai_extraction_enabled and self.anthropic_api_key is not None

    def get_search_provider(self) -> str:
        """Determine which search provider is primary based on available keys."""
        if self.serper_api_key:
            return "serper"
        elif self.serpapi_api_key:
            return "serpapi"
        return "none"


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
