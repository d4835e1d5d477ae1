"""Application settings powered by Pydantic settings."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Literal, cast

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(RuntimeError):
    """Raised at startup when required environment variables are missing or invalid."""


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    postgres_url: str = Field(
        ...,
        alias="POSTGRES_URL",
        min_length=1,
        description="Database URL; ``sqlite:///path`` selects the SQLite file in use.",
    )
    openai_api_key: str = Field(..., alias="OPENAI_API_KEY", min_length=1)
    google_api_key: str | None = Field(None, alias="GOOGLE_API_KEY")
    google_cse_id: str | None = Field(None, alias="GOOGLE_CSE_ID")
    serpapi_api_key: str | None = Field(None, alias="SERPAPI_API_KEY")
    tavily_api_key: str | None = Field(None, alias="TAVILY_API_KEY")
    searxng_api_url: str | None = Field(
        None,
        alias="SEARXNG_API_URL",
        description="Overrides ``API_ENDPOINTS.SEARXNG`` from the TOML configuration.",
    )
    environment: Literal["development", "production", "test"] = Field(
        "development", alias="APP_ENV"
    )
    # NOTE: permissive default so local runs boot without extra setup; real
    # deployments override it through API_TOKEN.
    api_token: str = Field(
        "dev-token",
        alias="API_TOKEN",
        min_length=8,
        description="Shared bearer token required to access ``/api/v1`` endpoints.",
    )
    allowed_origins_raw: str = Field(
        "http://localhost:3000",
        alias="ALLOWED_ORIGINS",
        description="Comma-separated list of origins allowed to access the API.",
    )
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    config_file: Path = Field(Path("config.toml"), alias="CONFIG_FILE")
    rate_limit_tokens: int = Field(60, alias="RATE_LIMIT_TOKENS", ge=1)
    rate_limit_interval_seconds: int = Field(60, alias="RATE_LIMIT_INTERVAL_SECONDS", ge=1)
    rate_limit_bypass: bool = Field(False, alias="RATE_LIMIT_BYPASS")
    search_timeout: float = Field(
        10.0,
        alias="SEARCH_TIMEOUT",
        ge=1.0,
        le=60.0,
        description="Timeout in seconds for SerpAPI, Tavily and SearxNG calls.",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        validate_by_name=True,
        extra="ignore",
    )

    @field_validator("api_token", mode="before")
    @classmethod
    def ensure_token_has_value(cls, value: str | None) -> str:
        """Fallback to the default token when an empty string is provided.

        Container runtimes forward undefined variables as empty strings, which
        would otherwise trip the ``min_length`` constraint.
        """
        default_token = cast(str, cls.model_fields["api_token"].default)
        if value is None or value == "":
            return default_token
        return value

    @property
    def allowed_origins(self) -> List[str]:
        """Return the sanitized CORS origins as a list."""
        return [origin.strip() for origin in self.allowed_origins_raw.split(",") if origin.strip()]

    @property
    def search_configured(self) -> bool:
        """Return whether at least one web search provider has credentials."""
        return bool(self.serpapi_api_key or self.tavily_api_key)

    @property
    def google_configured(self) -> bool:
        """Return whether both Google credentials are present."""
        return bool(self.google_api_key and self.google_cse_id)

    def config_overrides(self) -> Dict[str, str]:
        """Return the environment overrides applied on top of ``config.toml``."""
        overrides = {
            "MODELS.OPENAI.API_KEY": self.openai_api_key,
            "MODELS.GEMINI.API_KEY": self.google_api_key or "",
            "API_ENDPOINTS.SEARXNG": self.searxng_api_url or "",
        }
        return {path: value for path, value in overrides.items() if value}


def load_settings() -> Settings:
    """Validate the environment, aggregating every violation into one error."""
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        problems = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ())) or "<root>"
            problems.append(f"{location}: {error.get('msg', 'invalid value')}")
        raise ConfigurationError(
            "Missing or invalid environment variables:\n" + "\n".join(problems)
        ) from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return load_settings()


__all__ = ["ConfigurationError", "Settings", "get_settings", "load_settings"]
