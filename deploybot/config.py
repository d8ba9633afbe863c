"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Values in .env win over the process environment
load_dotenv(override=True)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = True

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # GitHub
    github_api_url: str = "https://api.github.com"
    github_token: str = Field(default="")
    github_app_id: int | None = None
    github_app_slug: str = Field(default="")
    github_timeout_seconds: float = 30.0
    webhook_secret: str = Field(default="")

    # Repository layout
    config_directory: str = ".github/deployments"
    workflow_directory: str = ".github/workflows"
    lock_ref_prefix: str = "deployments"

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["console", "json"] = "console"
    log_directory: str = "logs"
    log_file_name: str = "deploybot.log"

    @field_validator("config_directory", "workflow_directory", "lock_ref_prefix")
    @classmethod
    def strip_slashes(cls, value: str) -> str:
        return value.strip("/")

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
