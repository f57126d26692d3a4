"""
Configuration and settings for the relay service.
"""

from __future__ import annotations

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:5173",
    "https://waiverprojects.web.app",
]

# Setting attributes that must be populated before the service can start.
REQUIRED_SETTINGS = (
    "frontend_url",
    "gcs_bucket_name",
    "airtable_api_key",
    "airtable_base_id",
)


class Settings(BaseSettings):
    """Environment-backed settings, optionally completed from Secret Manager."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)
    log_level: str = Field(default="INFO")

    frontend_url: Optional[str] = Field(default=None)
    allowed_origins: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS)
    )

    # Airtable
    airtable_api_key: Optional[str] = Field(default=None)
    airtable_base_id: Optional[str] = Field(default=None)
    request_timeout_seconds: float = Field(default=30.0)

    # Google Cloud
    gcs_bucket_name: Optional[str] = Field(default=None)
    gcp_project_id: Optional[str] = Field(default=None)
    secrets_project_id: Optional[str] = Field(default=None)
    use_secret_manager: bool = Field(default=False)

    # reCAPTCHA Enterprise
    recaptcha_min_score: float = Field(default=0.5)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    def missing_required(self) -> list[str]:
        """Names of required settings that are still empty."""
        return [name for name in REQUIRED_SETTINGS if not getattr(self, name)]
