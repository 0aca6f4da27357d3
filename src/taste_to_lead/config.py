"""Application configuration using pydantic-settings."""

from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TASTE_TO_LEAD_",
        extra="ignore",
    )

    # Image generation (required for staging batches)
    gemini_api_key: SecretStr = Field(
        default=SecretStr(""),
        description="Google AI API key for the image-generation provider",
    )
    image_model: str = Field(
        default="gemini-2.5-flash-image",
        description="Image model used to render staged rooms",
    )

    # Vibe tagging (optional)
    anthropic_api_key: SecretStr = Field(
        default=SecretStr(""),
        description="Anthropic API key for listing vibe tagging",
    )
    tagger_model: str = Field(
        default="claude-haiku-4-5",
        description="Model used to classify listing photos into a vibe",
    )

    # Staging queue
    staging_concurrency: int = Field(
        default=1,
        ge=1,
        le=16,
        description="Number of staging jobs processed at the same time",
    )
    staging_min_interval_seconds: float = Field(
        default=8.0,
        ge=0,
        description="Minimum gap between provider calls, measured from the last call's completion",
    )

    # Rate-limited gateways
    image_gateway_delay_seconds: float = Field(default=0.5, ge=0)
    tagger_gateway_delay_seconds: float = Field(default=0.5, ge=0)
    gateway_max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries on quota (429) errors before giving up",
    )
    gateway_base_delay_seconds: float = Field(
        default=5.0,
        ge=0,
        description="First backoff delay; doubles on every retry",
    )

    image_fetch_timeout_seconds: float = Field(default=30.0, gt=0)

    # Database
    database_path: str = Field(default="data/staging.db")

    log_json: bool = Field(default=False, description="Emit JSON logs instead of console output")

    @property
    def data_dir(self) -> str:
        """Return the directory containing the database."""
        return str(Path(self.database_path).parent)

    def has_image_provider(self) -> bool:
        """Whether an image-generation API key is configured."""
        return bool(self.gemini_api_key.get_secret_value())

    def has_tagger(self) -> bool:
        """Whether a vibe-tagging API key is configured."""
        return bool(self.anthropic_api_key.get_secret_value())
