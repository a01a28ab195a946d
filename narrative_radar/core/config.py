"""
Runtime configuration with fail-fast validation.
XAI_API_KEY MUST be present or the app will not start.
"""
from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from narrative_radar.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Constants
SOURCE_TIMEOUT_SECONDS = 15.0
ADAPTER_TIMEOUT_SECONDS = 600.0
LLM_TIMEOUT_SECONDS = 180.0
TOP_TOPIC_LIMIT = 30
HISTORY_DEFAULT_LIMIT = 10
DEFAULT_DAY_RANGE = 14


class Settings(BaseSettings):
    """
    Application settings with strict validation.
    The xAI key is REQUIRED - classification, enrichment and the X-backed
    sources all depend on it.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # REQUIRED: xAI (Grok) configuration, OpenAI-compatible API
    XAI_API_KEY: str
    LLM_BASE_URL: str = "https://api.x.ai/v1"
    CHAT_MODEL: str = "grok-4-1-fast-non-reasoning"
    SEARCH_MODEL: str = "grok-4-1-fast-non-reasoning"

    # OPTIONAL: Source credentials (sources degrade gracefully if missing)
    GITHUB_TOKEN: str | None = None
    SOLANA_RPC_URL: str | None = None

    # OPTIONAL: Snapshot ledger mirror in Google Sheets
    GOOGLE_CREDENTIALS: str | None = None  # JSON string of service account credentials
    SHEET_ID: str | None = None

    # OPTIONAL: Pipeline behaviour
    DATA_DIR: Path = Path("data")
    DEFAULT_DAY_RANGE: int = DEFAULT_DAY_RANGE
    IDEA_THROTTLE_SECONDS: float = 1.0
    SCHEDULER_ENABLED: bool = True
    BOOTSTRAP_ON_START: bool = True

    # OPTIONAL: Application settings
    CRON_SECRET: str | None = None
    CORS_ORIGINS: list[str] = []
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "production"

    @field_validator("XAI_API_KEY")
    @classmethod
    def validate_required_not_empty(cls, v: str, info) -> str:
        """Ensure required fields are not empty strings."""
        if not v or not v.strip():
            raise ValueError(f"{info.field_name} cannot be empty")
        return v.strip()

    @field_validator("DEFAULT_DAY_RANGE")
    @classmethod
    def validate_day_range(cls, v: int) -> int:
        if v < 1:
            raise ValueError("DEFAULT_DAY_RANGE must be a positive integer")
        return v

    @model_validator(mode="after")
    def validate_google_credentials_json(self) -> "Settings":
        """Validate GOOGLE_CREDENTIALS when the ledger mirror is configured."""
        if not self.GOOGLE_CREDENTIALS:
            return self
        try:
            credentials_dict = json.loads(self.GOOGLE_CREDENTIALS)
        except json.JSONDecodeError as e:
            raise ValueError(f"GOOGLE_CREDENTIALS is not valid JSON: {e}") from e
        if not isinstance(credentials_dict, dict):
            raise ValueError("GOOGLE_CREDENTIALS must be a JSON object")
        required_fields = ["type", "project_id", "private_key", "client_email"]
        missing_fields = [field for field in required_fields if field not in credentials_dict]
        if missing_fields:
            raise ValueError(f"GOOGLE_CREDENTIALS missing required fields: {', '.join(missing_fields)}")
        return self

    def log_startup_summary(self) -> None:
        """Log configuration summary on startup (without leaking secrets)."""
        logger.info("=" * 60)
        logger.info("Narrative Radar - Configuration")
        logger.info("=" * 60)
        logger.info("Environment: %s", self.ENVIRONMENT)
        logger.info("Log Level: %s", self.LOG_LEVEL)
        logger.info("LLM Base URL: %s", self.LLM_BASE_URL)
        logger.info("Chat Model: %s", self.CHAT_MODEL)
        logger.info("xAI API Key: %s", "✓ Present" if self.XAI_API_KEY else "✗ Missing")
        logger.info("GitHub Token: %s", "✓ Present" if self.GITHUB_TOKEN else "○ Optional (not set)")
        logger.info("Solana RPC URL: %s", "✓ Present" if self.SOLANA_RPC_URL else "○ Optional (not set)")
        logger.info("Snapshot Ledger: %s", "✓ Configured" if self.GOOGLE_CREDENTIALS and self.SHEET_ID else "○ Not configured")
        logger.info("Data Directory: %s", self.DATA_DIR)
        logger.info("Scheduler: %s", "enabled" if self.SCHEDULER_ENABLED else "disabled")
        logger.info("Cron Secret: %s", "✓ Configured" if self.CRON_SECRET else "○ Not configured")
        logger.info("=" * 60)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Raises ConfigurationError if configuration is invalid.
    """
    try:
        settings = Settings()
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
    settings.log_startup_summary()
    return settings
