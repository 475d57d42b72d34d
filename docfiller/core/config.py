"""Application configuration using Pydantic v2 Settings.

Centralized configuration that loads from environment variables
and provides type-safe access throughout the application.
"""

import logging
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings have sensible defaults and can be overridden via
    environment variables or a .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # AI providers
    openai_api_key: str = Field(
        default="",
        description="OpenAI API key used for filling and template generation.",
    )
    xai_api_key: str = Field(
        default="",
        description="xAI API key for the Grok provider.",
    )
    default_provider: Literal["openai", "grok"] = Field(
        default="openai",
        description="Provider used when a request does not name one.",
    )
    openai_model: str = Field(
        default="gpt-5",
        description="OpenAI model identifier.",
    )
    openai_base_url: str | None = Field(
        default=None,
        description="Optional custom OpenAI base URL.",
    )
    grok_model: str = Field(
        default="grok-4-fast-non-reasoning",
        description="Grok model identifier.",
    )
    grok_base_url: str = Field(
        default="https://api.x.ai/v1",
        description="xAI OpenAI-compatible API base URL.",
    )

    # Fill behaviour
    fill_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Timeout for a single AI call, in seconds.",
    )
    use_file_search: bool = Field(
        default=True,
        description="Ground OpenAI fills with a temporary vector store and file_search.",
    )
    cleanup_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts to delete each temporary remote resource.",
    )
    cleanup_backoff_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Initial delay between cleanup attempts; doubles each retry.",
    )

    # Validation
    strict_validation: bool = Field(
        default=True,
        description="Treat loops without fields as template errors instead of warnings.",
    )
    strict_fill_values: bool = Field(
        default=True,
        description="Reject objects and arrays returned for scalar placeholders.",
    )

    # File Storage
    template_dir: Path = Field(
        default=Path("./templates"),
        description="Directory of bundled .docx templates.",
    )
    max_upload_bytes: int = Field(
        default=20 * 1024 * 1024,
        gt=0,
        description="Largest accepted upload, in bytes.",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR.",
    )
    log_dir: Path = Field(
        default=Path("./logs"),
        description="Directory for info.log and error.log.",
    )

    @field_validator("template_dir")
    @classmethod
    def resolve_template_dir(cls, v: Path) -> Path:
        """Resolve the template directory to an absolute path."""
        return v.resolve()

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Normalize log level to uppercase."""
        return v.upper()

    def configure_logging(self) -> None:
        """Configure global logging based on settings."""
        import structlog

        level = getattr(logging, self.log_level, logging.INFO)

        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.stdlib.PositionalArgumentsFormatter(),
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        logging.basicConfig(
            format="%(message)s",
            level=level,
        )

        logger.setLevel(level)


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global Settings instance.

    Returns:
        The singleton Settings instance.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
        _settings.configure_logging()
    return _settings
