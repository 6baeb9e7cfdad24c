"""Environment-based configuration for document generation."""

import logging
import sys

import structlog
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JSON_SCHEMA_DIALECT = "https://spec.openapis.org/oas/3.1/dialect/base"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class NotarySettings(BaseSettings):
    """Settings loaded from ``API_NOTARY_*`` environment variables."""

    model_config = SettingsConfigDict(env_prefix="API_NOTARY_")

    OPENAPI_VERSION: str = Field(default="3.1.0", description="OpenAPI version written to documents")
    JSON_SCHEMA_DIALECT: str = Field(default=DEFAULT_JSON_SCHEMA_DIALECT, description="jsonSchemaDialect value")
    TITLE: str = Field(default="API", description="Fallback info.title")
    VERSION: str = Field(default="0.1.0", description="Fallback info.version")
    LOG_LEVEL: str = Field(default="WARNING", description="Logging level used when none is configured")
    OUTPUT_FORMAT: str = Field(default="json", description="Export format when it cannot be guessed (json, yaml)")
    JSON_INDENT: int = Field(default=2, description="Indentation of exported JSON")

    @field_validator("LOG_LEVEL")
    @classmethod
    def _known_level(cls, value: str) -> str:
        value = value.upper()
        if value not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")
        return value


settings = NotarySettings()


def configure_logging(level: str | None = None) -> None:
    """Route structlog output to stderr, dropping events below ``level``."""
    level = (level or settings.LOG_LEVEL).upper()
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def ensure_logging() -> None:
    """Apply the default configuration unless the host already configured structlog."""
    if not structlog.is_configured():
        configure_logging()
