"""Configuration system for Query Console.

Loads configuration from:
1. JSON file specified by QUERY_CONSOLE_CONFIG env var
2. Environment variable overrides with QUERY_CONSOLE_ prefix
   - Nested keys use double underscore: QUERY_CONSOLE_FEED__MAX_HEIGHT
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineConfig(BaseSettings):
    """Configuration for the DuckDB query engine."""

    model_config = SettingsConfigDict(
        env_prefix="QUERY_CONSOLE_ENGINE__",
        env_nested_delimiter="__",
    )

    database: str = Field(default=":memory:", description="DuckDB database path")
    memory_limit: str = Field(
        default="1GB", description="DuckDB memory limit (e.g., '4GB', '512MB')"
    )
    threads: int = Field(default=4, ge=1, description="Number of DuckDB threads")


class QueryConfig(BaseSettings):
    """Configuration for query execution."""

    model_config = SettingsConfigDict(
        env_prefix="QUERY_CONSOLE_QUERY__",
        env_nested_delimiter="__",
    )

    limit: str = Field(
        default="0,1000",
        description="Row window sent with every execution: 'lo,hi' or 'n'",
    )

    @field_validator("limit")
    @classmethod
    def check_limit(cls, value: str) -> str:
        from query_console.query.models import parse_limit

        parse_limit(value)
        return value


class EditorConfig(BaseSettings):
    """Configuration for statement extraction."""

    model_config = SettingsConfigDict(
        env_prefix="QUERY_CONSOLE_EDITOR__",
        env_nested_delimiter="__",
    )

    delimiter: str = Field(
        default=";", min_length=1, max_length=1, description="Statement terminator"
    )


class FeedConfig(BaseSettings):
    """Configuration for the notification feed height budget."""

    model_config = SettingsConfigDict(
        env_prefix="QUERY_CONSOLE_FEED__",
        env_nested_delimiter="__",
    )

    max_height: int = Field(default=500, ge=0, description="Cumulative height budget")
    success_height: int = Field(
        default=145, ge=1, description="Estimated height of a success notification"
    )
    default_height: int = Field(
        default=70, ge=1, description="Estimated height of any other notification"
    )


class ExportConfig(BaseSettings):
    """Configuration for CSV downloads."""

    model_config = SettingsConfigDict(
        env_prefix="QUERY_CONSOLE_EXPORT__",
        env_nested_delimiter="__",
    )

    max_size_bytes: int = Field(
        default=100 * 1024 * 1024, ge=1, description="Maximum CSV export size in bytes"
    )
    filename: str = Field(default="query", description="Download filename without extension")


class ServerConfig(BaseSettings):
    """Configuration for the HTTP server."""

    model_config = SettingsConfigDict(
        env_prefix="QUERY_CONSOLE_SERVER__",
        env_nested_delimiter="__",
    )

    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8080, ge=1, le=65535, description="Server port")


class OTelConfig(BaseSettings):
    """Configuration for OpenTelemetry."""

    model_config = SettingsConfigDict(
        env_prefix="QUERY_CONSOLE_OTEL__",
        env_nested_delimiter="__",
    )

    enabled: bool = Field(default=False, description="Enable OpenTelemetry instrumentation")
    endpoint: str = Field(
        default="http://localhost:4317", description="OTLP exporter endpoint"
    )
    insecure: bool = Field(default=True, description="Use an insecure OTLP channel")
    service_name: str = Field(default="query-console", description="Service name for traces")


class Settings(BaseSettings):
    """Root configuration for Query Console."""

    model_config = SettingsConfigDict(
        env_prefix="QUERY_CONSOLE_",
        env_nested_delimiter="__",
        env_file=None,
        extra="ignore",
    )

    engine: EngineConfig = Field(default_factory=EngineConfig)
    query: QueryConfig = Field(default_factory=QueryConfig)
    editor: EditorConfig = Field(default_factory=EditorConfig)
    feed: FeedConfig = Field(default_factory=FeedConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    otel: OTelConfig = Field(default_factory=OTelConfig)

    @model_validator(mode="before")
    @classmethod
    def load_from_json_file(cls, data: dict[str, Any]) -> dict[str, Any]:
        """Load configuration from JSON file if QUERY_CONSOLE_CONFIG is set."""
        import os

        config_path = os.environ.get("QUERY_CONSOLE_CONFIG")
        if config_path:
            path = Path(config_path)
            if not path.exists():
                raise ValueError(f"Config file not found: {config_path}")
            with path.open() as f:
                file_config = json.load(f)
            for key, value in file_config.items():
                if key not in data:
                    data[key] = value
                elif isinstance(value, dict) and isinstance(data.get(key), dict):
                    data[key] = {**value, **data[key]}
        return data


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the application settings (cached)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings, optionally from a specific config file.

    Args:
        config_path: Path to JSON config file. If None, uses QUERY_CONSOLE_CONFIG env var.

    Returns:
        Loaded Settings instance.
    """
    import os

    if config_path is not None:
        os.environ["QUERY_CONSOLE_CONFIG"] = str(config_path)

    global _settings
    _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset cached settings (useful for testing)."""
    global _settings
    _settings = None
