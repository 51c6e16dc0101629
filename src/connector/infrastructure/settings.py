"""Process-level settings using pydantic-settings.

Settings are loaded from environment variables with sensible defaults
for development. Per-job write options are not settings; they are parsed
by ``ingestion.application.options``.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Neo4jSettings(BaseSettings):
    """Graph database connection settings.

    Environment variables:
        GRAPH_INGEST_NEO4J_URI: Bolt URI (default: bolt://localhost:7687)
        GRAPH_INGEST_NEO4J_USERNAME: Database user (default: neo4j)
        GRAPH_INGEST_NEO4J_PASSWORD: Database password (required in production)
        GRAPH_INGEST_NEO4J_DATABASE: Target database, None for the server default
        GRAPH_INGEST_NEO4J_CONNECTION_TIMEOUT: Connect timeout in seconds (default: 30)
    """

    model_config = SettingsConfigDict(
        env_prefix="GRAPH_INGEST_NEO4J_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    uri: str = Field(default="bolt://localhost:7687", description="Bolt URI")
    username: str = Field(default="neo4j", description="Database username")
    password: SecretStr = Field(
        default=SecretStr(""),
        description="Database password",
    )
    database: str | None = Field(
        default=None,
        description="Target database (None uses the server default)",
    )
    connection_timeout: float = Field(
        default=30.0,
        description="Connection timeout in seconds",
        gt=0,
    )


class WriterSettings(BaseSettings):
    """Write engine settings shared by every job in the process.

    Environment variables:
        GRAPH_INGEST_WRITER_MAX_WORKERS: Partitions written concurrently (default: 4)
        GRAPH_INGEST_WRITER_DEFAULT_BATCH_SIZE: Batch size when a job sets none (default: 5000)
    """

    model_config = SettingsConfigDict(
        env_prefix="GRAPH_INGEST_WRITER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_workers: int = Field(
        default=4,
        description="Maximum number of partitions written concurrently",
        ge=1,
        le=256,
    )
    default_batch_size: int = Field(
        default=5000,
        description="Rows per batch when the job does not set batch.size",
        ge=1,
    )


class LoggingSettings(BaseSettings):
    """Structlog output settings.

    Environment variables:
        GRAPH_INGEST_LOG_LEVEL: Minimum level name (default: INFO)
        GRAPH_INGEST_LOG_FORMAT: auto, console or json (default: auto, which
            picks console on a TTY or with FORCE_COLOR and JSON otherwise)
    """

    model_config = SettingsConfigDict(
        env_prefix="GRAPH_INGEST_LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    level: str = Field(default="INFO", description="Minimum log level name")
    format: Literal["auto", "console", "json"] = Field(
        default="auto", description="Renderer selection"
    )


@lru_cache
def get_neo4j_settings() -> Neo4jSettings:
    """Get cached graph database settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Neo4jSettings()


@lru_cache
def get_writer_settings() -> WriterSettings:
    """Get cached writer settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return WriterSettings()


@lru_cache
def get_logging_settings() -> LoggingSettings:
    return LoggingSettings()
