"""
Configuration module for the Log Shipper service.

This module defines the settings and configuration parameters for the service.
It uses Pydantic's Settings management to load configuration from environment
variables and an optional ``.env`` file.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Annotated, List, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_SENTINEL_TRAILER = "--- END OF NEBULA IMPORTER ---\n"


class LogLevel(str, Enum):
    """Log level enumeration."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Environment(str, Enum):
    """Environment enumeration."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


class Settings(BaseSettings):
    """
    Service settings loaded from environment variables.

    Storage credentials are only read by the factory of the provider that
    is actually selected, so unused providers may stay unconfigured.
    """
    # General settings
    PROJECT_NAME: str = "Log Shipper"
    VERSION: str = "0.1.0"
    ENVIRONMENT: Environment = Environment.DEVELOPMENT
    LOG_LEVEL: LogLevel = LogLevel.INFO

    # Pipeline settings
    WATCH_DIR: Path = Path("./logs")
    STORAGE_PROVIDER: str = "azureBlob"
    CONTAINER_NAME: str = "logs"
    CREATE_CONTAINER: bool = False
    MAX_WORKERS: int = Field(default=1, ge=1)
    BLOCK_ON_FULL: bool = True
    TICK_INTERVAL: float = Field(default=2.0, gt=0)
    IDLE_THRESHOLD: float = Field(default=5.0, gt=0)
    IGNORE_SUFFIXES: Annotated[List[str], NoDecode] = [".swp"]
    SENTINEL_TRAILER: str = DEFAULT_SENTINEL_TRAILER
    EXIT_ON_IDLE: bool = True

    # Azure Blob settings
    AZURE_STORAGE_ACCOUNT: str = ""
    AZURE_STORAGE_ACCESS_KEY: SecretStr = Field(default=SecretStr(""))
    AZURE_CONTENT_TYPE: str = "text/plain"

    # S3 settings
    S3_REGION: Optional[str] = None
    S3_ENDPOINT_URL: Optional[str] = None

    # GCS settings
    GCS_PROJECT_ID: Optional[str] = None

    # Local storage settings
    LOCAL_STORAGE_PATH: Path = Path("./uploaded")

    # Telemetry settings
    METRICS_PORT: int = 0

    @field_validator("IGNORE_SUFFIXES", mode="before")
    def split_suffixes(cls, v):
        """Accept a comma separated string as well as a JSON list."""
        if isinstance(v, str):
            if v.lstrip().startswith("["):
                return json.loads(v)
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        use_enum_values=True,
        extra="ignore",
    )


# Create global settings instance
settings = Settings()
