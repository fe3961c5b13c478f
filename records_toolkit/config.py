"""
Configuration module for the Records Toolkit.

Provides centralized configuration management for the trash store, its
storage backends and the command-line interface.
"""

import logging
import os
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator


class TrashBackend(str, Enum):
    """Supported storage backends for trash records."""

    MEMORY = "memory"
    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"


class RecordsConfig(BaseModel):
    """Central configuration for the records toolkit.

    Configuration Sources (in order of precedence):
        1. Programmatic settings (highest priority)
        2. Environment variables (RECORDS_ prefix)
        3. Default values (lowest priority)

    Example:
        >>> config = RecordsConfig(
        ...     trash_storage_backend="sqlite",
        ...     trash_database_url="sqlite:///records.db",
        ... )

        Loading from environment:

        >>> import os
        >>> os.environ['RECORDS_TRASH_STORAGE_BACKEND'] = 'sqlite'
        >>> config = RecordsConfig.from_env()
    """

    # General settings
    application_name: str = Field(
        "Records Manager", description="Name of the application"
    )
    environment: str = Field(
        "production", description="Environment (development, staging, production)"
    )
    log_level: str = Field("INFO", description="Logging level for the toolkit")

    # Trash store settings
    trash_storage_backend: TrashBackend = Field(
        TrashBackend.SQLITE, description="Storage backend for trash records"
    )
    trash_database_url: Optional[str] = Field(
        "sqlite:///records.db", description="Trash database connection string"
    )
    default_deleted_by: str = Field(
        "current user", description="Provenance recorded when none is given"
    )
    repair_duplicates_on_list: bool = Field(
        True, description="Purge older duplicate trash records while listing"
    )

    # Collaborator settings
    documents_database_url: Optional[str] = Field(
        "sqlite:///records.db", description="Business document store connection"
    )
    namespace_path: str = Field(
        "./namespaces", description="Directory for per-owner namespaces"
    )
    notify_on_restore: bool = Field(
        True, description="Publish events after namespace restores"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is valid."""
        valid_environments = {"development", "staging", "production", "testing"}
        if v.lower() not in valid_environments:
            raise ValueError(
                f"Environment must be one of: {', '.join(sorted(valid_environments))}"
            )
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure the log level is known to the logging module."""
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return self.model_dump(mode="json")

    @classmethod
    def from_env(cls, prefix: str = "RECORDS_") -> "RecordsConfig":
        """
        Load configuration from environment variables.

        Values are read as strings; pydantic coerces booleans ("true",
        "0", "off", ...) and backend names.

        Args:
            prefix: Prefix for environment variables

        Returns:
            Configuration instance

        Raises:
            ValidationError: If a variable holds an invalid value
        """
        values = {
            name: os.environ[f"{prefix}{name.upper()}"]
            for name in cls.model_fields
            if f"{prefix}{name.upper()}" in os.environ
        }
        return cls.model_validate(values)

    def get_trash_storage_config(self) -> Dict[str, Any]:
        """Keyword arguments for ``get_trash_storage``."""
        backend = TrashBackend(self.trash_storage_backend)
        if backend == TrashBackend.MEMORY:
            return {"backend": backend.value}
        return {
            "backend": backend.value,
            "connection_string": self.trash_database_url,
        }


# Global configuration instance
_config: Optional[RecordsConfig] = None


def get_config() -> RecordsConfig:
    """
    Get the global configuration instance.

    Returns:
        Global configuration
    """
    global _config

    if _config is None:
        try:
            _config = RecordsConfig.from_env()
        except ValueError:
            # Invalid environment values fall back to defaults
            _config = RecordsConfig.model_validate({})

    return _config


def set_config(config: RecordsConfig) -> None:
    """
    Set the global configuration instance.

    Args:
        config: Configuration to set
    """
    global _config
    _config = config


def configure(**kwargs: Any) -> RecordsConfig:
    """
    Configure the toolkit with keyword arguments.

    Args:
        **kwargs: Configuration parameters

    Returns:
        Updated configuration
    """
    global _config

    if _config is None:
        _config = RecordsConfig(**kwargs)
    else:
        config_dict = _config.model_dump()
        config_dict.update(kwargs)
        _config = RecordsConfig(**config_dict)

    return _config
