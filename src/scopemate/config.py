"""
Configuration module for scopemate.

Single source of truth for:
- Azure connection settings (loading project definitions from Blob Storage)
- Estimator limits and warnings
- Log level used by the CLI

All values can be overridden via environment variables.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import os
import sys
from typing import Optional

DEFAULT_MAX_DEPTH = 200
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _get_env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def max_safe_depth() -> int:
    """Deepest nesting the recursive flattener can walk under the interpreter recursion limit."""
    return max(1, sys.getrecursionlimit() // 3)


def _get_env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return parsed if parsed >= 1 else default


@dataclass
class Config:
    """
    Runtime configuration for scopemate.

    All fields default from environment variables but can be overridden
    programmatically by constructing Config(...) manually if needed.
    """

    # Azure Blob Storage (project definitions stored as JSON blobs)
    azure_blob_connection_string: Optional[str] = None
    azure_blob_container_name: Optional[str] = None

    # Estimator
    max_depth: int = DEFAULT_MAX_DEPTH
    warn_on_divergent_duplicates: bool = True

    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "Config":
        """
        Construct a Config object by reading environment variables.

        Environment variables (all optional):
        - SM_AZURE_BLOB_CONNECTION_STRING
        - SM_AZURE_BLOB_CONTAINER_NAME
        - SM_MAX_DEPTH  (positive int, capped at max_safe_depth())
        - SM_WARN_ON_DIVERGENT_DUPLICATES  (true/false)
        - SM_LOG_LEVEL  (DEBUG, INFO, WARNING, ...)
        """
        return cls(
            azure_blob_connection_string=os.getenv(
                "SM_AZURE_BLOB_CONNECTION_STRING"
            ),
            azure_blob_container_name=os.getenv(
                "SM_AZURE_BLOB_CONTAINER_NAME"
            ),
            max_depth=min(
                _get_env_int("SM_MAX_DEPTH", default=DEFAULT_MAX_DEPTH),
                max_safe_depth(),
            ),
            warn_on_divergent_duplicates=_get_env_bool(
                "SM_WARN_ON_DIVERGENT_DUPLICATES", default=True
            ),
            log_level=os.getenv("SM_LOG_LEVEL", "WARNING").strip().upper(),
        )


_DEFAULT_CONFIG: Optional[Config] = None


def get_config(force_reload: bool = False) -> Config:
    """
    Return a process-wide Config instance.

    Use `force_reload=True` if environment variables changed at runtime
    and you want to refresh.
    """
    global _DEFAULT_CONFIG
    if _DEFAULT_CONFIG is None or force_reload:
        _DEFAULT_CONFIG = Config.from_env()
    return _DEFAULT_CONFIG


def configure_logging(level: Optional[str] = None) -> None:
    """Set up root logging for command-line use. Library code never calls this."""
    name = (level or get_config().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.WARNING),
        format=LOG_FORMAT,
    )
