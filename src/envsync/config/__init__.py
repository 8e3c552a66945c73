"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_env_var, require_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .settling import SettlingConfig, get_settling_config
from .storage import (
    StorageConfig,
    get_database_uri,
    get_storage_config,
)
from .vercel import VercelConfig, get_vercel_config

__all__ = [
    "ConfigurationError",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "SettlingConfig",
    "StorageConfig",
    "VercelConfig",
    "configure_logging",
    "get_database_uri",
    "get_settling_config",
    "get_storage_config",
    "get_vercel_config",
    "optional_env_var",
    "require_env_var",
    "require_env_vars",
]
