"""Application configuration helpers."""

from __future__ import annotations

from .controller import ControlLoopConfig, get_control_loop_config
from .env import positive_number_env, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .provider import ProviderConfig, default_resilience_config, get_provider_config
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "ConfigurationError",
    "ControlLoopConfig",
    "DatabaseConfig",
    "MissingConfigurationError",
    "ProviderConfig",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "configure_logging",
    "default_resilience_config",
    "get_control_loop_config",
    "get_database_config",
    "get_provider_config",
    "get_storage_config",
    "positive_number_env",
    "require_env_vars",
]
