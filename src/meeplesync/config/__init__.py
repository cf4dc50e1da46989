"""Application configuration helpers."""

from __future__ import annotations

from meeplesync.common.logging import configure_logging

from .bgg import BggConfig, get_bgg_config
from .env import require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import CacheConfig, ResilienceConfig, RetryPolicy
from .reconciliation import NoiseRules, ReconciliationConfig, get_reconciliation_config

__all__ = [
    "BggConfig",
    "CacheConfig",
    "ConfigurationError",
    "MissingConfigurationError",
    "NoiseRules",
    "ReconciliationConfig",
    "ResilienceConfig",
    "RetryPolicy",
    "configure_logging",
    "get_bgg_config",
    "get_reconciliation_config",
    "require_env_vars",
]
