"""Configuration module for Taskloom.

Configuration is stored in ~/.taskloom/config.yaml.

Usage:
    from taskloom.config import load_config

    config = load_config()
    limit = config.execution.parallel_limit
"""

from taskloom.config.loader import (
    config_exists,
    create_default_config,
    ensure_config_dir,
    load_config,
    load_config_or_default,
)
from taskloom.config.models import (
    CapabilityConfig,
    DiscoveryConfig,
    ExecutionConfig,
    ExecutorConfig,
    LoggingConfig,
    PlanningConfig,
    TaskloomConfig,
    get_config_dir,
    get_default_config,
)

__all__ = [
    # Models
    "TaskloomConfig",
    "PlanningConfig",
    "DiscoveryConfig",
    "ExecutionConfig",
    "LoggingConfig",
    "ExecutorConfig",
    "CapabilityConfig",
    "get_config_dir",
    "get_default_config",
    # Loader
    "config_exists",
    "create_default_config",
    "ensure_config_dir",
    "load_config",
    "load_config_or_default",
]
