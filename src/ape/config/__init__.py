"""
APE Configuration System

    from ape.config import load_config

    config = load_config("configs/local.yaml")
    print(config.resolver.high_confidence_threshold)   # 0.8
    print(config.plugins.enabled)                      # ["pocket", "git", ...]
"""

from .loader import (
    ConfigLoader,
    load_config,
    get_config,
    reload_config,
    validate_config_file,
)

from .models import (
    ApeConfig,
    AppConfig,
    LLMConfig,
    ResolverConfig,
    ExecutorConfig,
    PluginsConfig,
    LogLevel,
    Provider,
)

from ..utils.error_handling import ConfigurationError

__all__ = [
    "ConfigLoader",
    "get_config",
    "load_config",
    "reload_config",
    "validate_config_file",
    "ConfigurationError",
    "ApeConfig",
    "AppConfig",
    "LLMConfig",
    "ResolverConfig",
    "ExecutorConfig",
    "PluginsConfig",
    "LogLevel",
    "Provider",
]
