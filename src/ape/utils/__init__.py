"""
APE Utilities

Logging and error handling shared by every APE component.
"""

from .logging import (
    setup_logging,
    get_logger,
    log_performance,
    log_config_info,
)

from .error_handling import (
    ErrorKind,
    ApeError,
    CommandError,
    ConfigurationError,
    ProviderError,
    ValidationError,
    PluginError,
    PluginUnavailableError,
    handle_provider_operation,
    handle_configuration_operation,
    validate_input,
)

__all__ = [
    # Logging utilities
    "setup_logging",
    "get_logger",
    "log_performance",
    "log_config_info",

    # Error handling utilities
    "ErrorKind",
    "ApeError",
    "CommandError",
    "ConfigurationError",
    "ProviderError",
    "ValidationError",
    "PluginError",
    "PluginUnavailableError",
    "handle_provider_operation",
    "handle_configuration_operation",
    "validate_input",
]
