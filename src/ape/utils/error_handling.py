"""
Unified error handling utilities for the APE command core.

This module holds the exception hierarchy, the structured ``CommandError``
that crosses the executor boundary, and decorators that standardize error
handling around model-provider and configuration operations.
"""

import functools
import asyncio
from enum import Enum
from typing import Any, Callable, Optional, Type, Dict

from ..utils.logging import get_logger


class ErrorKind(str, Enum):
    """Failure taxonomy of the command pipeline."""
    UNKNOWN_COMMAND = "UnknownCommand"
    HANDLER_FAILURE = "HandlerFailure"
    CONVERSION_AMBIGUOUS = "ConversionAmbiguous"
    PLUGIN_UNAVAILABLE = "PluginUnavailable"


class ApeError(Exception):
    """Base exception for all APE errors."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(ApeError):
    """Configuration-related error."""
    pass


class ProviderError(ApeError):
    """Model provider-related error."""
    pass


class ValidationError(ApeError):
    """Input validation error."""
    pass


class PluginError(ApeError):
    """Plugin registration or lifecycle error."""
    pass


class PluginUnavailableError(PluginError):
    """Raised by a plugin handler whose backend client is not configured."""
    pass


class CommandError(ApeError):
    """
    Structured failure of a single command.

    Carries its kind, a human-readable message and the underlying cause, and
    serializes without introspecting the cause's attributes.
    """

    def __init__(self, kind: ErrorKind, message: str, cause: Optional[BaseException] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.kind = kind
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "kind": self.kind.value,
            "message": self.message,
            "cause": None,
        }
        if self.cause is not None:
            data["cause"] = {
                "type": type(self.cause).__name__,
                "message": str(self.cause),
            }
        if self.details:
            data["details"] = dict(self.details)
        return data

    @classmethod
    def from_exception(cls, kind: ErrorKind, exc: BaseException, prefix: str = "") -> "CommandError":
        """Wrap an arbitrary exception, keeping it as the cause."""
        message = str(exc) or type(exc).__name__
        if prefix:
            message = f"{prefix}: {message}"
        details = dict(exc.details) if isinstance(exc, ApeError) else None
        return cls(kind, message, cause=exc, details=details)


def handle_provider_operation(operation_name: str, timeout: Optional[float] = None):
    """
    Decorator to standardize model provider error handling.

    Timeouts, connection failures and unexpected errors all surface as
    ``ProviderError`` with an ``error_type`` detail; a ``ProviderError``
    raised by the wrapped call passes through untouched.

    Args:
        operation_name: Human-readable name of the operation
        timeout: Optional timeout for the operation
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> Any:
            logger = get_logger(f"ape.providers.{operation_name}")

            try:
                logger.debug(f"Starting {operation_name}")

                if timeout:
                    result = await asyncio.wait_for(func(*args, **kwargs), timeout=timeout)
                else:
                    result = await func(*args, **kwargs)

                logger.debug(f"{operation_name} completed successfully")
                return result

            except ProviderError:
                raise

            except asyncio.TimeoutError:
                logger.error(f"{operation_name} timed out after {timeout}s")
                raise ProviderError(
                    f"{operation_name} timed out",
                    details={"error_type": "timeout", "timeout_seconds": timeout}
                )

            except ConnectionError as e:
                logger.error(f"{operation_name} failed - connection error: {e}")
                raise ProviderError(
                    f"{operation_name} failed: Connection error",
                    details={"error_type": "connection", "original_error": str(e)}
                ) from e

            except Exception as e:
                logger.error(f"{operation_name} failed - unexpected error: {e}", exc_info=True)
                raise ProviderError(
                    f"{operation_name} failed: {e}",
                    details={"error_type": "unexpected", "original_error": str(e)}
                ) from e

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs) -> Any:
            logger = get_logger(f"ape.providers.{operation_name}")

            try:
                logger.debug(f"Starting {operation_name}")
                result = func(*args, **kwargs)
                logger.debug(f"{operation_name} completed successfully")
                return result

            except ProviderError:
                raise

            except ConnectionError as e:
                logger.error(f"{operation_name} failed - connection error: {e}")
                raise ProviderError(
                    f"{operation_name} failed: Connection error",
                    details={"error_type": "connection", "original_error": str(e)}
                ) from e

            except Exception as e:
                logger.error(f"{operation_name} failed - unexpected error: {e}", exc_info=True)
                raise ProviderError(
                    f"{operation_name} failed: {e}",
                    details={"error_type": "unexpected", "original_error": str(e)}
                ) from e

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


def handle_configuration_operation(operation_name: str):
    """
    Decorator to standardize configuration operation error handling.

    Args:
        operation_name: Human-readable name of the operation
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            logger = get_logger(f"ape.config.{operation_name}")

            try:
                logger.debug(f"Starting {operation_name}")
                result = func(*args, **kwargs)
                logger.debug(f"{operation_name} completed successfully")
                return result

            except ConfigurationError:
                raise

            except (FileNotFoundError, PermissionError) as e:
                logger.error(f"{operation_name} failed - file access error: {e}")
                raise ConfigurationError(
                    f"{operation_name} failed: {e}",
                    details={"error_type": "file_access", "original_error": str(e)}
                ) from e

            except (ValueError, TypeError) as e:
                logger.error(f"{operation_name} failed - validation error: {e}")
                raise ConfigurationError(
                    f"{operation_name} failed: {e}",
                    details={"error_type": "validation", "original_error": str(e)}
                ) from e

        return wrapper

    return decorator


def validate_input(
    data: Any,
    field_name: str,
    expected_type: Type = None,
    required: bool = True,
    validator: Optional[Callable] = None
) -> Any:
    """
    Standardized input validation utility.

    Args:
        data: The data to validate
        field_name: Name of the field being validated
        expected_type: Expected type of the data
        required: Whether the field is required
        validator: Optional custom validator function

    Returns:
        The validated data

    Raises:
        ValidationError: If validation fails
    """
    if required and data is None:
        raise ValidationError(f"{field_name} is required")

    if data is not None and expected_type and not isinstance(data, expected_type):
        raise ValidationError(
            f"{field_name} must be of type {expected_type.__name__}, got {type(data).__name__}"
        )

    if validator:
        try:
            return validator(data)
        except Exception as e:
            raise ValidationError(f"{field_name} validation failed: {e}") from e

    return data
