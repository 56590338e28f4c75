"""
Model capability interface.

The natural-language resolver needs exactly one thing from a language model:
given a prompt, return text. Providers implement that single-shot call and
translate transport failures into ``ModelProviderError`` subclasses.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ...utils.logging import get_logger


class ModelProviderError(Exception):
    """Base exception for model provider errors."""
    def __init__(self, message: str, provider: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.provider = provider
        self.error_code = error_code


class ProviderConnectionError(ModelProviderError):
    """Connection-related provider errors."""
    pass


class ProviderTimeoutError(ModelProviderError):
    """Timeout-related provider errors."""
    pass


class ProviderResponseError(ModelProviderError):
    """The provider answered with an error status or an unreadable body."""
    pass


class ModelCapability(ABC):
    """A language model reduced to single-shot text completion."""

    name: str = "model"

    def __init__(self):
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")

    @abstractmethod
    async def query(self, prompt: str) -> str:
        """Complete ``prompt``.

        Args:
            prompt: Full prompt text

        Returns:
            The model's raw text response

        Raises:
            ModelProviderError: If the provider cannot produce a response
        """

    async def aclose(self) -> None:
        """Release transport resources; a no-op by default."""
        return None
