"""
Model capability providers for natural-language resolution.
"""

from .base import (
    ModelCapability,
    ModelProviderError,
    ProviderConnectionError,
    ProviderTimeoutError,
    ProviderResponseError,
)
from .ollama import OllamaModelProvider
from .langchain_provider import LangChainModelProvider
from .factory import create_model_provider

__all__ = [
    "ModelCapability",
    "ModelProviderError",
    "ProviderConnectionError",
    "ProviderTimeoutError",
    "ProviderResponseError",
    "OllamaModelProvider",
    "LangChainModelProvider",
    "create_model_provider",
]
