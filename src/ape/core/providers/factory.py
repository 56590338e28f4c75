"""
Provider factory.

Selects the model capability implementation named by ``llm.provider``.
"""

from typing import Optional

from .base import ModelCapability
from .langchain_provider import LangChainModelProvider
from .ollama import OllamaModelProvider
from ...config.models import LLMConfig, Provider
from ...utils.error_handling import ConfigurationError
from ...utils.logging import get_logger


logger = get_logger(__name__)


def create_model_provider(config: LLMConfig) -> Optional[ModelCapability]:
    """Create the configured model capability.

    Args:
        config: LLM section of the configuration

    Returns:
        ModelCapability, or None when model-assisted resolution is disabled

    Raises:
        ConfigurationError: If the provider is not supported
    """
    provider = config.provider

    if provider is Provider.NONE:
        logger.info("No model provider configured; natural-language resolution is heuristic only")
        return None

    logger.debug(f"Creating {provider.value} provider for model {config.model}")

    if provider is Provider.OLLAMA:
        return OllamaModelProvider(
            model=config.model,
            base_url=config.base_url,
            timeout=config.timeout,
            max_retries=config.max_retries,
            retry_delay=config.retry_delay,
            options={"temperature": config.temperature, "num_predict": config.max_tokens},
        )

    if provider is Provider.LANGCHAIN:
        return LangChainModelProvider.from_ollama(
            model=config.model,
            base_url=config.base_url,
            temperature=config.temperature,
        )

    raise ConfigurationError(f"Unsupported model provider: {provider}")
