"""
LangChain-backed model provider.

Wraps any ``BaseLanguageModel`` (plain LLMs return strings, chat models
return messages) behind the single-shot ``query`` interface.
"""

from typing import Any

from langchain_core.language_models.base import BaseLanguageModel
from langchain_core.messages import BaseMessage

from .base import ModelCapability
from ...utils.error_handling import handle_provider_operation


def _to_text(output: Any) -> str:
    if isinstance(output, str):
        return output
    if isinstance(output, BaseMessage):
        content = output.content
        if isinstance(content, list):
            # Chat models may return content blocks
            return "".join(
                block.get("text", "") if isinstance(block, dict) else str(block)
                for block in content
            )
        return str(content)
    return str(output)


class LangChainModelProvider(ModelCapability):
    """Adapts a LangChain language model to ``ModelCapability``."""

    name = "langchain"

    def __init__(self, llm: BaseLanguageModel):
        super().__init__()
        self.llm = llm

    @handle_provider_operation("langchain_query")
    async def query(self, prompt: str) -> str:
        output = await self.llm.ainvoke(prompt)
        return _to_text(output)

    @classmethod
    def from_ollama(cls, model: str, base_url: str = "http://localhost:11434",
                    temperature: float = 0.1) -> "LangChainModelProvider":
        """Build a provider on top of the langchain-community Ollama LLM."""
        from langchain_community.llms import Ollama

        return cls(Ollama(model=model, base_url=base_url, temperature=temperature))
