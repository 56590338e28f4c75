"""
Test suite for the model capability providers.
"""

import json
from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest
from langchain_core.messages import AIMessage

from ape.config.models import LLMConfig, Provider
from ape.core.providers import create_model_provider
from ape.core.providers.base import (
    ModelProviderError,
    ProviderConnectionError,
    ProviderResponseError,
)
from ape.core.providers.langchain_provider import LangChainModelProvider
from ape.core.providers.ollama import OllamaModelProvider
from ape.utils.error_handling import ProviderError


BASE_URL = "http://models.test:11434"


def make_ollama(handler, max_retries=2, **kwargs):
    client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return OllamaModelProvider("qwen3:8b", base_url=BASE_URL, max_retries=max_retries,
                               retry_delay=0, client=client, **kwargs)


class TestOllamaModelProvider:
    """Test OllamaModelProvider against a mocked transport."""

    def setup_method(self):
        """Set up test environment."""
        self.requests = []

    @pytest.mark.asyncio
    async def test_query(self):
        """Test a successful generate request."""
        def handler(request):
            self.requests.append(request)
            return httpx.Response(200, json={"response": '{"command": "ls"}', "done": True})

        async with make_ollama(handler, options={"temperature": 0.1}) as provider:
            assert await provider.query("list files") == '{"command": "ls"}'

        request = self.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/api/generate"
        assert json.loads(request.content) == {
            "model": "qwen3:8b",
            "prompt": "list files",
            "stream": False,
            "options": {"temperature": 0.1},
        }

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        """Test that 4xx responses fail immediately."""
        def handler(request):
            self.requests.append(request)
            return httpx.Response(404, json={"error": "model not found"})

        provider = make_ollama(handler)

        with pytest.raises(ProviderResponseError) as exc_info:
            await provider.query("hi")

        assert exc_info.value.error_code == "404"
        assert exc_info.value.provider == "ollama"
        assert len(self.requests) == 1
        await provider.aclose()

    @pytest.mark.asyncio
    async def test_server_error_retried(self):
        """Test that 5xx responses are retried before failing."""
        def handler(request):
            self.requests.append(request)
            return httpx.Response(503)

        provider = make_ollama(handler, max_retries=2)

        with pytest.raises(ProviderResponseError) as exc_info:
            await provider.query("hi")

        assert exc_info.value.error_code == "503"
        assert len(self.requests) == 3
        await provider.aclose()

    @pytest.mark.asyncio
    async def test_recovers_after_server_error(self):
        """Test that a retry can succeed."""
        def handler(request):
            self.requests.append(request)
            if len(self.requests) == 1:
                return httpx.Response(500)
            return httpx.Response(200, json={"response": "ok"})

        provider = make_ollama(handler)

        assert await provider.query("hi") == "ok"
        assert len(self.requests) == 2
        await provider.aclose()

    @pytest.mark.asyncio
    async def test_connection_error(self):
        """Test that connection failures are retried and then reported."""
        def handler(request):
            self.requests.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        provider = make_ollama(handler, max_retries=1)

        with pytest.raises(ProviderConnectionError) as exc_info:
            await provider.query("hi")

        assert exc_info.value.error_code == "connection"
        assert BASE_URL in str(exc_info.value)
        assert len(self.requests) == 2
        await provider.aclose()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"done": True}),
    ])
    async def test_malformed_response(self, response):
        """Test bodies without a usable response field."""
        provider = make_ollama(lambda request: response)

        with pytest.raises(ProviderResponseError) as exc_info:
            await provider.query("hi")

        assert exc_info.value.error_code == "malformed"
        assert isinstance(exc_info.value, ModelProviderError)
        await provider.aclose()


class TestLangChainModelProvider:
    """Test LangChainModelProvider with a mocked language model."""

    def setup_method(self):
        """Set up test environment."""
        self.llm = Mock()
        self.llm.ainvoke = AsyncMock()
        self.provider = LangChainModelProvider(self.llm)

    @pytest.mark.asyncio
    async def test_string_output(self):
        """Test plain LLM output."""
        self.llm.ainvoke.return_value = '{"command": "status"}'

        assert await self.provider.query("prompt") == '{"command": "status"}'
        self.llm.ainvoke.assert_awaited_once_with("prompt")

    @pytest.mark.asyncio
    async def test_message_output(self):
        """Test chat model output."""
        self.llm.ainvoke.return_value = AIMessage(content="status")
        assert await self.provider.query("prompt") == "status"

    @pytest.mark.asyncio
    async def test_content_blocks(self):
        """Test chat model output split into content blocks."""
        self.llm.ainvoke.return_value = AIMessage(content=[
            {"type": "text", "text": '{"command": '},
            {"type": "text", "text": '"diff"}'},
        ])

        assert await self.provider.query("prompt") == '{"command": "diff"}'

    @pytest.mark.asyncio
    async def test_errors_are_wrapped(self):
        """Test that model failures surface as ProviderError."""
        self.llm.ainvoke.side_effect = RuntimeError("model crashed")

        with pytest.raises(ProviderError) as exc_info:
            await self.provider.query("prompt")

        assert exc_info.value.details["error_type"] == "unexpected"

    @pytest.mark.asyncio
    async def test_connection_errors(self):
        """Test connection failures from the underlying client."""
        self.llm.ainvoke.side_effect = ConnectionResetError("reset")

        with pytest.raises(ProviderError) as exc_info:
            await self.provider.query("prompt")

        assert exc_info.value.details["error_type"] == "connection"


class TestCreateModelProvider:
    """Test the provider factory."""

    def test_none(self):
        """Test that model resolution can be disabled."""
        assert create_model_provider(LLMConfig(provider=Provider.NONE)) is None

    @pytest.mark.asyncio
    async def test_ollama(self):
        """Test the Ollama provider settings."""
        config = LLMConfig(provider="ollama", model="llama3", base_url="http://gpu:11434/",
                           max_retries=4, temperature=0.3, max_tokens=256)

        provider = create_model_provider(config)

        assert isinstance(provider, OllamaModelProvider)
        assert provider.model == "llama3"
        assert provider.base_url == "http://gpu:11434"
        assert provider.max_retries == 4
        assert provider.options == {"temperature": 0.3, "num_predict": 256}
        await provider.aclose()

    def test_langchain(self):
        """Test the LangChain provider wiring."""
        config = LLMConfig(provider="langchain", model="llama3")
        sentinel = LangChainModelProvider(Mock())

        with patch.object(LangChainModelProvider, "from_ollama", return_value=sentinel) as from_ollama:
            provider = create_model_provider(config)

        assert provider is sentinel
        from_ollama.assert_called_once_with(model="llama3", base_url="http://localhost:11434", temperature=0.1)
