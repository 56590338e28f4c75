"""
Ollama model provider.

Talks to an Ollama server's ``/api/generate`` endpoint over httpx with
non-streaming requests and simple retry on transient failures.
"""

import asyncio
from typing import Any, Dict, Optional

import httpx
from loguru import logger

from .base import (
    ModelCapability,
    ProviderConnectionError,
    ProviderResponseError,
    ProviderTimeoutError,
)


class OllamaModelProvider(ModelCapability):
    """
    Single-shot completion against an Ollama server.

    Connection errors and timeouts are retried; HTTP error statuses are not,
    except 5xx responses which Ollama returns while a model is still loading.
    """

    name = "ollama"

    def __init__(
        self,
        model: str,
        base_url: str = "http://localhost:11434",
        timeout: float = 60.0,
        max_retries: int = 2,
        retry_delay: float = 1.0,
        options: Optional[Dict[str, Any]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the provider.

        Args:
            model: Ollama model tag
            base_url: Server base URL
            timeout: Per-request timeout in seconds
            max_retries: Retry attempts after the first failure
            retry_delay: Delay between attempts
            options: Ollama generation options (temperature, num_predict, ...)
            client: Pre-built client, mainly for tests
        """
        super().__init__()
        self.model = model
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.options = options or {}

        self.client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json"
            }
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def query(self, prompt: str) -> str:
        request_data = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
        }
        if self.options:
            request_data["options"] = self.options

        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            try:
                logger.debug(f"Sending generate request to {self.model} (attempt {attempt + 1}): {prompt[:80]}...")

                response = await self.client.post("/api/generate", json=request_data)
                response.raise_for_status()
                data = response.json()

                if "response" not in data:
                    raise ProviderResponseError(
                        f"Ollama response has no 'response' field: {list(data)}", self.name, "malformed"
                    )

                logger.debug(f"Received {len(data['response'])} chars from {self.model}")
                return data["response"]

            except httpx.TimeoutException as e:
                last_error = ProviderTimeoutError(f"Request to {self.base_url} timed out: {e}", self.name, "timeout")
            except httpx.ConnectError as e:
                last_error = ProviderConnectionError(
                    f"Unable to connect to Ollama at {self.base_url}: {e}", self.name, "connection"
                )
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                error = ProviderResponseError(f"Ollama returned HTTP {status}", self.name, str(status))
                if status < 500:
                    raise error from e
                last_error = error
            except ValueError as e:
                raise ProviderResponseError(f"Invalid JSON from Ollama: {e}", self.name, "malformed") from e

            if attempt < self.max_retries:
                logger.warning(f"{last_error}; retrying in {self.retry_delay}s")
                await asyncio.sleep(self.retry_delay)

        logger.error(f"Ollama request failed after {self.max_retries + 1} attempt(s): {last_error}")
        raise last_error
