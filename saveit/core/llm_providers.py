"""Chat model access for item enrichment and search intent extraction."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)

# Retry settings for rate limits
MAX_RETRIES = 5
INITIAL_DELAY = 2.0  # seconds
MAX_DELAY = 60.0  # seconds

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"

# Models that support response_format=json_object
SUPPORTED_CHAT_MODELS = ("gpt-4.1-nano", "gpt-4.1-mini", "gpt-4o-mini")
DEFAULT_CHAT_MODEL = "gpt-4.1-mini"


@dataclass
class ChatResponse:
    """Text reply of a chat completion plus token usage."""

    content: str
    model: str
    tokens_input: int
    tokens_output: int


@dataclass
class HealthCheckResult:
    """Result of a provider health check."""

    healthy: bool
    provider: str
    model: str
    message: str
    latency_ms: int | None = None
    details: dict[str, Any] | None = None


class LLMError(Exception):
    """Error during LLM API call."""

    def __init__(self, message: str, provider: str, retriable: bool = False):
        super().__init__(message)
        self.provider = provider
        self.retriable = retriable


def parse_json_content(content: str) -> Any:
    """Parse a JSON reply, tolerating a surrounding markdown code block.

    Raises:
        json.JSONDecodeError: If the content is not valid JSON.
    """
    content = content.strip()
    if content.startswith("```"):
        content = content.split("```")[1]
        if content.startswith("json"):
            content = content[4:]
    return json.loads(content.strip())


class LLMProvider(ABC):
    """A chat model that answers prompts for enrichment and search."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    @abstractmethod
    def model_id(self) -> str:
        ...

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, str]],
        temperature: float = 0.7,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> ChatResponse:
        """Send a chat completion request.

        Args:
            messages: List of message dicts with 'role' and 'content' keys.
            temperature: Sampling temperature (0-2).
            max_tokens: Max tokens to generate (None = model default).
            json_mode: Ask the model for a single JSON object.

        Raises:
            LLMError: If the call fails or the reply cannot be read.
        """
        ...

    @abstractmethod
    async def health_check(self) -> HealthCheckResult:
        ...


class OpenAIChatProvider(LLMProvider):
    """OpenAI chat completions over plain HTTP."""

    def __init__(self, model: str = DEFAULT_CHAT_MODEL, api_key: str | None = None):
        if model not in SUPPORTED_CHAT_MODELS:
            raise ValueError(f"Unknown OpenAI model: {model}. Available: {list(SUPPORTED_CHAT_MODELS)}")

        self._model = model
        self._api_key = api_key or os.getenv("OPENAI_API_KEY", "").strip()

    @property
    def name(self) -> str:
        return "OpenAI"

    @property
    def model_id(self) -> str:
        return self._model

    def _error(self, message: str, retriable: bool = False) -> LLMError:
        return LLMError(message, provider=self.name, retriable=retriable)

    def _parse_completion(self, response: httpx.Response) -> ChatResponse:
        """Read the first choice out of a 200 reply.

        Raises:
            LLMError: If the body is not a well-formed completion.
        """
        try:
            data = response.json()
            message = data["choices"][0]["message"]
            content = message["content"]
            usage = data.get("usage") or {}
            if not isinstance(content, str):
                raise TypeError(f"content is {type(content).__name__}")
            return ChatResponse(
                content=content,
                model=str(data.get("model") or self._model),
                tokens_input=int(usage.get("prompt_tokens") or 0),
                tokens_output=int(usage.get("completion_tokens") or 0),
            )
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            raise self._error(f"Malformed OpenAI completion: {e!r}") from e

    def _status_error(self, response: httpx.Response) -> LLMError:
        status = response.status_code
        if status == 401:
            return self._error("OpenAI API key is invalid.")
        if status == 429:
            return self._error("OpenAI quota exhausted.")
        return self._error(f"OpenAI API error: {status} - {response.text}", retriable=status >= 500)

    async def chat(
        self,
        messages: list[dict[str, str]],
        temperature: float = 0.7,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> ChatResponse:
        """Send a chat completion request, retrying while rate limited."""
        if not self._api_key:
            raise self._error("OPENAI_API_KEY is not set.")

        body: dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens:
            body["max_tokens"] = max_tokens
        if json_mode:
            body["response_format"] = {"type": "json_object"}

        headers = {"Authorization": f"Bearer {self._api_key}"}
        delay = INITIAL_DELAY

        async with httpx.AsyncClient(timeout=60.0) as client:
            for attempt in range(1, MAX_RETRIES + 1):
                try:
                    response = await client.post(OPENAI_CHAT_URL, headers=headers, json=body)
                except httpx.TransportError as e:
                    raise self._error(f"OpenAI connection error: {e}", retriable=True) from e

                if response.status_code == 200:
                    result = self._parse_completion(response)
                    logger.debug(
                        f"{result.model}: {result.tokens_input} in / {result.tokens_output} out tokens"
                    )
                    return result

                # Exhausted quota also answers 429 but waiting does not help
                if response.status_code != 429 or "quota" in response.text.lower():
                    raise self._status_error(response)

                logger.warning(f"Rate limit hit, attempt {attempt}/{MAX_RETRIES}. Waiting {delay:.1f}s...")
                await asyncio.sleep(delay)
                delay = min(delay * 2, MAX_DELAY)

        raise self._error(f"Rate limit still exceeded after {MAX_RETRIES} attempts.", retriable=True)

    async def health_check(self) -> HealthCheckResult:
        """Send a tiny prompt to confirm the key and model work."""
        if not self._api_key:
            return HealthCheckResult(
                healthy=False,
                provider=self.name,
                model=self._model,
                message="API key not set",
            )

        start = time.monotonic()
        try:
            await self.chat([{"role": "user", "content": "Say 'OK'"}], temperature=0, max_tokens=5)
        except LLMError as e:
            return HealthCheckResult(
                healthy=False,
                provider=self.name,
                model=self._model,
                message=str(e),
                details={"retriable": e.retriable},
            )

        return HealthCheckResult(
            healthy=True,
            provider=self.name,
            model=self._model,
            message="Connected",
            latency_ms=int((time.monotonic() - start) * 1000),
        )


def get_chat_provider(provider_name: str = "openai", model: str | None = None) -> LLMProvider:
    """Build the configured chat provider.

    Raises:
        ValueError: If provider or model is unknown.
    """
    if provider_name.lower() == "openai":
        return OpenAIChatProvider(model=model or DEFAULT_CHAT_MODEL)

    raise ValueError(f"Unknown provider: {provider_name}. Available: openai")
