"""Completion-API clients that turn a rendered prompt into a summary."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

import httpx
from anthropic import APIError, AsyncAnthropic
from anthropic.types import TextBlock

from livedigest.pipeline_config import CompletionProvider

if TYPE_CHECKING:
    from livedigest.config import Settings

logger = logging.getLogger(__name__)


class SummarizerError(RuntimeError):
    """Raised when the completion API call fails or returns nothing usable."""


class Summarizer(Protocol):
    async def summarize(self, prompt: str) -> str: ...


class ChatCompletionsSummarizer:
    """OpenAI-compatible ``/chat/completions`` client.

    Works with OpenAI, OpenRouter, Azure OpenAI, Ollama and local servers that
    speak the same schema. One attempt per prompt; no retry, no streaming.
    """

    def __init__(
        self,
        api_url: str,
        model: str,
        api_key: str = "",
        *,
        timeout: float = 120.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_url = api_url
        self.model = model
        self.api_key = api_key
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def summarize(self, prompt: str) -> str:
        body = {"model": self.model, "messages": [{"role": "user", "content": prompt}]}
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        try:
            response = await self._client.post(self.api_url, json=body, headers=headers)
        except httpx.HTTPError as exc:
            raise SummarizerError(f"completion API unreachable: {exc}") from exc

        if not response.is_success:
            raise SummarizerError(f"completion API error: {response.status_code}")

        try:
            payload: dict[str, Any] = response.json()
            content = payload["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise SummarizerError(f"malformed completion response: {exc}") from exc

        text = str(content).strip()
        if not text:
            raise SummarizerError("completion API returned an empty message")
        return text

    async def aclose(self) -> None:
        await self._client.aclose()


class AnthropicSummarizer:
    """Claude Messages API client."""

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        max_tokens: int = 1024,
        timeout: float = 120.0,
        client: AsyncAnthropic | None = None,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self._client = client or AsyncAnthropic(api_key=api_key, timeout=timeout, max_retries=0)

    async def summarize(self, prompt: str) -> str:
        try:
            response = await self._client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        except APIError as exc:
            raise SummarizerError(f"Claude API error: {exc.message}") from exc

        # We always request plain text, so the first block should be a TextBlock.
        block = response.content[0] if response.content else None
        if not isinstance(block, TextBlock) or not block.text.strip():
            raise SummarizerError("Claude returned no text")
        return block.text.strip()

    async def aclose(self) -> None:
        await self._client.close()


def build_summarizer(settings: Settings) -> ChatCompletionsSummarizer | AnthropicSummarizer:
    """Create the summarizer selected by ``settings.completion_provider``."""
    if settings.completion_provider is CompletionProvider.ANTHROPIC:
        return AnthropicSummarizer(
            settings.anthropic_api_key,
            settings.completion_model,
            max_tokens=settings.completion_max_tokens,
            timeout=settings.completion_timeout,
        )
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY is not set; completion requests go out unauthenticated")
    return ChatCompletionsSummarizer(
        settings.completion_api_url,
        settings.completion_model,
        settings.openai_api_key,
        timeout=settings.completion_timeout,
    )
