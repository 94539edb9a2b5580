"""Pipeline configuration: strategy enums and the CaptureConfig dataclass."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SummaryPolicy(str, Enum):
    """How incoming transcripts are folded into a source's running summary."""

    IMMEDIATE = "immediate"
    BATCHED = "batched"


class CompletionProvider(str, Enum):
    """Completion backends the summarizer can talk to."""

    OPENAI = "openai"
    OPENROUTER = "openrouter"
    AZURE = "azure"
    OLLAMA = "ollama"
    LOCAL = "local"
    ANTHROPIC = "anthropic"


# Chat-completions endpoint per provider, used for defaults and `gen-config`.
PROVIDER_URLS: dict[CompletionProvider, str] = {
    CompletionProvider.OPENAI: "https://api.openai.com/v1/chat/completions",
    CompletionProvider.OPENROUTER: "https://openrouter.ai/api/v1/chat/completions",
    CompletionProvider.AZURE: (
        "https://YOUR-RESOURCE.openai.azure.com/openai/deployments/YOUR-DEPLOYMENT"
        "/chat/completions?api-version=2023-09-15-preview"
    ),
    CompletionProvider.OLLAMA: "http://localhost:11434/v1/chat/completions",
    CompletionProvider.LOCAL: "http://localhost:8080/v1/chat/completions",
    CompletionProvider.ANTHROPIC: "https://api.anthropic.com/v1/messages",
}


@dataclass(frozen=True)
class CaptureConfig:
    """Immutable configuration for the capture client.

    Defaults produce audio the collection service accepts without
    conversion (mono, 16 kHz, 16-bit integer PCM) in 30 second chunks.
    """

    server_url: str = "http://localhost:8000/api/upload"
    source_key: str = "default"
    device: int | str | None = None
    channels: int = 1
    sample_rate: int = 16_000
    dtype: str = "int16"
    chunk_seconds: float = 30.0
    relay_seconds: float = 300.0
    upload_timeout: float = 60.0
