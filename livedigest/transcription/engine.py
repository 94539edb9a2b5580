"""Speech-to-text over one shared faster-whisper model."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

import numpy as np

from livedigest.audio import pcm_to_float

logger = logging.getLogger(__name__)


class TranscriptionError(RuntimeError):
    """Raised when inference fails for one chunk."""


def load_whisper_model(model: str, device: str = "auto", compute_type: str = "int8") -> Any:
    """Load a faster-whisper model by size name or local path."""
    from faster_whisper import WhisperModel

    logger.info("Loading faster-whisper model: %s device=%s compute=%s", model, device, compute_type)
    return WhisperModel(model, device=device, compute_type=compute_type)


class TranscriptionEngine:
    """Process-wide transcription over a single inference context.

    The model is not safe for concurrent use, so every call, whatever source it
    belongs to, runs under one lock for the duration of one decoding pass.
    Concurrent uploads queue here; this lock is the service's throughput
    ceiling.
    """

    def __init__(self, model_factory: Callable[[], Any], *, language: str | None = "en") -> None:
        self._model_factory = model_factory
        self._model: Any = None
        self._lock = asyncio.Lock()
        self.language = language

    @property
    def loaded(self) -> bool:
        return self._model is not None

    def load(self) -> None:
        """Load the model if it is not loaded yet. Blocking."""
        if self._model is None:
            self._model = self._model_factory()

    async def transcribe(self, samples: np.ndarray) -> str:
        """Transcribe mono 16 kHz samples (integer PCM or float) to trimmed plain text.

        Raises:
            TranscriptionError: Model loading or inference failed.
        """
        audio = pcm_to_float(samples)
        async with self._lock:
            try:
                if self._model is None:
                    await asyncio.to_thread(self.load)
                return await asyncio.to_thread(self._decode, audio)
            except Exception as exc:
                logger.exception("Transcription failed for %d samples", audio.size)
                raise TranscriptionError(str(exc)) from exc

    def _decode(self, audio: np.ndarray) -> str:
        # Greedy, single pass, no timestamps.
        segments, _info = self._model.transcribe(
            audio,
            language=self.language,
            beam_size=1,
            best_of=1,
            temperature=0.0,
            without_timestamps=True,
            vad_filter=False,
        )
        # The segment generator drives decoding, so consume it here in the worker thread.
        texts = [(segment.text or "").strip() for segment in segments]
        return " ".join(text for text in texts if text).strip()
