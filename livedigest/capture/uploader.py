"""Single-attempt upload of encoded chunks to the collection service."""

from __future__ import annotations

import logging

import httpx

from livedigest.audio import encode_wav
from livedigest.capture.accumulator import Chunk, ChunkAccumulator
from livedigest.capture.relay import SampleRelay

logger = logging.getLogger(__name__)


class ChunkUploader:
    """Encode a chunk as WAV and POST it once.

    Failures are logged and reported through the return value; the chunk is
    not retried or kept. Encoding happens in memory, so nothing is left on disk
    after an attempt.
    """

    def __init__(
        self,
        url: str,
        source_key: str | None = None,
        *,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url
        self.source_key = source_key
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self.sent = 0
        self.failed = 0

    async def upload(self, chunk: Chunk) -> bool:
        """Send ``chunk``; return True on a 2xx response."""
        payload = encode_wav(chunk.samples, chunk.format)
        filename = f"chunk_{chunk.sequence}.wav"
        data = {"system_key": self.source_key} if self.source_key else None
        try:
            response = await self._client.post(
                self.url,
                files={"file": (filename, payload, "audio/wav")},
                data=data,
            )
        except httpx.HTTPError as exc:
            self.failed += 1
            logger.error("Failed to send %s: %s", filename, exc)
            return False

        if response.is_success:
            self.sent += 1
            logger.info("Successfully sent %s (%.1fs)", filename, chunk.duration_seconds)
            return True
        self.failed += 1
        logger.error("Failed to send %s: %s %s", filename, response.status_code, response.text[:200])
        return False

    async def aclose(self) -> None:
        await self._client.aclose()


async def upload_stream(relay: SampleRelay, accumulator: ChunkAccumulator, uploader: ChunkUploader) -> int:
    """Drain ``relay`` until it closes, uploading every completed chunk.

    Uploads are awaited one at a time; the relay keeps absorbing capture while
    an upload is in flight. Returns the number of chunks attempted.
    """
    attempted = 0
    while (block := await relay.receive()) is not None:
        for chunk in accumulator.push(block):
            attempted += 1
            await uploader.upload(chunk)
    return attempted
