"""Capture loop: device -> relay -> accumulator -> uploader."""

from __future__ import annotations

import logging

from livedigest.audio import AudioFormat
from livedigest.capture.accumulator import ChunkAccumulator
from livedigest.capture.relay import SampleRelay
from livedigest.capture.source import CaptureError, CaptureSource
from livedigest.capture.uploader import ChunkUploader, upload_stream
from livedigest.pipeline_config import CaptureConfig

logger = logging.getLogger(__name__)

# Floor for the relay capacity, whatever relay_seconds says.
MIN_RELAY_SECONDS = 5.0


async def run_capture(config: CaptureConfig) -> None:
    """Capture and upload until the input stream ends.

    Raises:
        CaptureError: The device could not be opened or stopped delivering audio.
    """
    fmt = AudioFormat.from_dtype(config.dtype, config.channels, config.sample_rate)
    if not fmt.is_model_format:
        logger.warning(
            "Capturing %d ch @ %d Hz; the server only accepts mono 16 kHz audio",
            fmt.channels,
            fmt.sample_rate,
        )

    capacity = fmt.samples_for(max(config.relay_seconds, MIN_RELAY_SECONDS))
    relay = SampleRelay(capacity)
    relay.bind()
    accumulator = ChunkAccumulator(fmt, config.chunk_seconds)
    uploader = ChunkUploader(config.server_url, config.source_key, timeout=config.upload_timeout)
    source = CaptureSource(relay, fmt, dtype=config.dtype, device=config.device)

    try:
        source.start()
        attempted = await upload_stream(relay, accumulator, uploader)
    finally:
        source.stop()
        await uploader.aclose()
        logger.info(
            "Capture stopped: %d sent, %d failed, %d samples dropped, %d overflows",
            uploader.sent,
            uploader.failed,
            relay.dropped_samples,
            source.overflows,
        )
    raise CaptureError(f"Input stream ended after {attempted} chunks")
