"""Tests for the capture side: relay, chunk framing and upload."""

from __future__ import annotations

import asyncio
import threading
from types import SimpleNamespace

import httpx
import numpy as np
import pytest

from livedigest.audio import AudioFormat
from livedigest.capture.accumulator import Chunk, ChunkAccumulator
from livedigest.capture.relay import SampleRelay
from livedigest.capture.uploader import ChunkUploader, upload_stream

MONO_16K = AudioFormat(channels=1, sample_rate=16_000, bits_per_sample=16)


def _block(start: int, size: int) -> np.ndarray:
    return np.arange(start, start + size, dtype=np.int32)


# ---------------------------------------------------------------------------
# SampleRelay
# ---------------------------------------------------------------------------


class TestSampleRelay:
    def test_rejects_non_positive_capacity(self) -> None:
        with pytest.raises(ValueError):
            SampleRelay(0)

    def test_drops_when_full(self) -> None:
        relay = SampleRelay(10)
        assert relay.offer(_block(0, 6))
        assert not relay.offer(_block(6, 6))
        assert relay.offer(_block(6, 4))
        assert relay.buffered == 10
        assert relay.dropped_blocks == 1
        assert relay.dropped_samples == 6

    def test_never_waits_for_a_held_lock(self) -> None:
        relay = SampleRelay(100)
        relay._lock.acquire()
        try:
            assert not relay.offer(_block(0, 4))
        finally:
            relay._lock.release()
        assert relay.dropped_samples == 4
        assert relay.buffered == 0

    def test_drains_then_reports_end(self) -> None:
        relay = SampleRelay(100)
        relay.offer(_block(0, 3))
        relay.offer(_block(3, 3))
        relay.close()
        assert not relay.offer(_block(6, 3))

        async def drain() -> list[np.ndarray | None]:
            return [await relay.receive() for _ in range(3)]

        first, second, end = asyncio.run(drain())
        assert first is not None and second is not None
        np.testing.assert_array_equal(np.concatenate([first, second]), _block(0, 6))
        assert end is None

    def test_threaded_producer_conserves_samples(self) -> None:
        """Every offered sample is either received, in order, or counted as dropped."""
        blocks = 400
        block_size = 32

        async def scenario() -> tuple[np.ndarray, SampleRelay]:
            relay = SampleRelay(block_size * 8)
            relay.bind()

            def produce() -> None:
                for i in range(blocks):
                    relay.offer(_block(i * block_size, block_size))
                relay.close()

            thread = threading.Thread(target=produce)
            thread.start()
            received: list[np.ndarray] = []
            while (block := await relay.receive()) is not None:
                received.append(block)
            await asyncio.to_thread(thread.join)
            out = np.concatenate(received) if received else np.empty(0, dtype=np.int32)
            return out, relay

        out, relay = asyncio.run(scenario())
        assert out.size + relay.dropped_samples == blocks * block_size
        assert np.all(np.diff(out) > 0)


# ---------------------------------------------------------------------------
# ChunkAccumulator
# ---------------------------------------------------------------------------


class TestChunkAccumulator:
    def test_rejects_empty_chunks(self) -> None:
        with pytest.raises(ValueError):
            ChunkAccumulator(MONO_16K, 0.0)

    @pytest.mark.parametrize(
        ("block_sizes", "threshold"),
        [
            ([160] * 10, 400),
            ([1000, 7, 393, 1200], 400),
            ([399], 400),
            ([400, 400], 400),
            ([37] * 50, 160),
        ],
    )
    def test_emits_exact_chunks(self, block_sizes: list[int], threshold: int) -> None:
        acc = ChunkAccumulator(MONO_16K, threshold / MONO_16K.sample_rate)
        assert acc.threshold == threshold

        chunks: list[Chunk] = []
        start = 0
        for size in block_sizes:
            chunks.extend(acc.push(_block(start, size)))
            start += size

        total = sum(block_sizes)
        assert len(chunks) == total // threshold
        assert all(len(c.samples) == threshold for c in chunks)
        assert [c.sequence for c in chunks] == list(range(len(chunks)))
        assert acc.buffered == total % threshold
        if chunks:
            np.testing.assert_array_equal(
                np.concatenate([c.samples for c in chunks]), _block(0, len(chunks) * threshold)
            )

    def test_stereo_threshold_counts_both_channels(self) -> None:
        fmt = AudioFormat(channels=2, sample_rate=8_000, bits_per_sample=16)
        acc = ChunkAccumulator(fmt, 0.5)
        assert acc.threshold == 8_000
        (chunk,) = acc.push(np.zeros(8_000, dtype=np.int16))
        assert chunk.duration_seconds == pytest.approx(0.5)


# ---------------------------------------------------------------------------
# ChunkUploader
# ---------------------------------------------------------------------------


def _chunk(sequence: int = 0) -> Chunk:
    return Chunk(samples=np.zeros(1600, dtype=np.int16), format=MONO_16K, sequence=sequence)


def _uploader(handler, source_key: str | None = "k") -> ChunkUploader:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ChunkUploader("http://collector/api/upload", source_key, client=client)


class TestChunkUploader:
    def test_posts_multipart_wav_with_source_key(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"status": "merged"})

        async def scenario() -> bool:
            client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
            uploader = ChunkUploader("http://collector/api/upload", "kitchen", client=client)
            try:
                return await uploader.upload(_chunk(sequence=3))
            finally:
                await uploader.aclose()

        assert asyncio.run(scenario()) is True
        assert len(requests) == 1
        body = requests[0].content
        assert b'name="system_key"' in body
        assert b"kitchen" in body
        assert b'filename="chunk_3.wav"' in body
        assert b"RIFF" in body
        assert b"WAVE" in body

    def test_omits_key_when_unset(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200)

        async def scenario() -> bool:
            uploader = _uploader(handler, None)
            return await uploader.upload(_chunk())

        assert asyncio.run(scenario()) is True
        assert b"system_key" not in requests[0].content

    def test_server_error_is_not_retried(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(500, text="boom")

        async def scenario() -> ChunkUploader:
            uploader = _uploader(handler)
            assert await uploader.upload(_chunk()) is False
            return uploader

        uploader = asyncio.run(scenario())
        assert calls == 1
        assert (uploader.sent, uploader.failed) == (0, 1)

    def test_connection_error_is_reported(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async def scenario() -> ChunkUploader:
            uploader = _uploader(handler)
            assert await uploader.upload(_chunk()) is False
            return uploader

        assert asyncio.run(scenario()).failed == 1


class TestUploadStream:
    def test_uploads_each_complete_chunk(self) -> None:
        sequences: list[bytes] = []

        def handler(request: httpx.Request) -> httpx.Response:
            sequences.append(request.content)
            return httpx.Response(200)

        async def scenario() -> int:
            relay = SampleRelay(10_000)
            for i in range(5):
                relay.offer(np.full(700, i, dtype=np.int16))
            relay.close()
            acc = ChunkAccumulator(MONO_16K, 0.1)  # 1600 samples
            uploader = _uploader(handler)
            return await upload_stream(relay, acc, uploader)

        # 3500 samples -> two full chunks, the remainder never leaves
        assert asyncio.run(scenario()) == 2
        assert len(sequences) == 2


# ---------------------------------------------------------------------------
# CaptureSource (callback only; no device is opened)
# ---------------------------------------------------------------------------


def _capture_source_cls() -> type:
    try:
        from livedigest.capture.source import CaptureSource
    except (ImportError, OSError) as exc:
        pytest.skip(f"sounddevice unavailable: {exc}")
    return CaptureSource


class TestCaptureSource:
    def test_callback_copies_block_into_relay(self) -> None:
        relay = SampleRelay(100)
        source = _capture_source_cls()(relay, MONO_16K)
        indata = np.arange(8, dtype=np.int16).reshape(8, 1)

        source._callback(indata, 8, None, SimpleNamespace(input_overflow=False))
        indata[:] = 0

        assert relay.buffered == 8
        assert source.overflows == 0
        block = asyncio.run(relay.receive())
        np.testing.assert_array_equal(block, np.arange(8, dtype=np.int16))

    def test_overflow_is_counted(self) -> None:
        relay = SampleRelay(100)
        source = _capture_source_cls()(relay, MONO_16K)
        source._callback(np.zeros((4, 1), dtype=np.int16), 4, None, SimpleNamespace(input_overflow=True))
        assert source.overflows == 1

    def test_stream_end_closes_relay(self) -> None:
        relay = SampleRelay(100)
        source = _capture_source_cls()(relay, MONO_16K)
        source._finished()
        assert source.finished.is_set()
        assert asyncio.run(relay.receive()) is None
