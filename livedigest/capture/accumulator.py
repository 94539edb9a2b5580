"""Fixed-duration framing of the relayed sample stream into chunks."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from livedigest.audio import AudioFormat


@dataclass(frozen=True)
class Chunk:
    """A complete, upload-sized run of interleaved samples."""

    samples: np.ndarray
    format: AudioFormat
    sequence: int

    @property
    def duration_seconds(self) -> float:
        return len(self.samples) / (self.format.sample_rate * self.format.channels)


class ChunkAccumulator:
    """Collect sample blocks and emit chunks of exactly ``threshold`` samples.

    Blocks that straddle a boundary are split; the remainder opens the next
    chunk. Partial chunks are never emitted.
    """

    def __init__(self, fmt: AudioFormat, chunk_seconds: float) -> None:
        threshold = fmt.samples_for(chunk_seconds)
        if threshold <= 0:
            raise ValueError(f"chunk_seconds={chunk_seconds} yields an empty chunk")
        self.format = fmt
        self.threshold = threshold
        self._parts: list[np.ndarray] = []
        self._buffered = 0
        self._sequence = 0

    @property
    def buffered(self) -> int:
        """Samples held in the in-progress chunk."""
        return self._buffered

    def push(self, block: np.ndarray) -> list[Chunk]:
        """Append ``block`` and return any chunks it completed."""
        block = np.asarray(block).reshape(-1)
        chunks: list[Chunk] = []
        while block.size:
            take = min(self.threshold - self._buffered, block.size)
            self._parts.append(block[:take])
            self._buffered += take
            block = block[take:]
            if self._buffered == self.threshold:
                chunks.append(self._emit())
        return chunks

    def _emit(self) -> Chunk:
        samples = np.concatenate(self._parts)
        chunk = Chunk(samples=samples, format=self.format, sequence=self._sequence)
        self._sequence += 1
        self._parts = []
        self._buffered = 0
        return chunk
