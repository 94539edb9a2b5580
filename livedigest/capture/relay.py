"""Bounded, lossy hand-off from the realtime audio thread to the asyncio consumer."""

from __future__ import annotations

import asyncio
import threading
from collections import deque

import numpy as np


class SampleRelay:
    """Single-producer/single-consumer channel of sample blocks.

    The producer side (:meth:`offer`) runs on the PortAudio callback thread and
    never waits: when the relay is full, or the consumer happens to hold the
    internal lock, the block is dropped and counted. Capacity is measured in
    samples, not blocks.
    """

    def __init__(self, capacity_samples: int) -> None:
        if capacity_samples <= 0:
            raise ValueError("capacity_samples must be positive")
        self.capacity = capacity_samples
        self.dropped_samples = 0
        self.dropped_blocks = 0
        self._lock = threading.Lock()
        self._blocks: deque[np.ndarray] = deque()
        self._buffered = 0
        self._closed = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._ready: asyncio.Event | None = None

    def bind(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Attach the event loop the consumer awaits on."""
        self._loop = loop or asyncio.get_running_loop()
        self._ready = asyncio.Event()

    @property
    def buffered(self) -> int:
        return self._buffered

    def offer(self, block: np.ndarray) -> bool:
        """Try to enqueue ``block``; return False if it was dropped."""
        if not self._lock.acquire(blocking=False):
            self._count_drop(block)
            return False
        try:
            if self._closed or self._buffered + block.size > self.capacity:
                self._count_drop(block)
                return False
            self._blocks.append(block)
            self._buffered += block.size
        finally:
            self._lock.release()
        self._wake()
        return True

    async def receive(self) -> np.ndarray | None:
        """Wait for the next block; None once the relay is closed and drained."""
        if self._ready is None:
            self.bind()
        assert self._ready is not None
        while True:
            with self._lock:
                if self._blocks:
                    block = self._blocks.popleft()
                    self._buffered -= block.size
                    return block
                if self._closed:
                    return None
                self._ready.clear()
            await self._ready.wait()

    def close(self) -> None:
        """Stop accepting blocks. Safe to call from any thread."""
        with self._lock:
            self._closed = True
        self._wake()

    def _count_drop(self, block: np.ndarray) -> None:
        # Unsynchronised counters; only the producer thread writes them.
        self.dropped_blocks += 1
        self.dropped_samples += block.size

    def _wake(self) -> None:
        if self._loop is None or self._ready is None or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._ready.set)
