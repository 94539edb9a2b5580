"""Realtime audio capture on top of a sounddevice input stream."""

from __future__ import annotations

import logging
import threading
from typing import Any

import sounddevice as sd

from livedigest.audio import AudioFormat
from livedigest.capture.relay import SampleRelay

logger = logging.getLogger(__name__)


class CaptureError(RuntimeError):
    """Raised when the input device cannot be opened."""


def list_input_devices() -> list[dict[str, object]]:
    devices: list[dict[str, object]] = []
    for i, dev in enumerate(sd.query_devices()):
        if dev["max_input_channels"] > 0:
            devices.append(
                {
                    "index": i,
                    "name": dev["name"],
                    "channels": dev["max_input_channels"],
                    "sample_rate": dev["default_samplerate"],
                }
            )
    return devices


class CaptureSource:
    """Feed an input device into a :class:`SampleRelay`.

    PortAudio invokes the callback on its own realtime thread. The callback only
    copies the block and offers it to the relay, which drops rather than waits.
    When the stream ends (stopped, device lost, callback error) the relay is
    closed so the consumer sees the end of the stream.
    """

    def __init__(
        self,
        relay: SampleRelay,
        fmt: AudioFormat,
        *,
        dtype: str = "int16",
        device: int | str | None = None,
        blocksize: int = 0,
    ) -> None:
        self.relay = relay
        self.format = fmt
        self.dtype = dtype
        self.device = device
        self.blocksize = blocksize
        self.overflows = 0
        self.finished = threading.Event()
        self._stream: sd.InputStream | None = None

    def start(self) -> None:
        if self._stream is not None:
            return
        try:
            self._stream = sd.InputStream(
                samplerate=self.format.sample_rate,
                channels=self.format.channels,
                dtype=self.dtype,
                blocksize=self.blocksize,
                device=self.device,
                callback=self._callback,
                finished_callback=self._finished,
            )
            self._stream.start()
        except sd.PortAudioError as exc:
            self._stream = None
            raise CaptureError(f"Cannot open input device {self.device!r}: {exc}") from exc
        logger.info(
            "Capturing from %s: %d ch @ %d Hz (%s)",
            self.device if self.device is not None else "default device",
            self.format.channels,
            self.format.sample_rate,
            self.dtype,
        )

    def stop(self) -> None:
        if self._stream is None:
            return
        stream, self._stream = self._stream, None
        try:
            stream.stop()
        finally:
            stream.close()

    def _callback(self, indata: Any, frames: int, time_info: Any, status: sd.CallbackFlags) -> None:
        if status.input_overflow:
            self.overflows += 1
        self.relay.offer(indata.copy().reshape(-1))

    def _finished(self) -> None:
        self.finished.set()
        self.relay.close()
