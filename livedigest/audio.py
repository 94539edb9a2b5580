"""PCM format descriptor and WAV container helpers shared by client and server."""

from __future__ import annotations

import io
from dataclasses import dataclass

import numpy as np
import soundfile as sf

# Working format expected by the speech model.
MODEL_SAMPLE_RATE = 16_000
MODEL_CHANNELS = 1

# (bits_per_sample, is_float) -> libsndfile WAV subtype
_SUBTYPES: dict[tuple[int, bool], str] = {
    (8, False): "PCM_U8",
    (16, False): "PCM_16",
    (24, False): "PCM_24",
    (32, False): "PCM_32",
    (32, True): "FLOAT",
    (64, True): "DOUBLE",
}
_FORMATS: dict[str, tuple[int, bool]] = {v: k for k, v in _SUBTYPES.items()}
_FORMATS["PCM_S8"] = (8, False)

# sounddevice dtype names -> (bits_per_sample, is_float)
_DTYPES: dict[str, tuple[int, bool]] = {
    "int8": (8, False),
    "int16": (16, False),
    "int32": (32, False),
    "float32": (32, True),
}


class AudioFormatError(ValueError):
    """Raised when audio bytes are not a readable PCM container."""


@dataclass(frozen=True)
class AudioFormat:
    """Channel count, rate and sample encoding of a PCM stream."""

    channels: int
    sample_rate: int
    bits_per_sample: int
    is_float: bool = False

    @classmethod
    def from_dtype(cls, dtype: str, channels: int, sample_rate: int) -> AudioFormat:
        """Build a format from a numpy/sounddevice dtype name."""
        try:
            bits, is_float = _DTYPES[dtype]
        except KeyError:
            raise ValueError(f"Unsupported sample dtype: {dtype}") from None
        return cls(channels=channels, sample_rate=sample_rate, bits_per_sample=bits, is_float=is_float)

    @property
    def subtype(self) -> str:
        try:
            return _SUBTYPES[(self.bits_per_sample, self.is_float)]
        except KeyError:
            raise ValueError(
                f"No WAV encoding for {self.bits_per_sample}-bit "
                f"{'float' if self.is_float else 'integer'} samples"
            ) from None

    @property
    def is_model_format(self) -> bool:
        """True when the stream is mono 16 kHz, the speech model's input format."""
        return self.channels == MODEL_CHANNELS and self.sample_rate == MODEL_SAMPLE_RATE

    def samples_for(self, seconds: float) -> int:
        """Interleaved sample count covering ``seconds`` of audio."""
        return round(seconds * self.sample_rate) * self.channels


def encode_wav(samples: np.ndarray, fmt: AudioFormat) -> bytes:
    """Encode interleaved samples as a WAV file carrying ``fmt`` in its header."""
    frames = np.asarray(samples).reshape(-1, fmt.channels)
    if frames.dtype == np.int8:
        # libsndfile has no int8 input path; widen losslessly before writing PCM_U8
        frames = frames.astype(np.int16) * 256
    buf = io.BytesIO()
    sf.write(buf, frames, fmt.sample_rate, subtype=fmt.subtype, format="WAV")
    return buf.getvalue()


def read_format(data: bytes) -> AudioFormat:
    """Read the format descriptor from a WAV header without decoding samples.

    Raises:
        AudioFormatError: The bytes are not a readable audio container.
    """
    try:
        info = sf.info(io.BytesIO(data))
    except (sf.SoundFileError, RuntimeError) as exc:
        raise AudioFormatError(f"Unreadable audio container: {exc}") from exc
    bits, is_float = _FORMATS.get(info.subtype, (0, False))
    return AudioFormat(
        channels=info.channels,
        sample_rate=info.samplerate,
        bits_per_sample=bits,
        is_float=is_float,
    )


def decode_samples(data: bytes, fmt: AudioFormat) -> np.ndarray:
    """Decode a WAV payload to interleaved samples.

    Float files come back as float32 and integer PCM as int16. libsndfile does
    not rescale float data read as integers, so the two paths must stay apart.
    """
    dtype = "float32" if fmt.is_float else "int16"
    try:
        samples, _ = sf.read(io.BytesIO(data), dtype=dtype, always_2d=False)
    except (sf.SoundFileError, RuntimeError) as exc:
        raise AudioFormatError(f"Unreadable audio container: {exc}") from exc
    return np.ascontiguousarray(samples).reshape(-1)


def pcm_to_float(samples: np.ndarray) -> np.ndarray:
    """Normalise integer PCM to float32 in [-1.0, 1.0)."""
    samples = np.asarray(samples)
    if np.issubdtype(samples.dtype, np.floating):
        return samples.astype(np.float32, copy=False)
    scale = float(np.iinfo(samples.dtype).max) + 1.0
    return samples.astype(np.float32) / scale
