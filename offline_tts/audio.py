from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np


WAV_HEADER_SIZE = 44
_HEADER_FORMAT = "<4sI4s4sIHHIIHH4sI"


def pcm16le_from_floats(samples: Iterable[float] | np.ndarray) -> bytes:
    """Convert [-1.0, 1.0] floats to 16-bit little-endian PCM.

    Negative values scale by 0x8000 and non-negative by 0x7FFF so that
    full-scale input maps onto the int16 range without overflow. Scaled
    values are truncated toward zero.
    """
    arr = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)
    scaled = np.where(arr < 0, arr * 32768.0, arr * 32767.0)
    return scaled.astype("<i2").tobytes()


def wav_header(num_samples: int, sample_rate: int, num_channels: int = 1, bits_per_sample: int = 16) -> bytes:
    byte_rate = sample_rate * num_channels * bits_per_sample // 8
    block_align = num_channels * bits_per_sample // 8
    data_size = num_samples * block_align
    riff_size = 36 + data_size
    return struct.pack(
        _HEADER_FORMAT,
        b'RIFF',
        riff_size,
        b'WAVE',
        b'fmt ',
        16,  # Subchunk1Size for PCM
        1,   # AudioFormat PCM
        num_channels,
        sample_rate,
        byte_rate,
        block_align,
        bits_per_sample,
        b'data',
        data_size,
    )


def to_wav(samples: Iterable[float] | np.ndarray, sample_rate: int) -> bytes:
    """Encode mono float samples as a canonical 44-byte-header WAV file."""
    pcm = pcm16le_from_floats(samples)
    header = wav_header(num_samples=len(pcm) // 2, sample_rate=sample_rate)
    return header + pcm


@dataclass(frozen=True)
class WavInfo:
    riff_size: int
    audio_format: int
    num_channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_size: int


def parse_wav_header(data: bytes) -> WavInfo:
    """Read back the fields written by wav_header."""
    if len(data) < WAV_HEADER_SIZE:
        raise ValueError(f"WAV data too short ({len(data)} bytes)")
    (
        riff,
        riff_size,
        wave,
        fmt,
        _fmt_size,
        audio_format,
        num_channels,
        sample_rate,
        byte_rate,
        block_align,
        bits_per_sample,
        data_tag,
        data_size,
    ) = struct.unpack(_HEADER_FORMAT, data[:WAV_HEADER_SIZE])
    if riff != b'RIFF' or wave != b'WAVE' or fmt != b'fmt ' or data_tag != b'data':
        raise ValueError("Not a canonical PCM WAV header")
    return WavInfo(
        riff_size=riff_size,
        audio_format=audio_format,
        num_channels=num_channels,
        sample_rate=sample_rate,
        byte_rate=byte_rate,
        block_align=block_align,
        bits_per_sample=bits_per_sample,
        data_size=data_size,
    )


def duration_ms(num_samples: int, sample_rate: int) -> float:
    if sample_rate <= 0:
        raise ValueError("sample_rate must be positive")
    return num_samples / sample_rate * 1000.0


def noise(
    duration_s: float,
    sample_rate: int,
    gain: float = 0.005,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Very quiet uniform noise, used as placeholder audio."""
    n = int(duration_s * sample_rate)
    gen = rng or np.random.default_rng()
    return (gen.random(n, dtype=np.float32) - 0.5) * (2.0 * gain)
