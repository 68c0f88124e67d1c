"""Mono 16-bit PCM RIFF/WAVE export."""

import logging
import struct
from pathlib import Path
from typing import Union

import numpy as np

logger = logging.getLogger(__name__)

WAV_HEADER_SIZE = 44
_BITS_PER_SAMPLE = 16
_BYTES_PER_SAMPLE = _BITS_PER_SAMPLE // 8
_NUM_CHANNELS = 1
_PCM_FORMAT = 1


def encode_wav(samples: np.ndarray, sample_rate: int) -> bytes:
    """Encode float samples as a canonical 44-byte-header WAV file.

    Samples are clamped to [-1, 1], scaled by 32767 and truncated toward
    zero to signed 16-bit little-endian integers.

    Args:
        samples: Mono float samples
        sample_rate: Sample rate in Hz

    Returns:
        Complete WAV file contents
    """
    data = np.clip(np.asarray(samples, dtype=np.float64).reshape(-1), -1.0, 1.0)
    pcm = np.trunc(data * 32767.0).astype('<i2')
    data_size = pcm.size * _BYTES_PER_SAMPLE
    block_align = _NUM_CHANNELS * _BYTES_PER_SAMPLE
    byte_rate = int(sample_rate) * block_align

    header = struct.pack(
        '<4sI4s4sIHHIIHH4sI',
        b'RIFF', 36 + data_size, b'WAVE',
        b'fmt ', 16, _PCM_FORMAT, _NUM_CHANNELS, int(sample_rate), byte_rate,
        block_align, _BITS_PER_SAMPLE,
        b'data', data_size
    )
    return header + pcm.tobytes()


def write_wav(path: Union[str, Path], samples: np.ndarray, sample_rate: int) -> Path:
    """Write ``encode_wav`` output to ``path`` and return the path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(encode_wav(samples, sample_rate))
    logger.info(f"Wrote {path} ({np.size(samples)} samples @ {sample_rate} Hz)")
    return path
