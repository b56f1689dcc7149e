"""
Basic audio processing functions for the live capture and playback paths.
"""
from math import gcd

import numpy as np
from scipy.signal import resample_poly


def stereo_to_mono(x: np.ndarray) -> np.ndarray:
    """Convert multi-channel audio to mono by averaging channels."""
    if x.ndim == 1:
        return x
    return np.mean(x, axis=1)


def resample(mono: np.ndarray, source_rate: int, target_rate: int) -> np.ndarray:
    """Polyphase resample between two integer rates."""
    if source_rate == target_rate:
        return mono.astype(np.float32, copy=False)
    divisor = gcd(source_rate, target_rate)
    return resample_poly(mono, up=target_rate // divisor, down=source_rate // divisor).astype(np.float32)


def normalize_block(block: np.ndarray, source_rate: int, target_rate: int) -> np.ndarray:
    """Bring a captured block to mono float32 at the target rate."""
    mono = stereo_to_mono(np.asarray(block, dtype=np.float32))
    return resample(mono, source_rate, target_rate)


def rms_level(x: np.ndarray) -> float:
    """RMS of a float block, clipped to 0..1 for level meters."""
    if x.size == 0:
        return 0.0
    return float(min(1.0, np.sqrt(np.mean(np.square(x, dtype=np.float64)))))


def pcm16_to_float32(pcm: bytes) -> np.ndarray:
    """Decode little-endian 16-bit PCM into float32 samples in [-1, 1]."""
    samples = np.frombuffer(pcm[: len(pcm) - (len(pcm) % 2)], dtype="<i2")
    return (samples.astype(np.float32) / 32768.0).clip(-1.0, 1.0)
