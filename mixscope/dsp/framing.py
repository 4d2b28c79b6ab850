"""Frame extraction for STFT analysis."""
from __future__ import annotations

import numpy as np

from mixscope.errors import ParameterError


def num_frames(length: int, fft_size: int, hop_size: int) -> int:
    """Number of complete frames; a trailing partial frame is dropped."""
    _check_params(fft_size, hop_size)
    if length < fft_size:
        return 0
    return (length - fft_size) // hop_size + 1


def frame_signal(x: np.ndarray, fft_size: int, hop_size: int) -> np.ndarray:
    """
    Slice a mono signal into overlapping frames.

    Args:
        x: Mono samples (1D array)
        fft_size: Frame length in samples
        hop_size: Distance between frame starts in samples

    Returns:
        Array shaped (num_frames, fft_size). Frame f starts at f * hop_size.
        No zero padding is applied, so a signal shorter than fft_size
        yields an empty (0, fft_size) array.
    """
    x = np.asarray(x, dtype=np.float64)
    if x.ndim != 1:
        raise ValueError("frame_signal expects mono 1D signal.")
    n = num_frames(x.size, fft_size, hop_size)
    if n == 0:
        return np.zeros((0, fft_size), dtype=np.float64)
    frames = np.lib.stride_tricks.sliding_window_view(x, fft_size)[::hop_size]
    return frames[:n]


def frame_times_ms(count: int, hop_size: int, sample_rate: float) -> np.ndarray:
    """Start time of each frame in milliseconds."""
    return np.arange(count, dtype=np.float64) * hop_size / float(sample_rate) * 1000.0


def block_signal(x: np.ndarray, block_size: int) -> np.ndarray:
    """Split into non-overlapping blocks, dropping the incomplete tail."""
    x = np.asarray(x)
    if block_size <= 0:
        raise ParameterError(f"block_size must be >= 1 (got {block_size}).")
    n = x.shape[0] // block_size
    return x[: n * block_size].reshape((n, block_size) + x.shape[1:])


def _check_params(fft_size: int, hop_size: int) -> None:
    if fft_size < 1:
        raise ParameterError(f"fft_size must be >= 1 (got {fft_size}).")
    if hop_size < 1:
        raise ParameterError(f"hop_size must be >= 1 (got {hop_size}).")
