"""Windowing functions for DSP operations."""
import numpy as np


def hann(n: int) -> np.ndarray:
    """Generate a symmetric Hann window of length n."""
    return np.hanning(n).astype(np.float64)


def apply_window(frames: np.ndarray, window: np.ndarray) -> np.ndarray:
    """Multiply every frame (last axis) by the window."""
    frames = np.asarray(frames, dtype=np.float64)
    if frames.shape[-1] != window.size:
        raise ValueError("Window length must match frame length.")
    return frames * window
