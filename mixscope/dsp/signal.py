"""Time-domain signal helpers shared by the analyzers."""
from __future__ import annotations

import math

import numpy as np

DB_FLOOR = -100.0


def rms(x: np.ndarray) -> float:
    x = np.asarray(x, dtype=np.float64)
    if x.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(x ** 2)))


def peak(x: np.ndarray) -> float:
    x = np.asarray(x, dtype=np.float64)
    if x.size == 0:
        return 0.0
    return float(np.max(np.abs(x)))


def linear_to_db(value: float, floor: float = DB_FLOOR) -> float:
    """Amplitude to dB, clamped at floor for zero or negative input."""
    if value is None or not value > 0 or math.isinf(value):
        return float(floor)
    return max(float(floor), 20.0 * math.log10(value))


def linear_to_db_array(values: np.ndarray, floor: float = DB_FLOOR) -> np.ndarray:
    v = np.asarray(values, dtype=np.float64)
    out = np.full(v.shape, float(floor), dtype=np.float64)
    pos = v > 0
    out[pos] = np.maximum(20.0 * np.log10(v[pos]), floor)
    return out


def power_to_db(value: float, floor: float = DB_FLOOR) -> float:
    """Energy to dB (10*log10), clamped at floor."""
    if value is None or not value > 0 or math.isinf(value):
        return float(floor)
    return max(float(floor), 10.0 * math.log10(value))


def block_rms_db(blocks: np.ndarray, floor: float = DB_FLOOR) -> np.ndarray:
    """RMS in dB of each row of a (n, size) block array."""
    if blocks.shape[0] == 0:
        return np.zeros(0, dtype=np.float64)
    return linear_to_db_array(np.sqrt(np.mean(blocks ** 2, axis=-1)), floor)


def mid_side(left: np.ndarray, right: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Mid = (L+R)/2, Side = (L-R)/2."""
    left = np.asarray(left, dtype=np.float64)
    right = np.asarray(right, dtype=np.float64)
    return (left + right) * 0.5, (left - right) * 0.5


def pearson(a: np.ndarray, b: np.ndarray) -> float:
    """
    Pearson correlation of two equal-length signals.

    Identical inputs return 1.0 even when their variance is zero; otherwise
    a zero-variance input returns 0.0.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.size == 0 or a.size != b.size:
        return 0.0
    if np.array_equal(a, b):
        return 1.0
    ac = a - np.mean(a)
    bc = b - np.mean(b)
    denom = math.sqrt(float(np.sum(ac ** 2)) * float(np.sum(bc ** 2)))
    if denom <= 0:
        return 0.0
    return float(np.clip(np.sum(ac * bc) / denom, -1.0, 1.0))


def envelope_follower(
    x: np.ndarray,
    sample_rate: float,
    attack_ms: float,
    release_ms: float,
    block_size: int = 1,
) -> np.ndarray:
    """
    One-pole peak envelope with separate attack and release.

    coef = exp(-1 / (sample_rate * ms / 1000)); the attack coefficient is used
    while |x| exceeds the running envelope, the release one otherwise.

    With block_size > 1 the follower runs on the peak of each block at
    sample_rate / block_size and every block value is repeated back to the
    input length.
    """
    x = np.abs(np.asarray(x, dtype=np.float64))
    if block_size > 1 and x.size:
        n = x.size
        pad = (-n) % block_size
        peaks = np.max(np.concatenate([x, np.zeros(pad)]).reshape(-1, block_size), axis=1)
        env = envelope_follower(peaks, sample_rate / block_size, attack_ms, release_ms)
        return np.repeat(env, block_size)[:n]
    attack = math.exp(-1.0 / (sample_rate * attack_ms / 1000.0))
    release = math.exp(-1.0 / (sample_rate * release_ms / 1000.0))
    out = np.empty_like(x)
    env = 0.0
    for i, v in enumerate(x.tolist()):
        coef = attack if v > env else release
        env = coef * env + (1.0 - coef) * v
        out[i] = env
    return out


def find_peaks(data: np.ndarray, threshold: float, min_distance: int) -> list[int]:
    """
    Indices of local maxima above threshold, at least min_distance apart.

    A peak is strictly greater than its left neighbour and not smaller than
    its right neighbour. Earlier peaks win when two are too close.
    """
    d = np.asarray(data, dtype=np.float64)
    if d.size < 3:
        return []
    mid = d[1:-1]
    cand = np.flatnonzero((mid > threshold) & (mid > d[:-2]) & (mid >= d[2:])) + 1
    peaks: list[int] = []
    last = -int(min_distance)
    for i in cand.tolist():
        if i - last >= min_distance:
            peaks.append(i)
            last = i
    return peaks


def hz_to_bin(hz: float, fft_size: int, sample_rate: float) -> int:
    return int(round(hz * fft_size / sample_rate))


def bin_to_hz(bin_index: float, fft_size: int, sample_rate: float) -> float:
    return float(bin_index) * sample_rate / fft_size


def frequency_range_energy(
    spectrum: np.ndarray,
    min_hz: float,
    max_hz: float,
    fft_size: int,
    sample_rate: float,
) -> float:
    """Sum of squared magnitudes over bins [hz_to_bin(min), hz_to_bin(max))."""
    s = np.asarray(spectrum, dtype=np.float64)
    start = max(0, hz_to_bin(min_hz, fft_size, sample_rate))
    end = min(s.shape[-1], fft_size // 2, hz_to_bin(max_hz, fft_size, sample_rate))
    if end <= start:
        return 0.0
    return float(np.sum(s[..., start:end] ** 2))


def frequency_range_energy_frames(
    magnitudes: np.ndarray,
    min_hz: float,
    max_hz: float,
    fft_size: int,
    sample_rate: float,
) -> np.ndarray:
    """Per-frame range energy of a (num_frames, num_bins) array."""
    m = np.asarray(magnitudes, dtype=np.float64)
    start = max(0, hz_to_bin(min_hz, fft_size, sample_rate))
    end = min(m.shape[-1], fft_size // 2, hz_to_bin(max_hz, fft_size, sample_rate))
    if end <= start:
        return np.zeros(m.shape[0], dtype=np.float64)
    return np.sum(m[:, start:end] ** 2, axis=1)
