"""Mel scale conversion, filterbank and cepstral transform."""
from __future__ import annotations

import numpy as np


def hz_to_mel(hz):
    return 2595.0 * np.log10(1.0 + np.asarray(hz, dtype=np.float64) / 700.0)


def mel_to_hz(mel):
    return 700.0 * (10.0 ** (np.asarray(mel, dtype=np.float64) / 2595.0) - 1.0)


def mel_band_edges(
    num_bands: int,
    min_hz: float,
    max_hz: float,
) -> np.ndarray:
    """num_bands + 2 edge frequencies (Hz), equally spaced in mel."""
    mels = np.linspace(hz_to_mel(min_hz), hz_to_mel(max_hz), num_bands + 2)
    return mel_to_hz(mels)


def mel_filterbank(
    num_bands: int,
    fft_size: int,
    sample_rate: float,
    *,
    min_hz: float = 0.0,
    max_hz: float | None = None,
) -> np.ndarray:
    """
    Triangular mel filterbank.

    Returns:
        Weights shaped (num_bands, fft_size // 2). Filter k rises from
        edge k to peak k+1 and falls to zero at edge k+2, evaluated at
        each bin's centre frequency.
    """
    if num_bands < 1:
        raise ValueError("num_bands must be >= 1.")
    max_hz = sample_rate / 2.0 if max_hz is None else float(max_hz)
    edges = mel_band_edges(num_bands, min_hz, max_hz)
    bin_hz = np.arange(fft_size // 2, dtype=np.float64) * sample_rate / fft_size

    lower = edges[:-2, None]
    centre = edges[1:-1, None]
    upper = edges[2:, None]
    with np.errstate(divide="ignore", invalid="ignore"):
        rising = (bin_hz[None, :] - lower) / (centre - lower)
        falling = (upper - bin_hz[None, :]) / (upper - centre)
    weights = np.maximum(0.0, np.minimum(rising, falling))
    return np.nan_to_num(weights, nan=0.0, posinf=0.0, neginf=0.0)


def mel_band_centres(num_bands: int, min_hz: float, max_hz: float) -> np.ndarray:
    return mel_band_edges(num_bands, min_hz, max_hz)[1:-1]


def dct_matrix(num_coeffs: int, num_inputs: int) -> np.ndarray:
    """Unnormalized DCT-II basis shaped (num_coeffs, num_inputs)."""
    n = np.arange(num_inputs, dtype=np.float64)
    k = np.arange(num_coeffs, dtype=np.float64)[:, None]
    return np.cos(np.pi / num_inputs * (n + 0.5) * k)


def mfcc_from_power(
    power: np.ndarray,
    filterbank: np.ndarray,
    num_coeffs: int = 13,
) -> np.ndarray:
    """
    MFCCs from power spectra.

    Args:
        power: (num_bins,) or (num_frames, num_bins) power spectra
        filterbank: (num_bands, num_bins) mel weights
        num_coeffs: coefficients to keep

    Returns:
        (num_coeffs,) or (num_frames, num_coeffs)
    """
    mel_energy = np.asarray(power, dtype=np.float64) @ filterbank.T
    log_mel = np.log1p(np.maximum(mel_energy, 0.0))
    basis = dct_matrix(min(num_coeffs, filterbank.shape[0]), filterbank.shape[0])
    return log_mel @ basis.T
