"""
Per-frame spectral feature extraction.

Conventions:
- frames are Hann windowed before the FFT;
- the amplitude spectrum is the unnormalized |rfft| truncated to
  fft_size // 2 bins (the Nyquist bin is dropped);
- spectral_centroid and spectral_spread are in bins divided by the bin
  count, so 1.0 corresponds to Nyquist;
- spectral_rolloff is in Hz.
"""
from __future__ import annotations

from typing import Iterable, Protocol

import numpy as np

from mixscope.dsp.mel import mel_filterbank, mfcc_from_power
from mixscope.dsp.windowing import apply_window, hann
from mixscope.errors import ParameterError

FEATURES = (
    "amplitude_spectrum",
    "power_spectrum",
    "spectral_centroid",
    "spectral_flatness",
    "spectral_spread",
    "spectral_rolloff",
    "rms",
    "mfcc",
    "loudness",
)

ROLLOFF_FRACTION = 0.99
# frames per FFT batch; bounds the windowed and complex temporaries
FRAME_BLOCK = 256
_EPS = 1e-20


class SpectralFeatureProvider(Protocol):
    fft_size: int
    sample_rate: float

    def extract(self, features: Iterable[str], frame: np.ndarray) -> dict:
        ...

    def extract_frames(self, features: Iterable[str], frames: np.ndarray) -> dict:
        ...


class NumpyFeatureProvider:
    """SpectralFeatureProvider backed by numpy's FFT."""

    def __init__(
        self,
        fft_size: int,
        sample_rate: float,
        *,
        num_mel_bands: int = 128,
        num_mfcc: int = 13,
    ):
        if fft_size < 2:
            raise ParameterError(f"fft_size must be >= 2 (got {fft_size}).")
        self.fft_size = int(fft_size)
        self.sample_rate = float(sample_rate)
        self.num_bins = self.fft_size // 2
        self.num_mel_bands = int(num_mel_bands)
        self.num_mfcc = int(num_mfcc)
        self._window = hann(self.fft_size)
        self._filterbank: np.ndarray | None = None

    @property
    def filterbank(self) -> np.ndarray:
        if self._filterbank is None:
            self._filterbank = mel_filterbank(
                self.num_mel_bands, self.fft_size, self.sample_rate
            )
        return self._filterbank

    def amplitude_spectrum(self, frames: np.ndarray) -> np.ndarray:
        frames = np.asarray(frames, dtype=np.float64)
        if frames.shape[-1] != self.fft_size:
            raise ParameterError(
                f"frame length must equal fft_size {self.fft_size} (got {frames.shape[-1]})."
            )
        out = np.zeros(frames.shape[:-1] + (self.num_bins,), dtype=np.float64)
        flat = frames.reshape(-1, self.fft_size)
        dest = out.reshape(-1, self.num_bins)
        for start in range(0, flat.shape[0], FRAME_BLOCK):
            block = apply_window(flat[start:start + FRAME_BLOCK], self._window)
            spec = np.abs(np.fft.rfft(block, n=self.fft_size, axis=-1))
            dest[start:start + FRAME_BLOCK] = spec[:, : self.num_bins]
        return out

    def extract(self, features: Iterable[str], frame: np.ndarray) -> dict:
        """Extract features from a single frame."""
        out = self.extract_frames(features, np.asarray(frame, dtype=np.float64)[None, :])
        return {
            name: (float(v[0]) if np.ndim(v) == 1 else v[0])
            for name, v in out.items()
        }

    def extract_frames(self, features: Iterable[str], frames: np.ndarray) -> dict:
        """Extract features for every row of a (num_frames, fft_size) array."""
        names = list(features)
        unknown = [n for n in names if n not in FEATURES]
        if unknown:
            raise ParameterError(
                f"Unknown feature(s) {unknown}; expected any of: {', '.join(FEATURES)}."
            )
        frames = np.asarray(frames, dtype=np.float64).reshape(-1, self.fft_size)
        if frames.shape[0] <= FRAME_BLOCK:
            return self._extract_block(names, frames)
        out: dict = {}
        for start in range(0, frames.shape[0], FRAME_BLOCK):
            block = self._extract_block(names, frames[start:start + FRAME_BLOCK])
            for name, values in block.items():
                if name not in out:
                    out[name] = np.empty((frames.shape[0],) + values.shape[1:], dtype=np.float64)
                out[name][start:start + FRAME_BLOCK] = values
        return out

    def _extract_block(self, names: list[str], frames: np.ndarray) -> dict:
        amp = self.amplitude_spectrum(frames)
        power = amp ** 2
        out: dict = {}
        for name in names:
            if name == "amplitude_spectrum":
                out[name] = amp
            elif name == "power_spectrum":
                out[name] = power
            elif name == "spectral_centroid":
                out[name] = spectral_centroid(amp)
            elif name == "spectral_flatness":
                out[name] = spectral_flatness(amp)
            elif name == "spectral_spread":
                out[name] = spectral_spread(amp)
            elif name == "spectral_rolloff":
                out[name] = spectral_rolloff(amp, self.fft_size, self.sample_rate)
            elif name == "rms":
                out[name] = np.sqrt(np.mean(frames ** 2, axis=1))
            elif name == "mfcc":
                out[name] = mfcc_from_power(power, self.filterbank, self.num_mfcc)
            elif name == "loudness":
                specific = np.maximum(power @ self.filterbank.T, 0.0) ** 0.23
                out[name] = np.sum(specific, axis=1)
        return out


def spectral_centroid(amp: np.ndarray) -> np.ndarray:
    """Magnitude-weighted mean bin, normalized to [0, 1)."""
    amp = np.atleast_2d(amp)
    n = amp.shape[1]
    idx = np.arange(n, dtype=np.float64)
    total = np.sum(amp, axis=1)
    weighted = amp @ idx
    c = np.divide(weighted, total, out=np.zeros_like(total), where=total > 0)
    return c / n


def spectral_spread(amp: np.ndarray) -> np.ndarray:
    amp = np.atleast_2d(amp)
    n = amp.shape[1]
    idx = np.arange(n, dtype=np.float64)
    total = np.sum(amp, axis=1)
    centre = np.divide(amp @ idx, total, out=np.zeros_like(total), where=total > 0)
    var = np.sum(amp * (idx[None, :] - centre[:, None]) ** 2, axis=1)
    var = np.divide(var, total, out=np.zeros_like(total), where=total > 0)
    return np.sqrt(var) / n


def spectral_flatness(amp: np.ndarray) -> np.ndarray:
    """Geometric over arithmetic mean of the magnitudes, in [0, 1]."""
    amp = np.atleast_2d(amp)
    arith = np.mean(amp, axis=1)
    geo = np.exp(np.mean(np.log(np.maximum(amp, _EPS)), axis=1))
    flat = np.divide(geo, arith, out=np.zeros_like(arith), where=arith > 0)
    return np.clip(flat, 0.0, 1.0)


def spectral_rolloff(amp: np.ndarray, fft_size: int, sample_rate: float) -> np.ndarray:
    """Frequency (Hz) below which ROLLOFF_FRACTION of the magnitude sum lies."""
    amp = np.atleast_2d(amp)
    if amp.shape[0] == 0 or amp.shape[1] == 0:
        return np.zeros(amp.shape[0], dtype=np.float64)
    cum = np.cumsum(amp, axis=1)
    target = cum[:, -1:] * ROLLOFF_FRACTION
    idx = np.argmax(cum >= target, axis=1)
    idx = np.where(cum[:, -1] > 0, idx, 0)
    return idx.astype(np.float64) * sample_rate / fft_size


def spectral_flux_series(magnitudes: np.ndarray) -> np.ndarray:
    """
    Positive spectral change between consecutive frames.

    flux[t] = sum(max(0, S[t+1] - S[t])) / num_bins
    """
    m = np.asarray(magnitudes, dtype=np.float64)
    if m.ndim != 2 or m.shape[0] < 2 or m.shape[1] == 0:
        return np.zeros(0, dtype=np.float64)
    diff = np.maximum(0.0, m[1:] - m[:-1])
    return np.sum(diff, axis=1) / m.shape[1]


def average_features(per_frame: dict) -> dict:
    """Arithmetic mean of each feature across frames (axis 0)."""
    out = {}
    for name, values in per_frame.items():
        v = np.asarray(values, dtype=np.float64)
        if v.shape[0] == 0:
            out[name] = 0.0 if v.ndim == 1 else np.zeros(v.shape[1:])
            continue
        mean = np.mean(v, axis=0)
        out[name] = float(mean) if np.ndim(mean) == 0 else mean
    return out
