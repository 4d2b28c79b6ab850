"""STFT spectrograms and frame-averaged spectral summaries."""
from __future__ import annotations

import logging

import numpy as np

from mixscope.analysis.bands import CATALOGUES, frequency_balance
from mixscope.dsp.features import (
    NumpyFeatureProvider,
    SpectralFeatureProvider,
    average_features,
    spectral_flux_series,
)
from mixscope.dsp.framing import frame_signal, frame_times_ms
from mixscope.dsp.mel import mel_band_centres, mel_filterbank
from mixscope.errors import ParameterError, check_choice, check_range
from mixscope.types import (
    AnalysisConfig,
    FrequencyBalance,
    MelSpectrogramData,
    SampleBuffer,
    SpectrogramData,
)

logger = logging.getLogger(__name__)

SPECTROGRAM_FFT_SIZES = (1024, 2048, 4096, 8192)
MEL_MIN_HZ = 20.0


def make_provider(
    sample_rate: float,
    config: AnalysisConfig | None = None,
    *,
    fft_size: int | None = None,
) -> NumpyFeatureProvider:
    cfg = config or AnalysisConfig()
    return NumpyFeatureProvider(
        fft_size or cfg.fft_size,
        sample_rate,
        num_mel_bands=cfg.num_mel_bands,
        num_mfcc=cfg.num_mfcc,
    )


def frame_features(
    x: np.ndarray,
    hop_size: int,
    provider: SpectralFeatureProvider,
    features,
) -> dict:
    """Per-frame features of a mono signal; every value has num_frames rows."""
    frames = frame_signal(x, provider.fft_size, hop_size)
    return provider.extract_frames(features, frames)


def compute_spectrogram(
    buffer: SampleBuffer,
    *,
    fft_size: int = 2048,
    hop_size: int = 512,
    provider: SpectralFeatureProvider | None = None,
) -> SpectrogramData:
    """
    Magnitude spectrogram of the mono downmix.

    Frame f covers samples [f*hop_size, f*hop_size + fft_size); the trailing
    partial frame is dropped, so short buffers give zero frames.
    """
    if provider is None:
        provider = NumpyFeatureProvider(fft_size, buffer.sample_rate)
    elif provider.fft_size != fft_size:
        raise ParameterError(
            f"provider fft_size {provider.fft_size} does not match requested {fft_size}."
        )
    mono = buffer.to_mono()
    mags = frame_features(mono, hop_size, provider, ["amplitude_spectrum"])["amplitude_spectrum"]
    num_bins = fft_size // 2
    mags = np.asarray(mags, dtype=np.float64).reshape(-1, num_bins)
    logger.debug(
        "spectrogram: %d frames, %d bins (fft=%d hop=%d)",
        mags.shape[0], num_bins, fft_size, hop_size,
    )
    return SpectrogramData(
        magnitudes=mags,
        frequencies=np.arange(num_bins, dtype=np.float64) * buffer.sample_rate / fft_size,
        times=frame_times_ms(mags.shape[0], hop_size, buffer.sample_rate),
        fft_size=int(fft_size),
        hop_size=int(hop_size),
        sample_rate=int(buffer.sample_rate),
    )


def spectrogram_with_config(
    buffer: SampleBuffer,
    fft_size: int = 4096,
    hop_fraction: float = 0.25,
) -> SpectrogramData:
    """Spectrogram with a display FFT size and hop = floor(fft_size * hop_fraction)."""
    check_choice("fft_size", fft_size, SPECTROGRAM_FFT_SIZES)
    check_range("hop_fraction", hop_fraction, 0.1, 0.5)
    hop = int(np.floor(fft_size * hop_fraction))
    return compute_spectrogram(buffer, fft_size=fft_size, hop_size=hop)


def compute_mel_spectrogram(
    buffer: SampleBuffer,
    config: AnalysisConfig | None = None,
) -> MelSpectrogramData:
    """Power spectrogram folded into num_mel_bands bands between 20 Hz and Nyquist."""
    cfg = config or AnalysisConfig()
    sr = buffer.sample_rate
    spec = compute_spectrogram(buffer, fft_size=cfg.fft_size, hop_size=cfg.hop_size)
    fb = mel_filterbank(cfg.num_mel_bands, cfg.fft_size, sr, min_hz=MEL_MIN_HZ)
    mel = (spec.magnitudes ** 2) @ fb.T
    return MelSpectrogramData(
        magnitudes=mel.reshape(spec.num_frames, cfg.num_mel_bands),
        mel_frequencies=mel_band_centres(cfg.num_mel_bands, MEL_MIN_HZ, sr / 2.0),
        times=spec.times,
        fft_size=cfg.fft_size,
        hop_size=cfg.hop_size,
        sample_rate=int(sr),
        num_mel_bands=cfg.num_mel_bands,
    )


def average_spectrum(spectrogram: SpectrogramData) -> np.ndarray:
    """Arithmetic mean magnitude per bin (zeros when there are no frames)."""
    if spectrogram.num_frames == 0:
        return np.zeros(spectrogram.fft_size // 2, dtype=np.float64)
    return np.mean(spectrogram.magnitudes, axis=0)


def analyze_frequency_balance(
    buffer: SampleBuffer,
    config: AnalysisConfig | None = None,
    *,
    catalogue: str = "standard",
) -> FrequencyBalance:
    """Band balance of the frame-averaged spectrum."""
    cfg = config or AnalysisConfig()
    check_choice("catalogue", catalogue, tuple(CATALOGUES))
    spec = compute_spectrogram(buffer, fft_size=cfg.fft_size, hop_size=cfg.hop_size)
    return frequency_balance(
        average_spectrum(spec), buffer.sample_rate, cfg.fft_size, CATALOGUES[catalogue]
    )


_SUMMARY_FEATURES = {
    "spectral_centroid": ("normalized (0-1)", "Brightness indicator (0 = bass-heavy, 1 = treble-heavy)"),
    "spectral_flatness": ("ratio (0-1)", "Tone vs noise (0 = pure tone, 1 = white noise)"),
    "spectral_flux": ("normalized", "Rate of spectral change (higher = more dynamic)"),
    "spectral_spread": ("normalized", "Frequency bandwidth distribution"),
    "spectral_rolloff": ("Hz", "Frequency below which 99% of energy resides"),
    "rms": ("linear", "Root mean square (loudness)"),
    "loudness": ("sone-like", "Summed specific loudness across mel bands"),
}


def analyze_spectrum(
    buffer: SampleBuffer,
    config: AnalysisConfig | None = None,
    provider: SpectralFeatureProvider | None = None,
) -> dict:
    """Frame-averaged spectral features plus the frequency balance."""
    cfg = config or AnalysisConfig()
    provider = provider or make_provider(buffer.sample_rate, cfg)
    names = [n for n in _SUMMARY_FEATURES if n != "spectral_flux"]
    per_frame = frame_features(
        buffer.to_mono(), cfg.hop_size, provider, names + ["amplitude_spectrum"]
    )
    amp = per_frame.pop("amplitude_spectrum")
    averages = average_features(per_frame)
    flux = spectral_flux_series(amp)
    averages["spectral_flux"] = float(np.mean(flux)) if flux.size else 0.0

    features = {}
    for name, (unit, description) in _SUMMARY_FEATURES.items():
        features[name] = {
            "average": float(averages[name]),
            "unit": unit,
            "description": description,
        }
    balance = analyze_frequency_balance(buffer, cfg)
    return {
        "num_frames": int(amp.shape[0]),
        "features": features,
        "frequency_balance": balance,
        "metadata": {
            "duration_ms": buffer.duration_ms,
            "sample_rate": buffer.sample_rate,
            "channels": buffer.channels,
            "fft_size": cfg.fft_size,
            "hop_size": cfg.hop_size,
        },
    }
