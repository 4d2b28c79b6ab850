"""Brightness (spectral centroid) and harshness (spectral flux) analyzers."""
from __future__ import annotations

import numpy as np

from mixscope.analysis.spectral import frame_features, make_provider
from mixscope.dsp.features import SpectralFeatureProvider, spectral_flux_series
from mixscope.types import AnalysisConfig, SampleBuffer
from mixscope.utils.quantize import q

BRIGHT_THRESHOLD = 0.3
WARM_THRESHOLD = 0.15
HARSH_FLUX = 0.5
MODERATE_FLUX = 0.2
HARSH_FREQUENCIES_HZ = (2500, 3000, 3500, 4000)


def analyze_brightness(
    buffer: SampleBuffer,
    config: AnalysisConfig | None = None,
    provider: SpectralFeatureProvider | None = None,
) -> dict:
    """Average spectral centroid in Hz and a bright/neutral/warm trend."""
    cfg = config or AnalysisConfig()
    provider = provider or make_provider(buffer.sample_rate, cfg)
    nyquist = buffer.sample_rate / 2.0
    centroids = frame_features(
        buffer.to_mono(), cfg.hop_size, provider, ["spectral_centroid"]
    )["spectral_centroid"] * nyquist
    if centroids.size == 0:
        return {
            "centroid_hz": 0.0,
            "normalized_brightness": 0.0,
            "trend": "neutral",
            "min_hz": 0.0,
            "max_hz": 0.0,
            "recommendation": None,
            "message": "Audio too short for brightness analysis.",
        }
    average = float(np.mean(centroids))
    normalized = average / nyquist
    if normalized > BRIGHT_THRESHOLD:
        trend = "bright"
        rec = "Audio is bright/treble-heavy. Consider reducing high frequencies if too harsh."
    elif normalized < WARM_THRESHOLD:
        trend = "warm"
        rec = "Audio is warm/bass-heavy. Consider adding high frequency content for more clarity."
    else:
        trend = "neutral"
        rec = None
    return {
        "centroid_hz": q(average, 1.0),
        "normalized_brightness": q(normalized, 0.001),
        "trend": trend,
        "min_hz": q(float(np.min(centroids)), 1.0),
        "max_hz": q(float(np.max(centroids)), 1.0),
        "recommendation": rec,
    }


def analyze_harshness(
    buffer: SampleBuffer,
    config: AnalysisConfig | None = None,
    provider: SpectralFeatureProvider | None = None,
) -> dict:
    """Average and peak positive spectral flux between consecutive frames."""
    cfg = config or AnalysisConfig()
    provider = provider or make_provider(buffer.sample_rate, cfg)
    amp = frame_features(
        buffer.to_mono(), cfg.hop_size, provider, ["amplitude_spectrum"]
    )["amplitude_spectrum"]
    flux = spectral_flux_series(amp)
    if flux.size == 0:
        return {
            "flux_average": 0.0,
            "flux_peak": 0.0,
            "flux_values": [],
            "harsh_frequencies": [],
            "harshness_trend": "smooth",
            "recommendation": None,
        }
    avg = float(np.mean(flux))
    if avg > HARSH_FLUX:
        trend = "harsh"
        rec = (
            "High spectral flux detected. Audio may contain harsh transients or distortion. "
            "Consider compression or de-essing."
        )
    elif avg > MODERATE_FLUX:
        trend = "moderate"
        rec = "Moderate spectral variation. Audio has good dynamics."
    else:
        trend = "smooth"
        rec = None
    return {
        "flux_average": q(avg, 0.001),
        "flux_peak": q(float(np.max(flux)), 0.001),
        "flux_values": flux.tolist(),
        "harsh_frequencies": list(HARSH_FREQUENCIES_HZ) if trend != "smooth" else [],
        "harshness_trend": trend,
        "recommendation": rec,
    }
