"""DSP building blocks for MixScope."""

from mixscope.dsp.features import (
    FEATURES,
    NumpyFeatureProvider,
    SpectralFeatureProvider,
    average_features,
    spectral_flux_series,
)
from mixscope.dsp.framing import frame_signal, frame_times_ms, num_frames

__all__ = [
    "FEATURES",
    "NumpyFeatureProvider",
    "SpectralFeatureProvider",
    "average_features",
    "frame_signal",
    "frame_times_ms",
    "num_frames",
    "spectral_flux_series",
]
