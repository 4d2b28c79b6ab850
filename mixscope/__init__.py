"""
MixScope - Audio Mix Analysis Tool

Spectral, dynamics and stereo analysis of audio buffers with mixing
recommendations and high-resolution spectrogram rendering.
"""
from mixscope.version import __version__
from mixscope.types import (
    Severity,
    ProblemType,
    SampleBuffer,
    SpectrogramData,
    MelSpectrogramData,
    FrequencyBand,
    BandEnergy,
    FrequencyBalance,
    AudioProblem,
    RenderResult,
    AnalysisConfig,
)

__all__ = [
    "__version__",
    "Severity",
    "ProblemType",
    "SampleBuffer",
    "SpectrogramData",
    "MelSpectrogramData",
    "FrequencyBand",
    "BandEnergy",
    "FrequencyBalance",
    "AudioProblem",
    "RenderResult",
    "AnalysisConfig",
]
