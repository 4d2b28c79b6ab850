"""Frequency-masking risk from MFCC stability."""
from __future__ import annotations

import numpy as np

from mixscope.analysis.spectral import frame_features, make_provider
from mixscope.dsp.features import SpectralFeatureProvider
from mixscope.dsp.mel import hz_to_mel, mel_to_hz
from mixscope.types import AnalysisConfig, SampleBuffer

LOW_VARIANCE = 0.1
HIGH_SEVERITY_VARIANCE = 0.05


def coefficient_frequency_range(
    coefficient: int,
    sample_rate: float,
    num_coeffs: int = 13,
) -> tuple[int, int]:
    """
    Rough Hz range associated with a cepstral coefficient.

    The mel axis from 0 to Nyquist is cut into num_coeffs equal slices and
    slice `coefficient` is mapped back to Hz.
    """
    width = float(hz_to_mel(sample_rate / 2.0)) / num_coeffs
    lo = float(mel_to_hz(coefficient * width))
    hi = float(mel_to_hz((coefficient + 1) * width))
    return int(round(lo)), int(round(hi))


def analyze_masking(
    buffer: SampleBuffer,
    config: AnalysisConfig | None = None,
    provider: SpectralFeatureProvider | None = None,
) -> dict:
    """
    Flag cepstral coefficients whose variance across frames is low.

    Coefficient 0 (overall energy) is skipped. Risk is high with two or
    more high-severity flags, medium with two or more flags of any kind.
    """
    cfg = config or AnalysisConfig()
    provider = provider or make_provider(buffer.sample_rate, cfg)
    mfcc = frame_features(buffer.to_mono(), cfg.hop_size, provider, ["mfcc"])["mfcc"]
    if mfcc.shape[0] == 0:
        return {
            "coefficient_variances": [],
            "potential_masking": [],
            "overall_masking_risk": "low",
            "recommendation": None,
        }
    variances = np.var(mfcc, axis=0)
    num_coeffs = variances.size
    issues = []
    for i in range(1, num_coeffs):
        v = float(variances[i])
        if v >= LOW_VARIANCE:
            continue
        lo, hi = coefficient_frequency_range(i, buffer.sample_rate, num_coeffs)
        issues.append({
            "coefficient": i,
            "variance": v,
            "frequency_range": (lo, hi),
            "severity": "high" if v < HIGH_SEVERITY_VARIANCE else "medium",
            "description": (
                f"Low variation in frequency range {lo}-{hi} Hz may indicate frequency masking."
            ),
        })
    high = sum(1 for m in issues if m["severity"] == "high")
    if high >= 2:
        risk = "high"
    elif len(issues) >= 2:
        risk = "medium"
    else:
        risk = "low"
    rec = None
    if risk != "low":
        rec = (
            "Potential frequency masking detected. Consider using EQ to separate "
            "overlapping instruments, or try panning elements apart."
        )
    return {
        "coefficient_variances": variances.tolist(),
        "potential_masking": issues,
        "overall_masking_risk": risk,
        "recommendation": rec,
    }
