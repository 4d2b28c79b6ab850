"""Sibilance detection from 5-8 kHz vs 2-4 kHz band energy."""
from __future__ import annotations

import numpy as np

from mixscope.analysis.spectral import compute_spectrogram
from mixscope.dsp.signal import bin_to_hz, frequency_range_energy_frames, hz_to_bin, linear_to_db
from mixscope.types import AnalysisConfig, SampleBuffer, Severity
from mixscope.utils.quantize import q

SIBILANCE_BAND = (5000.0, 8000.0)
REFERENCE_BAND = (2000.0, 4000.0)
SIBILANT_RATIO = 2.0
DEFAULT_PEAK_HZ = 6500.0

_DE_ESSER = {
    Severity.SEVERE: (-20, 8),
    Severity.MODERATE: (-25, 6),
    Severity.MILD: (-30, 4),
}


def sibilance_severity(percentage: float) -> Severity:
    if percentage > 30:
        return Severity.SEVERE
    if percentage > 15:
        return Severity.MODERATE
    if percentage > 5:
        return Severity.MILD
    return Severity.NONE


def _peak_frequency(avg_spectrum: np.ndarray, fft_size: int, sample_rate: float) -> float:
    lo = max(0, hz_to_bin(SIBILANCE_BAND[0], fft_size, sample_rate))
    hi = min(avg_spectrum.size, hz_to_bin(SIBILANCE_BAND[1], fft_size, sample_rate))
    if hi <= lo or not np.any(avg_spectrum[lo:hi] > 0):
        return DEFAULT_PEAK_HZ
    return float(round(bin_to_hz(lo + int(np.argmax(avg_spectrum[lo:hi])), fft_size, sample_rate)))


def detect_sibilance(buffer: SampleBuffer, config: AnalysisConfig | None = None) -> dict:
    """
    Share of frames whose 5-8 kHz energy exceeds twice the 2-4 kHz energy.

    The de-esser frequency is the loudest bin of the averaged spectrum
    inside 5-8 kHz (6.5 kHz when that range is silent or above Nyquist).
    """
    cfg = config or AnalysisConfig()
    sr = buffer.sample_rate
    spec = compute_spectrogram(buffer, fft_size=cfg.fft_size, hop_size=cfg.hop_size)
    if spec.num_frames == 0:
        return {
            "has_sibilance": False,
            "severity": Severity.NONE,
            "sibilant_frame_percentage": 0.0,
            "peak_frequency_hz": DEFAULT_PEAK_HZ,
            "average_energy_db": -100.0,
            "de_esser_settings": None,
            "recommendation": "Audio too short for sibilance analysis.",
        }
    sib = frequency_range_energy_frames(spec.magnitudes, *SIBILANCE_BAND, cfg.fft_size, sr)
    ref = frequency_range_energy_frames(spec.magnitudes, *REFERENCE_BAND, cfg.fft_size, sr)
    ratio = sib / np.where(ref > 0, ref, 0.0001)
    pct = float(np.count_nonzero(ratio > SIBILANT_RATIO)) / spec.num_frames * 100.0
    severity = sibilance_severity(pct)
    has = severity != Severity.NONE
    peak_hz = _peak_frequency(np.mean(spec.magnitudes, axis=0), cfg.fft_size, sr)
    avg_db = linear_to_db(float(np.sqrt(np.sum(sib) / spec.num_frames)))

    settings = None
    if has:
        threshold, range_db = _DE_ESSER[severity]
        settings = {"frequency_hz": peak_hz, "threshold_db": threshold, "range_db": range_db}
    if not has:
        rec = "No significant sibilance detected. De-esser not required."
    elif severity == Severity.SEVERE:
        rec = (
            f"Severe sibilance detected ({pct:.1f}% of frames). Apply de-esser at "
            f"{peak_hz:.0f}Hz with {settings['range_db']}dB range."
        )
    elif severity == Severity.MODERATE:
        rec = (
            f"Moderate sibilance detected. Apply de-esser at {peak_hz:.0f}Hz with "
            f"{settings['range_db']}dB range. Consider split-band processing."
        )
    else:
        rec = f"Mild sibilance detected. Light de-essing at {peak_hz:.0f}Hz may improve clarity."
    return {
        "has_sibilance": has,
        "severity": severity,
        "sibilant_frame_percentage": q(pct, 0.1),
        "peak_frequency_hz": peak_hz,
        "average_energy_db": q(avg_db, 0.1),
        "de_esser_settings": settings,
        "recommendation": rec,
    }
