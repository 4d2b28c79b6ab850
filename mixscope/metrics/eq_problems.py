"""Tonal EQ problem detection against an even six-band energy split."""
from __future__ import annotations

import numpy as np

from mixscope.analysis.bands import PROBLEM_BANDS, band_energies
from mixscope.analysis.spectral import average_spectrum, compute_spectrogram
from mixscope.dsp.signal import power_to_db
from mixscope.errors import check_choice
from mixscope.types import (
    SEVERITY_RANK,
    AnalysisConfig,
    AudioProblem,
    FrequencyBand,
    ProblemType,
    SampleBuffer,
    Severity,
)
from mixscope.utils.quantize import q

EXPECTED_PERCENTAGE = 100.0 / 6.0
SEVERITY_THRESHOLDS = (
    (2.5, Severity.SEVERE),
    (1.7, Severity.MODERATE),
    (1.3, Severity.MILD),
)
THIN_BAND = FrequencyBand("Bass", 60, 250, "Fundamental warmth")
# Boost range quoted in the thin recommendation
THIN_BOOST_RANGE = (100, 200)
DETECTION_ORDER = (
    ProblemType.MUDDY,
    ProblemType.HARSH,
    ProblemType.BOXY,
    ProblemType.THIN,
    ProblemType.NASAL,
    ProblemType.RUMBLE,
    ProblemType.SIBILANT,
)

_AMOUNT = {
    Severity.SEVERE: "4-6",
    Severity.MODERATE: "2-4",
    Severity.MILD: "1-2",
}


def severity_for_ratio(ratio: float) -> Severity:
    for limit, severity in SEVERITY_THRESHOLDS:
        if ratio >= limit:
            return severity
    return Severity.NONE


def problem_recommendation(
    problem: ProblemType,
    severity: Severity,
    min_hz: float,
    max_hz: float,
) -> str:
    if severity == Severity.NONE:
        return f"No {problem.value} issues detected."
    amount = _AMOUNT[severity]
    lo, hi = int(min_hz), int(max_hz)
    centre = int(round((min_hz + max_hz) / 2))
    templates = {
        ProblemType.MUDDY: (
            f"Cut {amount}dB around {lo}-{hi}Hz with a wide Q (0.5-1.0). "
            f"Consider high-pass filtering up to {lo}Hz."
        ),
        ProblemType.HARSH: (
            f"Apply dynamic EQ or de-esser at {centre}Hz. Cut {amount}dB with narrow Q (2-4). "
            "Consider multiband compression."
        ),
        ProblemType.BOXY: (
            f"Cut {amount}dB at {centre}Hz with moderate Q (1-2). "
            'This "cardboard box" resonance is common in untreated rooms.'
        ),
        ProblemType.THIN: (
            f"Boost {lo}-{hi}Hz by {amount}dB to add body. "
            "Consider harmonic saturation to enhance fundamentals."
        ),
        ProblemType.NASAL: (
            f"Cut {amount}dB around {centre}Hz with moderate Q (1.5-2.5). "
            'This "honky" quality masks clarity.'
        ),
        ProblemType.RUMBLE: (
            f"Apply high-pass filter at {hi}Hz with 18-24dB/octave slope. "
            "This removes unwanted low-frequency noise."
        ),
        ProblemType.SIBILANT: (
            f"Apply de-esser targeting {lo}-{hi}Hz. "
            'Start with 4-6dB reduction on "S" and "T" sounds.'
        ),
    }
    return templates[problem]


def problem_from_spectrum(
    spectrum: np.ndarray,
    problem: ProblemType | str,
    sample_rate: float,
    fft_size: int,
) -> AudioProblem:
    """
    Classify one problem from an averaged magnitude spectrum.

    Band share is measured against the energy of all bins. Excess problems
    compare the share with 100/6 percent; "thin" inverts the ratio over the
    60-250 Hz band and reports a negative excess.
    """
    problem = ProblemType(problem)
    if problem == ProblemType.THIN:
        band = THIN_BAND
    else:
        band = PROBLEM_BANDS[problem.value]
    (energy,) = band_energies(spectrum, sample_rate, fft_size, (band,), relative_to="spectrum")
    pct = energy.percentage
    if problem == ProblemType.THIN:
        ratio = EXPECTED_PERCENTAGE / (pct or 0.1)
        excess = -q((ratio - 1.0) * 100.0, 0.1)
        rec_range = THIN_BOOST_RANGE
    else:
        ratio = pct / EXPECTED_PERCENTAGE
        excess = q((ratio - 1.0) * 100.0, 0.1)
        rec_range = (band.min_hz, band.max_hz)
    severity = severity_for_ratio(ratio)
    return AudioProblem(
        type=problem,
        detected=severity != Severity.NONE,
        severity=severity,
        frequency_range=(float(band.min_hz), float(band.max_hz)),
        energy_db=q(energy.energy_db, 0.1),
        excess_percentage=excess,
        recommendation=problem_recommendation(problem, severity, *rec_range),
    )


def _average_spectrum(buffer: SampleBuffer, cfg: AnalysisConfig) -> np.ndarray:
    spec = compute_spectrogram(buffer, fft_size=cfg.fft_size, hop_size=cfg.hop_size)
    return average_spectrum(spec)


def detect_problem(
    buffer: SampleBuffer,
    problem: ProblemType | str,
    config: AnalysisConfig | None = None,
) -> AudioProblem:
    cfg = config or AnalysisConfig()
    check_choice("problem", str(getattr(problem, "value", problem)), [p.value for p in ProblemType])
    return problem_from_spectrum(
        _average_spectrum(buffer, cfg), problem, buffer.sample_rate, cfg.fft_size
    )


def overall_quality(problems: list[AudioProblem]) -> str:
    detected = [p for p in problems if p.detected]
    severe = sum(1 for p in detected if p.severity == Severity.SEVERE)
    moderate = sum(1 for p in detected if p.severity == Severity.MODERATE)
    if severe > 0 or len(detected) > 3:
        return "poor"
    if moderate > 1 or len(detected) > 2:
        return "fair"
    if detected:
        return "good"
    return "excellent"


def detect_all_problems(buffer: SampleBuffer, config: AnalysisConfig | None = None) -> dict:
    """Run every EQ problem check on one averaged spectrum."""
    cfg = config or AnalysisConfig()
    spectrum = _average_spectrum(buffer, cfg)
    problems = [
        problem_from_spectrum(spectrum, p, buffer.sample_rate, cfg.fft_size)
        for p in DETECTION_ORDER
    ]
    detected = sorted(
        (p for p in problems if p.detected),
        key=lambda p: -SEVERITY_RANK[p.severity],
    )
    return {
        "problems": problems,
        "overall_quality": overall_quality(problems),
        "prioritized_actions": [p.recommendation for p in detected],
        "total_energy_db": q(power_to_db(float(np.sum(spectrum ** 2))), 0.1),
    }
