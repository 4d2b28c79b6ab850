from __future__ import annotations

import numpy as np
import pytest

from mixscope.errors import ParameterError
from mixscope.metrics.eq_problems import (
    DETECTION_ORDER,
    detect_all_problems,
    detect_problem,
    overall_quality,
    problem_from_spectrum,
    severity_for_ratio,
)
from mixscope.types import AudioProblem, ProblemType, Severity
from tests.conftest import mono_buffer, sine

FFT = 2048
SR = 44100


def _spectrum_with_energy(lo_hz: float, hi_hz: float) -> np.ndarray:
    freqs = np.arange(FFT // 2) * SR / FFT
    return np.where((freqs >= lo_hz) & (freqs < hi_hz), 1.0, 0.0)


def test_severity_for_ratio_thresholds():
    assert severity_for_ratio(1.0) == Severity.NONE
    assert severity_for_ratio(1.3) == Severity.MILD
    assert severity_for_ratio(1.69) == Severity.MILD
    assert severity_for_ratio(1.7) == Severity.MODERATE
    assert severity_for_ratio(2.5) == Severity.SEVERE


def test_muddy_spectrum_is_severe():
    problem = problem_from_spectrum(_spectrum_with_energy(200, 400), "muddy", SR, FFT)
    assert problem.type == ProblemType.MUDDY
    assert problem.detected
    assert problem.severity == Severity.SEVERE
    assert problem.excess_percentage == 500.0
    assert problem.frequency_range == (200.0, 400.0)
    assert "Cut 4-6dB around 200-400Hz" in problem.recommendation


def test_thin_reports_negative_excess():
    problem = problem_from_spectrum(_spectrum_with_energy(900, 1100), ProblemType.THIN, SR, FFT)
    assert problem.detected
    assert problem.severity == Severity.SEVERE
    assert problem.excess_percentage < 0
    assert problem.frequency_range == (60.0, 250.0)
    assert "Boost 100-200Hz" in problem.recommendation


def test_undetected_problem_recommendation():
    problem = problem_from_spectrum(_spectrum_with_energy(900, 1100), "rumble", SR, FFT)
    assert not problem.detected
    assert problem.recommendation == "No rumble issues detected."


def test_rumble_recommends_high_pass_at_band_top():
    problem = problem_from_spectrum(_spectrum_with_energy(20, 80), "rumble", SR, FFT)
    assert "high-pass filter at 80Hz" in problem.recommendation


def test_overall_quality():
    def problem(severity):
        return AudioProblem(
            ProblemType.MUDDY, severity != Severity.NONE, severity, (200.0, 400.0), -10.0, 0.0, ""
        )

    assert overall_quality([problem(Severity.NONE)]) == "excellent"
    assert overall_quality([problem(Severity.MILD)]) == "good"
    assert overall_quality([problem(Severity.MODERATE)] * 2) == "fair"
    assert overall_quality([problem(Severity.SEVERE)]) == "poor"
    assert overall_quality([problem(Severity.MILD)] * 4) == "poor"


def test_detect_all_problems_on_low_mid_tone():
    out = detect_all_problems(mono_buffer(sine(300.0)))
    assert [p.type for p in out["problems"]] == list(DETECTION_ORDER)
    muddy = out["problems"][0]
    assert muddy.detected and muddy.severity == Severity.SEVERE
    assert out["overall_quality"] == "poor"
    assert out["prioritized_actions"]
    assert out["prioritized_actions"][0].startswith("Cut 4-6dB")


def test_detect_problem_validates_name():
    with pytest.raises(ParameterError):
        detect_problem(mono_buffer(sine(300.0)), "tinny")
    problem = detect_problem(mono_buffer(sine(300.0)), "muddy")
    assert problem.severity == Severity.SEVERE
