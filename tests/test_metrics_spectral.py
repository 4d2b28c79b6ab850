from __future__ import annotations

import numpy as np

from mixscope.metrics.masking import analyze_masking, coefficient_frequency_range
from mixscope.metrics.timbre import analyze_brightness, analyze_harshness
from tests.conftest import mono_buffer, sine, white_noise


def test_brightness_trend():
    bright = analyze_brightness(mono_buffer(sine(8000.0)))
    assert bright["trend"] == "bright"
    assert abs(bright["centroid_hz"] - 8000.0) < 200.0
    assert bright["recommendation"].startswith("Audio is bright")
    warm = analyze_brightness(mono_buffer(sine(200.0)))
    assert warm["trend"] == "warm"
    assert warm["min_hz"] <= warm["centroid_hz"] <= warm["max_hz"]


def test_brightness_short_buffer():
    out = analyze_brightness(mono_buffer(np.zeros(100)))
    assert out["centroid_hz"] == 0.0
    assert out["trend"] == "neutral"


def test_harshness_tone_vs_noise():
    smooth = analyze_harshness(mono_buffer(sine(1000.0)))
    assert smooth["harshness_trend"] == "smooth"
    assert smooth["harsh_frequencies"] == []
    harsh = analyze_harshness(mono_buffer(white_noise(amp=0.5)))
    assert harsh["harshness_trend"] == "harsh"
    assert harsh["harsh_frequencies"] == [2500, 3000, 3500, 4000]
    assert len(harsh["flux_values"]) == 82


def test_harshness_single_frame_has_no_flux():
    out = analyze_harshness(mono_buffer(np.zeros(2048)))
    assert out["flux_values"] == []
    assert out["harshness_trend"] == "smooth"


def test_coefficient_frequency_ranges_are_contiguous():
    ranges = [coefficient_frequency_range(i, 44100, 13) for i in range(13)]
    assert ranges[0][0] == 0
    assert ranges[-1][1] == 22050
    for (_, hi), (lo, _) in zip(ranges, ranges[1:]):
        assert hi == lo


def test_masking_on_static_tone():
    out = analyze_masking(mono_buffer(sine(1000.0)))
    assert len(out["coefficient_variances"]) == 13
    assert out["overall_masking_risk"] == "high"
    assert all(m["coefficient"] >= 1 for m in out["potential_masking"])
    assert out["recommendation"].startswith("Potential frequency masking")


def test_masking_short_buffer():
    out = analyze_masking(mono_buffer(np.zeros(100)))
    assert out["potential_masking"] == []
    assert out["overall_masking_risk"] == "low"
