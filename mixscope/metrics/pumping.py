"""Compression pumping (envelope level swings) detection."""
from __future__ import annotations

import numpy as np

from mixscope.dsp.framing import block_signal
from mixscope.dsp.signal import envelope_follower, linear_to_db_array
from mixscope.types import SampleBuffer, Severity
from mixscope.utils.quantize import q

ENVELOPE_ATTACK_MS = 10.0
ENVELOPE_RELEASE_MS = 100.0
WINDOW_SECONDS = 0.5
MIN_WINDOWS = 4
SWING_DB = 3.0
ENVELOPE_BLOCK_SECONDS = 0.001


def pumping_severity(rate: float, max_swing: float, has_pumping: bool) -> Severity:
    if not has_pumping:
        return Severity.NONE
    if max_swing > 8 and rate > 1:
        return Severity.SEVERE
    if max_swing > 6 or rate > 0.8:
        return Severity.MODERATE
    return Severity.MILD


def detect_pumping(buffer: SampleBuffer) -> dict:
    """
    Count >3 dB level swings between consecutive 500 ms envelope windows.

    Pumping is reported when swings happen more than 0.5 times per second
    and the largest swing exceeds 4 dB.
    """
    sr = buffer.sample_rate
    mono = buffer.to_mono()
    size = max(1, int(sr * WINDOW_SECONDS))
    if mono.size // size < MIN_WINDOWS:
        return {
            "has_pumping": False,
            "severity": Severity.NONE,
            "pumping_rate_hz": 0.0,
            "modulation_depth_db": 0.0,
            "fluctuation_count": 0,
            "recommendation": "Audio too short for pumping analysis.",
        }
    envelope = envelope_follower(
        mono, sr, ENVELOPE_ATTACK_MS, ENVELOPE_RELEASE_MS,
        block_size=max(1, int(sr * ENVELOPE_BLOCK_SECONDS)),
    )
    levels = linear_to_db_array(np.mean(block_signal(envelope, size), axis=1))
    swings = np.abs(np.diff(levels))
    big = swings[swings > SWING_DB]
    count = int(big.size)
    max_swing = float(np.max(big)) if count else 0.0
    rate = count / (mono.size / sr)
    has = rate > 0.5 and max_swing > 4
    severity = pumping_severity(rate, max_swing, has)

    if not has:
        rec = "No compression pumping detected. Dynamics processing sounds natural."
    elif severity == Severity.SEVERE:
        rec = (
            f"Severe pumping detected ({max_swing:.1f}dB swings). Increase release time, "
            "raise threshold, or reduce ratio."
        )
    elif severity == Severity.MODERATE:
        rec = (
            "Moderate pumping detected. Try longer release time or lower ratio. "
            "Consider parallel compression instead."
        )
    else:
        rec = "Mild pumping detected. Fine-tune release time to match tempo for more natural sound."
    return {
        "has_pumping": bool(has),
        "severity": severity,
        "pumping_rate_hz": q(rate, 0.01),
        "modulation_depth_db": q(max_swing, 0.1),
        "fluctuation_count": count,
        "recommendation": rec,
    }
