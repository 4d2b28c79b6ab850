"""Noise floor and signal-to-noise estimation."""
from __future__ import annotations

import numpy as np

from mixscope.dsp.framing import block_signal
from mixscope.dsp.signal import block_rms_db, linear_to_db, peak, rms
from mixscope.types import SampleBuffer
from mixscope.utils.quantize import q

WINDOW_SECONDS = 0.1
LOWEST_FRACTION = 0.1
GATE_FLOOR_DB = -50.0
GATE_MARGIN_DB = 6.0


def window_levels_db(x: np.ndarray, sample_rate: float, window_seconds: float = WINDOW_SECONDS) -> np.ndarray:
    """RMS level (dB) of consecutive non-overlapping windows."""
    x = np.asarray(x, dtype=np.float64)
    size = max(1, int(sample_rate * window_seconds))
    blocks = block_signal(x, size)
    if blocks.shape[0] == 0 and x.size:
        blocks = x.reshape(1, -1)
    return block_rms_db(blocks)


def analyze_noise_floor(buffer: SampleBuffer, quiet_threshold_db: float = -40.0) -> dict:
    """
    Estimate the noise floor from 100 ms windows of the mono downmix.

    The floor is the mean level of windows quieter than quiet_threshold_db,
    or of the quietest 10% of windows when none qualify.
    """
    mono = buffer.to_mono()
    levels = window_levels_db(mono, buffer.sample_rate)
    signal_rms_db = linear_to_db(rms(mono))
    signal_peak_db = linear_to_db(peak(buffer.samples))
    if levels.size == 0:
        return {
            "noise_floor_db": -100.0,
            "signal_peak_db": q(signal_peak_db, 0.1),
            "signal_rms_db": q(signal_rms_db, 0.1),
            "signal_to_noise_db": 0.0,
            "quiet_section_count": 0,
            "suggest_gate": False,
            "gate_threshold_db": None,
            "recommendation": "Audio too short for noise floor analysis.",
        }

    quiet = levels[levels < quiet_threshold_db]
    if quiet.size:
        floor_db = float(np.mean(quiet))
    else:
        low_count = max(1, int(levels.size * LOWEST_FRACTION))
        floor_db = float(np.mean(np.sort(levels)[:low_count]))

    snr = signal_rms_db - floor_db
    suggest_gate = floor_db > GATE_FLOOR_DB
    gate_db = floor_db + GATE_MARGIN_DB if suggest_gate else None
    gate_text = f"{gate_db:.1f}dB" if gate_db is not None else "the noise floor plus 6dB"

    if snr > 60:
        rec = "Excellent signal-to-noise ratio. No noise reduction needed."
    elif snr > 40:
        rec = "Good signal-to-noise ratio. Minimal noise reduction may help in quiet passages."
    elif snr > 20:
        rec = (
            f"Moderate noise floor at {floor_db:.1f}dB. Consider using a noise gate at "
            f"{gate_text} or noise reduction processing."
        )
    else:
        rec = (
            f"High noise floor at {floor_db:.1f}dB. Apply noise reduction. "
            f"Use a gate at {gate_text} for spoken/sung sections."
        )
    return {
        "noise_floor_db": q(floor_db, 0.1),
        "signal_peak_db": q(signal_peak_db, 0.1),
        "signal_rms_db": q(signal_rms_db, 0.1),
        "signal_to_noise_db": q(snr, 0.1),
        "quiet_section_count": int(quiet.size),
        "suggest_gate": bool(suggest_gate),
        "gate_threshold_db": q(gate_db, 0.1) if gate_db is not None else None,
        "recommendation": rec,
    }
