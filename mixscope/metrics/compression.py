"""Compression need assessment from windowed RMS statistics."""
from __future__ import annotations

import numpy as np

from mixscope.dsp.framing import block_signal
from mixscope.dsp.signal import linear_to_db, peak, rms
from mixscope.types import SampleBuffer
from mixscope.utils.quantize import q

WINDOW_SECONDS = 0.1
DEFAULT_TARGET_DB = 12.0
ATTACK_MS = 10
RELEASE_MS = 100


def percentile_range_db(x: np.ndarray, sample_rate: float, fallback: tuple[float, float]) -> tuple[float, float]:
    """
    10th and 90th percentile of non-silent 100 ms window levels.

    Percentiles index the sorted levels at floor(n * p); fallback values
    are used when there are no windows.
    """
    size = max(1, int(sample_rate * WINDOW_SECONDS))
    blocks = block_signal(np.asarray(x, dtype=np.float64), size)
    levels = np.sqrt(np.mean(blocks ** 2, axis=1)) if blocks.shape[0] else np.zeros(0)
    levels = levels[levels > 0]
    if levels.size == 0:
        return fallback
    db = np.sort(20.0 * np.log10(levels))
    p10 = float(db[int(db.size * 0.1)])
    p90 = float(db[min(int(db.size * 0.9), db.size - 1)])
    return p10, p90


def suggested_settings(range_db: float, target_db: float, peak_db: float, rms_db: float) -> dict:
    reduction = range_db - target_db
    if reduction > 12:
        ratio = "8:1"
    elif reduction > 8:
        ratio = "4:1"
    elif reduction > 4:
        ratio = "3:1"
    else:
        ratio = "2:1"
    return {
        "ratio": ratio,
        "threshold_db": q(rms_db + (peak_db - rms_db) / 2.0, 0.1),
        "attack_ms": ATTACK_MS,
        "release_ms": RELEASE_MS,
        "makeup_gain_db": q(max(0.0, reduction / 2.0), 0.1),
    }


def compression_urgency(range_db: float, target_db: float) -> str:
    if range_db > target_db + 12:
        return "essential"
    if range_db > target_db + 6:
        return "recommended"
    if range_db > target_db:
        return "optional"
    return "none"


def assess_compression(buffer: SampleBuffer, target_dynamic_range_db: float = DEFAULT_TARGET_DB) -> dict:
    """Compare the p90-p10 window level spread with a target dynamic range."""
    mono = buffer.to_mono()
    peak_lin = peak(buffer.samples)
    rms_lin = rms(mono)
    peak_db = linear_to_db(peak_lin)
    rms_db = linear_to_db(rms_lin)
    p10, p90 = percentile_range_db(mono, buffer.sample_rate, (rms_db, peak_db))
    range_db = p90 - p10
    urgency = compression_urgency(range_db, target_dynamic_range_db)
    settings = suggested_settings(range_db, target_dynamic_range_db, peak_db, rms_db)

    if urgency == "none":
        rec = (
            f"Dynamic range ({range_db:.1f}dB) is within target ({target_dynamic_range_db:g}dB). "
            "Compression is optional for character only."
        )
    else:
        lead = {
            "essential": "Compression is essential to control dynamics.",
            "recommended": "Compression is recommended for consistency.",
            "optional": "Light compression may help with consistency.",
        }[urgency]
        rec = (
            f"Dynamic range is {range_db:.1f}dB (target: {target_dynamic_range_db:g}dB). {lead} "
            f"Try: {settings['ratio']} ratio, {settings['threshold_db']}dB threshold, "
            f"{settings['attack_ms']}ms attack, {settings['release_ms']}ms release."
        )
    return {
        "dynamic_range_db": q(range_db, 0.1),
        "percentile_10_db": q(p10, 0.1),
        "percentile_90_db": q(p90, 0.1),
        "peak_to_average_ratio": q(peak_lin / (rms_lin or 0.0001), 0.01),
        "crest_factor_db": q(peak_db - rms_db, 0.1),
        "needs_compression": urgency != "none",
        "compression_urgency": urgency,
        "suggested_settings": settings,
        "recommendation": rec,
    }
