"""Clipping detection metrics."""
from __future__ import annotations

import math

import numpy as np

from mixscope.dsp.signal import linear_to_db, peak
from mixscope.errors import check_range
from mixscope.types import SampleBuffer
from mixscope.utils.quantize import q

DEFAULT_THRESHOLD = 0.99
# Runs of at least this many clipped samples count as one clip event
EVENT_RUN_LENGTH = 3


def _run_lengths(indices: np.ndarray) -> np.ndarray:
    if indices.size == 0:
        return np.array([], dtype=np.int64)
    gaps = np.flatnonzero(np.diff(indices) > 1)
    run_starts = np.concatenate(([0], gaps + 1))
    run_ends = np.concatenate((gaps, [indices.size - 1]))
    return indices[run_ends] - indices[run_starts] + 1


def clip_runs(x: np.ndarray, threshold: float) -> np.ndarray:
    """Lengths of consecutive runs with |x| >= threshold in a 1D signal."""
    x = np.asarray(x, dtype=np.float64)
    return _run_lengths(np.flatnonzero(np.abs(x) >= threshold))


def detect_clipping(buffer: SampleBuffer, threshold: float = DEFAULT_THRESHOLD) -> dict:
    """
    Count samples at or above threshold and runs of consecutive clips.

    Every raw sample of every channel is counted. Runs are measured per
    channel along time. Clipping is reported when more than 0.01% of the
    samples clip or there are more than 5 runs of 3+ samples.
    """
    check_range("threshold", threshold, 1e-6, 1.0)
    total = int(buffer.samples.size)
    clipped = int(np.count_nonzero(np.abs(buffer.samples) >= threshold))
    runs = np.concatenate(
        [clip_runs(buffer.channel(c), threshold) for c in range(buffer.channels)]
    )
    max_consecutive = int(np.max(runs)) if runs.size else 0
    events = int(np.count_nonzero(runs >= EVENT_RUN_LENGTH))
    pct = clipped / total * 100.0 if total else 0.0
    peak_value = peak(buffer.samples)
    peak_db = linear_to_db(peak_value)
    has_clipping = pct > 0.01 or events > 5

    if not has_clipping:
        rec = "No significant clipping detected. Headroom is adequate."
    elif pct > 1:
        reduce_by = max(1, math.ceil(peak_db))
        rec = (
            f"Severe clipping detected ({pct:.2f}%). Reduce input gain by at least "
            f"{reduce_by}dB. Re-record if possible."
        )
    elif events > 20:
        rec = f"Digital clipping detected with {events} clipped regions. Reduce input gain by 3-6dB."
    else:
        rec = "Minor clipping detected. Reduce input gain by 1-3dB or apply a limiter before the signal clips."

    return {
        "has_clipping": has_clipping,
        "clipped_samples": clipped,
        "total_samples": total,
        "clipping_percentage": q(pct, 0.001),
        "max_consecutive": max_consecutive,
        "consecutive_clips": events,
        "peak_value": q(peak_value, 0.001),
        "peak_db": q(peak_db, 0.1),
        "recommendation": rec,
    }
