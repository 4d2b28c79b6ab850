"""RMS/peak loudness measurement (not BS.1770)."""
from __future__ import annotations

import numpy as np

from mixscope.dsp.framing import frame_signal
from mixscope.dsp.signal import linear_to_db, peak, rms
from mixscope.types import AnalysisConfig, SampleBuffer
from mixscope.utils.quantize import q

RMS_GUARD = 0.0001


def analyze_loudness(buffer: SampleBuffer, config: AnalysisConfig | None = None) -> dict:
    """
    Frame-averaged RMS, sample peak, dynamic range and crest factor.

    rms_linear is the mean of per-frame RMS values of the mono downmix;
    it falls back to the whole-buffer RMS when no complete frame fits.
    peak_linear is taken over every raw sample, so peak >= rms holds.
    """
    cfg = config or AnalysisConfig()
    mono = buffer.to_mono()
    frames = frame_signal(mono, cfg.fft_size, cfg.hop_size)
    if frames.shape[0]:
        frame_rms = np.sqrt(np.mean(frames ** 2, axis=1))
        rms_linear = float(np.mean(frame_rms))
        rms_min, rms_max = float(np.min(frame_rms)), float(np.max(frame_rms))
    else:
        rms_linear = rms(mono)
        rms_min = rms_max = rms_linear
    peak_linear = peak(buffer.samples)
    # peak >= rms up to float rounding
    rms_linear = min(rms_linear, peak_linear)

    rms_db = linear_to_db(rms_linear)
    peak_db = linear_to_db(peak_linear)
    crest = peak_linear / (rms_linear or RMS_GUARD)
    return {
        "rms_db": q(rms_db, 0.1),
        "peak_db": q(peak_db, 0.1),
        "dynamic_range_db": q(peak_db - rms_db, 0.1),
        "crest_factor": q(crest, 0.01),
        "rms_linear": rms_linear,
        "peak_linear": peak_linear,
        "rms_min_linear": rms_min,
        "rms_max_linear": rms_max,
    }
