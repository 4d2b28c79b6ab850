"""Stereo phase correlation, width and balance."""
from __future__ import annotations

import numpy as np

from mixscope.dsp.framing import block_signal
from mixscope.dsp.signal import DB_FLOOR, linear_to_db, mid_side, pearson, rms
from mixscope.types import SampleBuffer
from mixscope.utils.quantize import q

WINDOW_SECONDS = 0.1
PROBLEM_CORRELATION = 0.3
MAX_REGIONS = 10
WIDTH_GUARD = 0.0001


def windowed_correlation_coefficients(
    left: np.ndarray,
    right: np.ndarray,
    window_size: int,
) -> np.ndarray:
    """
    Pearson correlation of L/R over consecutive non-overlapping windows.

    Windows where both channels are identical give 1.0; windows where one
    channel has zero variance otherwise give 0.0.
    """
    lw = block_signal(np.asarray(left, dtype=np.float64), window_size)
    rw = block_signal(np.asarray(right, dtype=np.float64), window_size)
    if lw.shape[0] == 0:
        return np.array([], dtype=np.float64)
    lc = lw - np.mean(lw, axis=-1, keepdims=True)
    rc = rw - np.mean(rw, axis=-1, keepdims=True)
    numerator = np.sum(lc * rc, axis=-1)
    denom = np.sqrt(np.sum(lc ** 2, axis=-1) * np.sum(rc ** 2, axis=-1))
    corr = np.divide(
        numerator,
        denom,
        out=np.zeros_like(numerator, dtype=np.float64),
        where=denom > 0,
    )
    identical = np.all(lw == rw, axis=-1)
    corr[identical] = 1.0
    return np.clip(corr, -1.0, 1.0)


def mono_compatibility(correlation: float) -> str:
    if correlation > 0.8:
        return "excellent"
    if correlation > 0.5:
        return "good"
    if correlation > 0.0:
        return "fair"
    return "poor"


def analyze_phase_correlation(buffer: SampleBuffer) -> dict:
    if buffer.channels < 2:
        return {
            "correlation_coefficient": 1.0,
            "correlation_min": 1.0,
            "correlation_max": 1.0,
            "mono_compatibility": "excellent",
            "has_phase_issues": False,
            "problematic_regions": [],
            "recommendation": "Audio is mono - no phase issues possible.",
        }
    sr = buffer.sample_rate
    left, right = buffer.left, buffer.right
    overall = pearson(left, right)
    size = max(1, int(sr * WINDOW_SECONDS))
    corr = windowed_correlation_coefficients(left, right, size)
    if not np.any(left) or not np.any(right):
        return {
            "correlation_coefficient": q(overall, 0.001),
            "correlation_min": q(overall, 0.001),
            "correlation_max": q(overall, 0.001),
            "mono_compatibility": "excellent",
            "has_phase_issues": False,
            "problematic_regions": [],
            "recommendation": "One channel is silent - no phase cancellation possible in mono.",
        }
    # a window with one silent channel cannot cancel
    silent = ~np.any(block_signal(left, size), axis=-1) | ~np.any(block_signal(right, size), axis=-1)
    active = corr[~silent]
    regions = []
    for i in np.flatnonzero((corr < PROBLEM_CORRELATION) & ~silent).tolist():
        start = i * size
        regions.append({
            "start_ms": int(round(start / sr * 1000.0)),
            "end_ms": int(round((start + size) / sr * 1000.0)),
            "correlation": q(float(corr[i]), 0.01),
        })
    cmin = float(np.min(active)) if active.size else overall
    cmax = float(np.max(active)) if active.size else overall
    compat = mono_compatibility(overall)
    if compat == "excellent":
        rec = (
            f"Excellent mono compatibility (correlation: {overall:.2f}). "
            "Mix will translate well to mono systems."
        )
    elif compat == "good":
        rec = f"Good mono compatibility (correlation: {overall:.2f}). Some width may be lost in mono."
    elif compat == "fair":
        rec = (
            f"Fair mono compatibility (correlation: {overall:.2f}). Check critical elements in mono. "
            f"{len(regions)} problematic regions found."
        )
    else:
        rec = (
            f"Poor mono compatibility (correlation: {overall:.2f}). Significant phase cancellation "
            "likely in mono. Review stereo processing."
        )
    return {
        "correlation_coefficient": q(overall, 0.001),
        "correlation_min": q(cmin, 0.001),
        "correlation_max": q(cmax, 0.001),
        "mono_compatibility": compat,
        "has_phase_issues": bool(overall < 0.5 or cmin < 0),
        "problematic_regions": regions[:MAX_REGIONS],
        "recommendation": rec,
    }


def width_character(width_pct: float) -> str:
    if width_pct < 10:
        return "mono"
    if width_pct < 50:
        return "narrow"
    if width_pct < 120:
        return "normal"
    if width_pct < 180:
        return "wide"
    return "very-wide"


def analyze_stereo_width(buffer: SampleBuffer) -> dict:
    """Side/Mid RMS ratio as a percentage (0 = mono, ~100 = uncorrelated)."""
    if buffer.channels < 2:
        return {
            "width_percentage": 0.0,
            "side_mid_ratio": 0.0,
            "mid_rms_db": q(linear_to_db(rms(buffer.samples)), 0.1),
            "side_rms_db": DB_FLOOR,
            "width_character": "mono",
            "recommendation": "Audio is mono. Consider stereo enhancement if width is desired.",
        }
    mid, side = mid_side(buffer.left, buffer.right)
    mid_rms, side_rms = rms(mid), rms(side)
    ratio = side_rms / (mid_rms or WIDTH_GUARD)
    width = ratio * 100.0
    character = width_character(width)
    recs = {
        "mono": "Audio is effectively mono. Apply stereo widening, reverb, or delay for more width.",
        "narrow": f"Narrow stereo image ({width:.0f}%). Consider M/S EQ boost on sides or stereo widening.",
        "normal": (
            f"Normal stereo width ({width:.0f}%). Good balance between center focus and stereo spread."
        ),
        "wide": (
            f"Wide stereo image ({width:.0f}%). Check mono compatibility - some elements may "
            "disappear in mono."
        ),
        "very-wide": (
            f"Very wide stereo ({width:.0f}%). High risk of phase issues in mono. Consider narrowing "
            "or checking correlation."
        ),
    }
    return {
        "width_percentage": q(width, 0.1),
        "side_mid_ratio": q(ratio, 0.001),
        "mid_rms_db": q(linear_to_db(mid_rms), 0.1),
        "side_rms_db": q(linear_to_db(side_rms), 0.1),
        "width_character": character,
        "recommendation": recs[character],
    }


def analyze_stereo_balance(buffer: SampleBuffer) -> dict:
    """Left/right RMS difference; balance runs from -100 (left) to +100 (right)."""
    if buffer.channels < 2:
        level = q(linear_to_db(rms(buffer.samples)), 0.1)
        return {
            "balance_percentage": 0.0,
            "left_rms_db": level,
            "right_rms_db": level,
            "difference_db": 0.0,
            "is_balanced": True,
            "pan_direction": "center",
            "recommendation": "Audio is mono - perfectly balanced.",
        }
    left_rms, right_rms = rms(buffer.left), rms(buffer.right)
    left_db, right_db = linear_to_db(left_rms), linear_to_db(right_rms)
    diff = left_db - right_db
    total = left_rms + right_rms
    balance = (right_rms - left_rms) / total * 100.0 if total > 0 else 0.0
    balance = float(np.clip(balance, -100.0, 100.0))
    balanced = abs(diff) < 1.5
    if abs(diff) < 0.5:
        direction = "center"
    elif diff > 0:
        direction = "left"
    else:
        direction = "right"
    if balanced:
        rec = f"Stereo balance is good ({abs(diff):.1f}dB difference). Mix is well centered."
    elif abs(diff) < 3:
        rec = (
            f"Slight imbalance toward {direction} ({abs(diff):.1f}dB). "
            "May be intentional for artistic effect."
        )
    else:
        rec = (
            f"Significant imbalance toward {direction} ({abs(diff):.1f}dB). "
            "Review panning or check for recording issues."
        )
    return {
        "balance_percentage": q(balance, 0.1),
        "left_rms_db": q(left_db, 0.1),
        "right_rms_db": q(right_db, 0.1),
        "difference_db": q(diff, 0.1),
        "is_balanced": bool(balanced),
        "pan_direction": direction,
        "recommendation": rec,
    }


def analyze_stereo_field(buffer: SampleBuffer) -> dict:
    """Width, balance and phase with one combined recommendation."""
    width = analyze_stereo_width(buffer)
    balance = analyze_stereo_balance(buffer)
    phase = analyze_phase_correlation(buffer)
    is_stereo = buffer.channels >= 2
    issues = []
    if not is_stereo:
        issues.append("Audio is mono")
    else:
        if phase["has_phase_issues"]:
            issues.append("phase issues detected")
        if not balance["is_balanced"]:
            issues.append(f"imbalanced toward {balance['pan_direction']}")
        if width["width_character"] in ("mono", "narrow"):
            issues.append("narrow stereo image")
        if width["width_character"] == "very-wide":
            issues.append("very wide stereo may cause mono compatibility issues")
    if issues:
        rec = f"Stereo field concerns: {', '.join(issues)}. Review stereo processing."
    else:
        rec = "Stereo field is healthy. Good width, balance, and phase correlation."
    return {
        "width": width,
        "balance": balance,
        "phase": phase,
        "is_stereo": is_stereo,
        "recommendation": rec,
    }
