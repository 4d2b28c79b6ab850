"""Analysis configuration validation helpers."""
from __future__ import annotations
from typing import Any
import math

SECTIONS = ("analysis", "thresholds", "output")
SENSITIVITIES = ("low", "medium", "high")


def _is_number(v: Any) -> bool:
    return (
        isinstance(v, (int, float))
        and not isinstance(v, bool)
        and not math.isnan(v)
        and not math.isinf(v)
    )


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def validate_config_dict(j: dict) -> None:
    """Validate an analysis configuration document; raise ValueError listing every problem."""
    errors: list[str] = []

    def err(msg: str) -> None:
        errors.append(msg)

    if not isinstance(j, dict):
        raise ValueError("configuration must be a JSON object.")

    for k in j:
        if k not in SECTIONS and k != "profile":
            err(f"unknown key: {k}")
    for k in SECTIONS:
        if k in j and not isinstance(j[k], dict):
            err(f"{k} must be an object.")
    if errors:
        raise ValueError("; ".join(errors))

    analysis = j.get("analysis", {})
    sr = analysis.get("sample_rate", 44100)
    if not _is_int(sr) or not (8000 <= sr <= 192000):
        err("analysis.sample_rate must be an int between 8000 and 192000.")

    fft = analysis.get("fft_size", 2048)
    fft_ok = _is_int(fft) and 256 <= fft <= 16384 and (fft & (fft - 1)) == 0
    if not fft_ok:
        err(f"analysis.fft_size must be a power of two between 256 and 16384 (got {fft}).")

    hop = analysis.get("hop_size", 512)
    if not _is_int(hop) or hop < 1:
        err("analysis.hop_size must be a positive int.")
    elif fft_ok and hop > fft:
        err(f"analysis.hop_size must be between 1 and fft_size {fft} (got {hop}).")

    mel = analysis.get("num_mel_bands", 128)
    if not _is_int(mel) or not (1 <= mel <= 512):
        err("analysis.num_mel_bands must be an int between 1 and 512.")

    mfcc = analysis.get("num_mfcc", 13)
    if not _is_int(mfcc) or mfcc < 1:
        err("analysis.num_mfcc must be a positive int.")
    elif _is_int(mel) and mfcc > mel:
        err("analysis.num_mfcc must not exceed num_mel_bands.")

    thresholds = j.get("thresholds", {})
    clip = thresholds.get("clipping_threshold", 0.99)
    if not _is_number(clip) or not (0.5 <= clip <= 1.0):
        err("thresholds.clipping_threshold must be between 0.5 and 1.0.")

    quiet = thresholds.get("quiet_threshold_db", -40.0)
    if not _is_number(quiet) or not (-100.0 <= quiet <= 0.0):
        err("thresholds.quiet_threshold_db must be between -100 and 0.")

    target = thresholds.get("target_dynamic_range_db", 12.0)
    if not _is_number(target) or not (1.0 <= target <= 60.0):
        err("thresholds.target_dynamic_range_db must be between 1 and 60.")

    sens = thresholds.get("transient_sensitivity", "medium")
    if sens not in SENSITIVITIES:
        err("thresholds.transient_sensitivity must be one of low, medium, high.")

    out_dir = j.get("output", {}).get("output_dir")
    if out_dir is not None and (not isinstance(out_dir, str) or not out_dir):
        err("output.output_dir must be a non-empty string.")

    if errors:
        raise ValueError("; ".join(errors))
