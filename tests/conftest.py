from __future__ import annotations

import json
import sys
from pathlib import Path

import numpy as np

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from mixscope.types import SampleBuffer  # noqa: E402

SR = 44100


def sine(freq: float, seconds: float = 1.0, sr: int = SR, amp: float = 0.5) -> np.ndarray:
    t = np.arange(int(sr * seconds), dtype=np.float64) / sr
    return amp * np.sin(2.0 * np.pi * freq * t)


def white_noise(seconds: float = 1.0, sr: int = SR, amp: float = 0.1, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return amp * rng.standard_normal(int(sr * seconds))


def mono_buffer(x: np.ndarray, sr: int = SR) -> SampleBuffer:
    return SampleBuffer(samples=np.asarray(x, dtype=np.float64), sample_rate=sr, channels=1)


def stereo_buffer(left: np.ndarray, right: np.ndarray, sr: int = SR) -> SampleBuffer:
    return SampleBuffer.from_channels(np.column_stack([left, right]), sr)


def build_config_dict(
    *,
    analysis: dict | None = None,
    thresholds: dict | None = None,
    output: dict | None = None,
) -> dict:
    return {
        "analysis": {
            "sample_rate": 44100,
            "fft_size": 2048,
            "hop_size": 512,
            "num_mel_bands": 64,
            "num_mfcc": 13,
            **(analysis or {}),
        },
        "thresholds": {
            "clipping_threshold": 0.99,
            "quiet_threshold_db": -40.0,
            "target_dynamic_range_db": 12.0,
            "transient_sensitivity": "medium",
            **(thresholds or {}),
        },
        "output": dict(output or {}),
    }


def write_config(tmp_path: Path, config: dict) -> Path:
    path = tmp_path / "analysis.config.json"
    path.write_text(json.dumps(config), encoding="utf-8")
    return path
