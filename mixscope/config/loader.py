from __future__ import annotations
import json
import os
from pathlib import Path

from mixscope.config.validator import validate_config_dict
from mixscope.types import AnalysisConfig

WORKDIR_ENV = "MIXSCOPE_WORKDIR"


def workdir() -> Path:
    """Base directory for default outputs ($MIXSCOPE_WORKDIR or the current directory)."""
    return Path(os.environ.get(WORKDIR_ENV) or Path.cwd()).expanduser().resolve()


def config_from_dict(j: dict) -> AnalysisConfig:
    """Build an AnalysisConfig from a validated document; missing keys keep defaults."""
    validate_config_dict(j)
    defaults = AnalysisConfig()
    analysis = j.get("analysis", {})
    thresholds = j.get("thresholds", {})
    output = j.get("output", {})
    return AnalysisConfig(
        sample_rate=int(analysis.get("sample_rate", defaults.sample_rate)),
        fft_size=int(analysis.get("fft_size", defaults.fft_size)),
        hop_size=int(analysis.get("hop_size", defaults.hop_size)),
        num_mel_bands=int(analysis.get("num_mel_bands", defaults.num_mel_bands)),
        num_mfcc=int(analysis.get("num_mfcc", defaults.num_mfcc)),
        clipping_threshold=float(thresholds.get("clipping_threshold", defaults.clipping_threshold)),
        quiet_threshold_db=float(thresholds.get("quiet_threshold_db", defaults.quiet_threshold_db)),
        target_dynamic_range_db=float(
            thresholds.get("target_dynamic_range_db", defaults.target_dynamic_range_db)
        ),
        transient_sensitivity=str(
            thresholds.get("transient_sensitivity", defaults.transient_sensitivity)
        ),
        output_dir=output.get("output_dir", defaults.output_dir),
    )


def load_config(path: str) -> AnalysisConfig:
    """
    Load an analysis configuration from a JSON file.

    Args:
        path: Path to a JSON document with optional "analysis",
            "thresholds" and "output" sections

    Returns:
        AnalysisConfig with every missing value at its default
    """
    with open(path, "r", encoding="utf-8") as f:
        j = json.load(f)
    return config_from_dict(j)
