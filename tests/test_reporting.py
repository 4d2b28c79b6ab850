from __future__ import annotations

import json

import numpy as np

from mixscope.reporting.report import SCHEMA_VERSION, build_report, verify_report
from mixscope.types import AnalysisConfig, Severity
from mixscope.utils.canonical_json import to_jsonable


def _result() -> dict:
    return {
        "rms_db": -12.3456789012,
        "severity": Severity.MILD,
        "flux": np.array([0.1, 0.2]),
        "ratio": float("nan"),
        "has_clipping": np.bool_(False),
        "range": (200.0, 400.0),
    }


def test_report_structure_and_quantization():
    report = build_report(_result(), {"path": "mix.wav"}, config=to_jsonable(AnalysisConfig()))
    assert report["schema_version"] == SCHEMA_VERSION
    assert report["kind"] == "mix_analysis"
    assert report["engine"]["name"] == "mixscope"
    result = report["result"]
    assert result["rms_db"] == -12.345679
    assert result["severity"] == "mild"
    assert result["flux"] == [0.1, 0.2]
    assert result["ratio"] is None
    assert result["has_clipping"] is False
    assert result["range"] == [200.0, 400.0]
    assert report["config"]["fft_size"] == 2048
    assert report["integrity"]["signed"] is False
    json.dumps(report, allow_nan=False)


def test_report_hash_is_reproducible():
    a = build_report(_result(), {"path": "mix.wav"})
    b = build_report(_result(), {"path": "mix.wav"})
    assert a["integrity"]["report_hash_sha256"] == b["integrity"]["report_hash_sha256"]
    c = build_report(_result(), {"path": "other.wav"})
    assert a["integrity"]["report_hash_sha256"] != c["integrity"]["report_hash_sha256"]


def test_verify_report_detects_tampering():
    report = build_report(_result(), {"path": "mix.wav"}, kind="dynamics")
    assert verify_report(report)
    report["result"]["rms_db"] = 0.0
    assert not verify_report(report)
