from __future__ import annotations

from mixscope.utils.canonical_json import to_jsonable
from mixscope.utils.hashing import sha256_hex_canonical_json
from mixscope.utils.quantize import q_tree
from mixscope.version import __version__

SCHEMA_VERSION = "1.0"
VALUE_STEP = 1e-6


def build_report(
    result: dict,
    input_meta: dict,
    *,
    kind: str = "mix_analysis",
    config: dict | None = None,
    created_utc: str = "1970-01-01T00:00:00Z",
) -> dict:
    """
    Build a report dictionary with quantized values and an integrity hash.

    Args:
        result: Analyzer output (dicts, dataclasses, enums and numpy values allowed)
        input_meta: Input file metadata (path, sample rate, channels, hash)
        kind: Which analysis produced `result`
        config: Analysis configuration used
        created_utc: Creation timestamp; fixed by default so hashes are reproducible

    Returns:
        JSON-ready dict; integrity.report_hash_sha256 covers everything except
        the integrity object itself
    """
    report = {
        "schema_version": SCHEMA_VERSION,
        "kind": kind,
        "created_utc": created_utc,
        "engine": {"name": "mixscope", "version": __version__},
        "input": input_meta,
        "config": config or {},
        "result": result,
    }
    report = q_tree(to_jsonable(report), VALUE_STEP)
    report["integrity"] = {
        "report_hash_sha256": sha256_hex_canonical_json(report),
        "signed": False,
    }
    return report


def verify_report(report: dict) -> bool:
    """True when the stored hash matches the report contents."""
    body = {k: v for k, v in report.items() if k != "integrity"}
    stored = report.get("integrity", {}).get("report_hash_sha256")
    return stored == sha256_hex_canonical_json(body)
