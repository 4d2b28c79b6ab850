from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from mixscope.types import Severity
from mixscope.utils.canonical_json import canonical_dumps, to_jsonable
from mixscope.utils.hashing import sha256_hex_canonical_json, sha256_hex_file
from mixscope.utils.quantize import q, q_tree


def test_canonical_dumps_is_deterministic():
    obj = {"b": 1, "a": 2, "nested": {"z": 1, "y": 2}}
    assert canonical_dumps(obj) == '{"a":2,"b":1,"nested":{"y":2,"z":1}}'


def test_sha256_hex_canonical_json_matches_order():
    obj1 = {"b": 1, "a": 2}
    obj2 = {"a": 2, "b": 1}
    assert sha256_hex_canonical_json(obj1) == sha256_hex_canonical_json(obj2)


def test_sha256_hex_file(tmp_path):
    path = tmp_path / "blob.bin"
    data = bytes(range(256)) * 1000
    path.write_bytes(data)
    assert sha256_hex_file(str(path)) == hashlib.sha256(data).hexdigest()


def test_quantize_rounding():
    assert q(1.234, 0.01) == 1.23
    assert q(1.235, 0.01) == 1.24
    assert q(-1.235, 0.01) == -1.24
    assert q(-9.03, 0.1) == -9.0


def test_quantize_never_returns_negative_zero():
    out = q(-0.04, 0.1)
    assert out == 0.0
    assert str(out) == "0.0"


def test_q_tree_handles_nested_values():
    tree = {"a": [0.123456789, float("inf")], "b": (True, 3), "c": np.float32(0.5), "d": "text"}
    assert q_tree(tree, 0.001) == {"a": [0.123, None], "b": [True, 3], "c": 0.5, "d": "text"}


def test_to_jsonable_converts_library_types():
    @dataclass(frozen=True)
    class Point:
        x: float
        tag: Severity

    out = to_jsonable({
        "point": Point(1.0, Severity.SEVERE),
        "arr": np.arange(3),
        "n": np.int64(4),
        "path": Path("a") / "b.wav",
    })
    assert out == {
        "point": {"x": 1.0, "tag": "severe"},
        "arr": [0, 1, 2],
        "n": 4,
        "path": str(Path("a") / "b.wav"),
    }
