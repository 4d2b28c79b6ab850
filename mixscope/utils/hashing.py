from __future__ import annotations
import hashlib

from mixscope.utils.canonical_json import canonical_dumps

CHUNK_SIZE = 1 << 16


def sha256_hex_canonical_json(obj) -> str:
    """SHA-256 of the canonical JSON encoding of obj."""
    return hashlib.sha256(canonical_dumps(obj).encode("utf-8")).hexdigest()


def sha256_hex_file(path: str) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        while True:
            chunk = f.read(CHUNK_SIZE)
            if not chunk:
                break
            digest.update(chunk)
    return digest.hexdigest()
