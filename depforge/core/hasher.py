"""Canonical hashing helpers for desired-hash computation.

Desired hashes form a Merkle tree over the dependency graph: each one is
the digest of an artifact's own declared inputs plus the desired hashes of
its dependencies, serialized canonically so the result is stable across
runs and machines.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from typing import Any


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce deterministic canonical JSON bytes.

    - sorted keys
    - no whitespace separators (",", ":")
    - ensure_ascii=True
    - UTF-8 encoding
    """
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def content_digest(content: str | bytes) -> str:
    """SHA-256 of a single declared input (text is UTF-8 encoded)."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    return sha256_hex(content)


def compute_desired_hash(
    name: str,
    kind: str,
    inputs: Mapping[str, str | bytes],
    dependency_hashes: Mapping[str, str | None],
) -> str:
    """SHA-256 of canonical(name + kind + input digests + dependency hashes).

    ``inputs`` maps a stable label (usually a repo-relative path) to the
    input's content.  ``dependency_hashes`` maps dependency artifact names
    to their desired hashes; ``None`` is kept as ``null`` so an unhashed
    dependency still occupies its slot.  Key order of either mapping does
    not matter.
    """
    payload = {
        "name": name,
        "kind": kind,
        "inputs": {label: content_digest(content) for label, content in inputs.items()},
        "dependencies": dict(dependency_hashes),
    }
    return sha256_hex(canonical_json_bytes(payload))
