"""Tests for canonical hashing and desired-hash computation."""

from __future__ import annotations

import hashlib

from depforge.core.hasher import (
    canonical_json_bytes,
    compute_desired_hash,
    content_digest,
    sha256_hex,
)


class TestCanonicalJson:
    def test_sorted_and_compact(self):
        assert canonical_json_bytes({"b": 1, "a": [1, 2]}) == b'{"a":[1,2],"b":1}'

    def test_key_order_does_not_matter(self):
        assert canonical_json_bytes({"x": 1, "y": 2}) == canonical_json_bytes({"y": 2, "x": 1})

    def test_non_ascii_escaped(self):
        assert canonical_json_bytes({"k": "é"}) == b'{"k":"\\u00e9"}'


class TestDigests:
    def test_sha256_hex(self):
        assert sha256_hex(b"abc") == hashlib.sha256(b"abc").hexdigest()

    def test_text_and_bytes_agree(self):
        assert content_digest("FROM riju:base\n") == content_digest(b"FROM riju:base\n")


class TestComputeDesiredHash:
    def _hash(self, **overrides):
        args = {
            "name": "image:runtime",
            "kind": "image",
            "inputs": {"docker/runtime/Dockerfile": "FROM riju:base\n"},
            "dependency_hashes": {"image:base": "a" * 64},
        }
        args.update(overrides)
        return compute_desired_hash(**args)

    def test_deterministic(self):
        assert self._hash() == self._hash()
        assert len(self._hash()) == 64

    def test_input_change_changes_hash(self):
        changed = self._hash(inputs={"docker/runtime/Dockerfile": "FROM riju:base\nRUN x\n"})
        assert changed != self._hash()

    def test_dependency_change_changes_hash(self):
        assert self._hash(dependency_hashes={"image:base": "b" * 64}) != self._hash()

    def test_name_is_part_of_hash(self):
        assert self._hash(name="image:app") != self._hash()

    def test_unhashed_dependency_keeps_its_slot(self):
        with_none = self._hash(dependency_hashes={"image:base": None})
        without = self._hash(dependency_hashes={})
        assert with_none != without

    def test_mapping_order_irrelevant(self):
        a = self._hash(inputs={"a": "1", "b": "2"}, dependency_hashes={"x": "1", "y": "2"})
        b = self._hash(inputs={"b": "2", "a": "1"}, dependency_hashes={"y": "2", "x": "1"})
        assert a == b
