#!/usr/bin/env python3
"""
Unit tests for governance/canonical_json.py and governance/hashing.py

Tests deterministic JSON serialization:
- Key sorting (recursive)
- Decimal and Enum handling
- NaN/Infinity rejection
- List preservation (no reordering)
- Canonical hashes
"""

import json
from decimal import Decimal

import pytest

from common.types import FocusHexagram
from governance.canonical_json import canonical_dumps
from governance.hashing import hash_bytes, hash_canonical_json, hash_canonical_json_short


class TestCanonicalDumps:
    """Tests for canonical_dumps."""

    def test_dict_key_sorting(self):
        result = canonical_dumps({"zebra": 1, "apple": 2, "middle": 3})
        assert result.index('"apple"') < result.index('"middle"') < result.index('"zebra"')

    def test_nested_dict_sorting(self):
        result = canonical_dumps({"outer_z": {"b": 1, "a": 2}, "outer_a": {}})
        assert result.index('"outer_a"') < result.index('"outer_z"')
        assert result.index('"a"') < result.index('"b"')

    def test_list_order_preserved(self):
        assert json.loads(canonical_dumps([3, 1, 2])) == [3, 1, 2]

    def test_decimal_as_exact_string(self):
        assert json.loads(canonical_dumps({"w": Decimal("0.350")})) == {"w": "0.350"}

    def test_enum_as_value(self):
        assert json.loads(canonical_dumps({"focus": FocusHexagram.MUTUAL})) == {"focus": "mutual"}

    def test_tuple_as_list(self):
        assert json.loads(canonical_dumps({"moving": (2, 5)})) == {"moving": [2, 5]}

    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), Decimal("NaN")])
    def test_non_finite_rejected(self, bad):
        with pytest.raises(ValueError):
            canonical_dumps({"x": bad})

    def test_unknown_type_rejected(self):
        with pytest.raises(TypeError):
            canonical_dumps({"x": object()})

    def test_trailing_newline(self):
        assert canonical_dumps({}).endswith("\n")
        assert canonical_dumps({"a": 1}, indent=None) == '{"a":1}\n'

    def test_unicode_preserved(self):
        assert "乾" in canonical_dumps({"name": "乾"})


class TestHashing:
    """Tests for canonical JSON hashing."""

    def test_hash_bytes(self):
        assert hash_bytes(b"") == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"

    def test_key_order_irrelevant(self):
        assert hash_canonical_json({"a": 1, "b": [1, 2]}) == hash_canonical_json({"b": [1, 2], "a": 1})

    def test_decimal_digits_matter(self):
        assert hash_canonical_json({"w": Decimal("0.5")}) != hash_canonical_json({"w": Decimal("0.50")})

    def test_short(self):
        full = hash_canonical_json({"a": 1})
        assert hash_canonical_json_short({"a": 1}) == full[:16]
        assert len(full) == 64
