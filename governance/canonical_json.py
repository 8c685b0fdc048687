"""
Canonical JSON Serialization

Produces byte-identical JSON output for identical input data structures.

Rules:
1. All dict keys sorted recursively
2. Decimals written as strings (weights keep their exact digits)
3. Enums written as their value, tuples as lists
4. NaN and Inf are forbidden (raise ValueError)
5. Lists are NOT reordered (caller must sort semantic lists)
6. Output ends with trailing newline
"""

import json
import math
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


def _canonicalize(obj: Any) -> Any:
    """Recursively canonicalize data structures."""
    if isinstance(obj, dict):
        return {str(k): _canonicalize(v) for k, v in sorted(obj.items(), key=lambda kv: str(kv[0]))}
    if isinstance(obj, (list, tuple)):
        return [_canonicalize(item) for item in obj]
    if isinstance(obj, Enum):
        return _canonicalize(obj.value)
    if isinstance(obj, Decimal):
        if not obj.is_finite():
            raise ValueError(f"Non-finite Decimal not allowed in canonical JSON: {obj}")
        return str(obj)
    if isinstance(obj, float):
        if math.isnan(obj) or math.isinf(obj):
            raise ValueError(f"Non-finite float not allowed in canonical JSON: {obj}")
        return obj
    if isinstance(obj, (int, str, bool, type(None))):
        return obj
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonical_dumps(
    obj: Any,
    indent: Optional[int] = 2,
    ensure_ascii: bool = False,
) -> str:
    """
    Serialize object to canonical JSON string.

    Args:
        obj: Object to serialize
        indent: Indentation level (None for compact)
        ensure_ascii: If True, escape non-ASCII characters

    Returns:
        Canonical JSON string with trailing newline

    Raises:
        ValueError: If obj contains NaN or Inf
        TypeError: If obj contains non-serializable types
    """
    result = json.dumps(
        _canonicalize(obj),
        indent=indent,
        sort_keys=True,
        ensure_ascii=ensure_ascii,
        allow_nan=False,
        separators=(',', ': ') if indent else (',', ':'),
    )
    return result + '\n'
