"""
Canonical JSON for reports and fingerprints.

Keys are sorted and output is UTF-8, so two runs over the same inputs render
byte-identical reports no matter which download finished first.
"""

from __future__ import annotations

from enum import Enum
from pathlib import PurePath
from typing import Any

import orjson


def _encode_extra(value: Any) -> Any:
    # Called by orjson for values it has no native encoding for
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, PurePath):
        return value.as_posix()
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    if isinstance(value, bytes):
        return value.hex()
    model_dump = getattr(value, "model_dump", None)
    if model_dump is not None:
        return model_dump(mode="json")
    raise TypeError(f"cannot encode {type(value).__name__} as JSON")


def canonical_json_bytes(obj: Any, *, indent: bool = False) -> bytes:
    """
    Serialize to canonical JSON bytes.

    Args:
        obj: Value to serialize; pydantic models, enums, paths and sets are
            accepted in addition to plain JSON types.
        indent: Pretty-print with two-space indentation.

    Returns:
        UTF-8 encoded JSON with sorted keys.

    Raises:
        TypeError: If a value cannot be encoded.
    """
    option = orjson.OPT_SORT_KEYS
    if indent:
        option |= orjson.OPT_INDENT_2
    return orjson.dumps(obj, default=_encode_extra, option=option)


def canonical_json_dumps(obj: Any, *, indent: bool = False) -> str:
    """
    Serialize to a canonical JSON string.

    Examples:
        >>> canonical_json_dumps({"uri": "https://e.com/a.tgz", "checksum": "sha256:ab"})
        '{"checksum":"sha256:ab","uri":"https://e.com/a.tgz"}'
    """
    return canonical_json_bytes(obj, indent=indent).decode("utf-8")


def canonical_json_loads(data: str | bytes) -> Any:
    """Parse JSON text, e.g. a GitHub API response."""
    return orjson.loads(data)
