"""
microcred_core/canonical.py — Canonical JSON for journal hashing

Produces deterministic canonical JSON bytes (RFC 8785, via the ``jcs``
library) for hashing and signing journal entries. Two processes
journaling the same calls MUST produce byte-identical output.

Journal entries carry only strings, integers, booleans, null, lists and
objects. Values are checked against that space before serialization:
every quantity in the registry is an integer, so a float in a journal
entry is a bug upstream.

Reference: https://www.rfc-editor.org/rfc/rfc8785
"""

from __future__ import annotations

from typing import Any

import jcs

# IEEE 754 double safe-integer bound; larger ints do not survive a
# round-trip through other JSON implementations.
MAX_SAFE_INTEGER = 2**53


def canonicalize(obj: Any) -> bytes:
    """Serialize a JSON-compatible Python object to canonical JSON bytes.

    Raises:
        ValueError: If an integer exceeds the safe-integer range.
        TypeError:  If input contains floats, non-string keys or
                    non-JSON types.
    """
    _check_value(obj)
    return jcs.canonicalize(obj)


def is_safe_integer(value: Any) -> bool:
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and abs(value) <= MAX_SAFE_INTEGER
    )


def _check_value(value: Any) -> None:
    if value is None or isinstance(value, (bool, str)):
        return
    if isinstance(value, int):
        if not is_safe_integer(value):
            raise ValueError(
                f"Integer {value} exceeds the safe JSON integer range (2^53)"
            )
        return
    if isinstance(value, (list, tuple)):
        for item in value:
            _check_value(item)
        return
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise TypeError(
                    f"Dict key must be string, got {type(key).__name__}: {key!r}"
                )
            _check_value(item)
        return
    raise TypeError(
        f"Cannot canonicalize type {type(value).__name__}. "
        f"Journal values must be str, int, bool, None, list or dict."
    )
