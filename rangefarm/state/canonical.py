"""
Byte-exact encodings shared by farm ids, the state root and the op-log digest.

Everything here must be reproducible by an external indexer, so the helpers
refuse any input that has more than one plausible serialization.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any


ENCODING_VERSION = 1
_NAMESPACE = b"rangefarm"


def _check_json_value(value: Any, path: str = "$") -> None:
    if isinstance(value, float):
        raise TypeError(f"float at {path} has no canonical form")
    if isinstance(value, str):
        if any(0xD800 <= ord(ch) <= 0xDFFF for ch in value):
            raise TypeError(f"lone surrogate in string at {path}")
    elif isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise TypeError(f"non-string object key {key!r} at {path}")
            _check_json_value(key, path)
            _check_json_value(item, f"{path}.{key}")
    elif isinstance(value, (list, tuple)):
        for i, item in enumerate(value):
            _check_json_value(item, f"{path}[{i}]")


def canonical_json_bytes(value: Any) -> bytes:
    """
    UTF-8 JSON with sorted keys and no insignificant whitespace.

    Floats, NaN, non-string keys and lone surrogates raise TypeError.
    """
    _check_json_value(value)
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    return "0x" + hashlib.sha256(data).hexdigest()


def domain_sep_bytes(label: str, version: int = ENCODING_VERSION) -> bytes:
    """Prefix ``rangefarm:<label>:v<version>\\0`` keeping hash domains apart."""
    if not isinstance(label, str) or not label:
        raise TypeError("domain label must be a non-empty str")
    if not label.isascii() or "\x00" in label:
        raise ValueError(f"domain label {label!r} must be ASCII without NUL")
    if type(version) is not int or version < 1:
        raise ValueError(f"domain version must be an int >= 1, got {version!r}")
    return b":".join((_NAMESPACE, label.encode("ascii"), b"v%d" % version)) + b"\x00"


def encode_uvarint(value: int) -> bytes:
    """LEB128, seven bits per byte, low group first."""
    if type(value) is not int or value < 0:
        raise ValueError(f"uvarint must be a non-negative int, got {value!r}")
    groups = bytearray()
    while value >= 0x80:
        groups.append((value & 0x7F) | 0x80)
        value >>= 7
    groups.append(value)
    return bytes(groups)


def encode_svarint(value: int) -> bytes:
    """Zigzag-encoded signed varint (ticks can be negative)."""
    if type(value) is not int:
        raise ValueError(f"svarint must be an int, got {value!r}")
    return encode_uvarint(value * 2 if value >= 0 else -value * 2 - 1)


def encode_bytes(value: bytes) -> bytes:
    if not isinstance(value, (bytes, bytearray)):
        raise TypeError(f"expected bytes, got {type(value).__name__}")
    return encode_uvarint(len(value)) + bytes(value)


def encode_str(value: str) -> bytes:
    if not isinstance(value, str):
        raise TypeError(f"expected str, got {type(value).__name__}")
    return encode_bytes(value.encode("utf-8"))
