"""BN254 scalar-field helpers."""

from __future__ import annotations

import hashlib
from typing import Union

from .config import FIELD_HEX_WIDTH, FIELD_MODULUS

FieldLike = Union[int, str, bytes]


def to_field(value: FieldLike) -> int:
    """
    Reduce an integer, decimal/hex string, or big-endian bytes into the field.

    Args:
        value: Value to reduce

    Returns:
        Integer in [0, FIELD_MODULUS)
    """
    if isinstance(value, bool):
        raise TypeError("bool is not a field element")
    if isinstance(value, int):
        return value % FIELD_MODULUS
    if isinstance(value, (bytes, bytearray)):
        return int.from_bytes(bytes(value), "big") % FIELD_MODULUS
    if isinstance(value, str):
        return _parse_int(value) % FIELD_MODULUS
    raise TypeError(f"cannot convert {type(value).__name__} to a field element")


def require_field_element(value: FieldLike, name: str = "value") -> int:
    """Parse ``value`` and fail unless it is already canonical (< r)."""
    if isinstance(value, bool):
        raise TypeError(f"{name} must not be bool")
    if isinstance(value, (bytes, bytearray)):
        parsed = int.from_bytes(bytes(value), "big")
    elif isinstance(value, str):
        parsed = _parse_int(value)
    elif isinstance(value, int):
        parsed = value
    else:
        raise TypeError(f"{name} must be int, str or bytes")
    if parsed < 0 or parsed >= FIELD_MODULUS:
        raise ValueError(f"{name} is not a canonical field element")
    return parsed


def hash_to_field(domain: bytes, data: bytes) -> int:
    """SHA-256(domain || data) interpreted big-endian, reduced mod r."""
    digest = hashlib.sha256(domain + data).digest()
    return int.from_bytes(digest, "big") % FIELD_MODULUS


def to_hex64(value: int) -> str:
    """Encode a non-negative integer as fixed-width big-endian hex (no prefix)."""
    if value < 0:
        raise ValueError("negative values cannot be encoded")
    encoded = format(value, "x")
    if len(encoded) > FIELD_HEX_WIDTH:
        raise ValueError("value does not fit in 32 bytes")
    return encoded.rjust(FIELD_HEX_WIDTH, "0")


def from_hex(value: str) -> int:
    """Decode a hex string with or without ``0x`` prefix."""
    if not isinstance(value, str):
        raise TypeError("hex value must be a string")
    stripped = value[2:] if value.lower().startswith("0x") else value
    if not stripped:
        raise ValueError("empty hex value")
    return int(stripped, 16)


def _parse_int(value: str) -> int:
    text = value.strip()
    if text.lower().startswith("0x"):
        return int(text[2:], 16)
    return int(text, 10)
