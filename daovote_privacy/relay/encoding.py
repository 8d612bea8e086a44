"""
Proof point and scalar encoding for the relay.

Big-endian (EIP-197) layout, the default:
    G1: be(X) || be(Y)
    G2: be(X.c1) || be(X.c0) || be(Y.c1) || be(Y.c0)

Legacy little-endian layout, for verifiers deployed before the switch:
    G1: le(X) || le(Y)
    G2: le(X.c0) || le(X.c1) || le(Y.c0) || le(Y.c1)

Scalars (roots, nullifiers, commitments) are 64-char big-endian hex in both.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple

from ..membership_protocol.config import FIELD_HEX_WIDTH
from ..membership_protocol.field import from_hex, to_hex64
from ..membership_protocol.types import G1Affine, G2Affine, Groth16Proof
from .constants import G1_HEX_CHARS, G2_HEX_CHARS
from .errors import EncodingError


class PointEncoding(str, Enum):
    BIG_ENDIAN = "be"
    LITTLE_ENDIAN = "le"


@dataclass(frozen=True)
class WireProof:
    a: str
    b: str
    c: str

    def to_json(self) -> Dict[str, str]:
        return {"a": self.a, "b": self.b, "c": self.c}


def encode_scalar(value: int) -> str:
    try:
        return to_hex64(value)
    except ValueError as exc:
        raise EncodingError(str(exc)) from exc


def decode_scalar(value: str) -> int:
    try:
        return from_hex(value)
    except (TypeError, ValueError) as exc:
        raise EncodingError(f"invalid scalar: {value!r}") from exc


def _coord(value: int, encoding: PointEncoding) -> str:
    encoded = encode_scalar(value)
    if encoding is PointEncoding.LITTLE_ENDIAN:
        return bytes.fromhex(encoded)[::-1].hex()
    return encoded


def _parse_coord(chunk: str, encoding: PointEncoding) -> int:
    raw = bytes.fromhex(chunk)
    if encoding is PointEncoding.LITTLE_ENDIAN:
        raw = raw[::-1]
    return int.from_bytes(raw, "big")


def encode_g1(point: G1Affine, encoding: PointEncoding = PointEncoding.BIG_ENDIAN) -> str:
    return _coord(point[0], encoding) + _coord(point[1], encoding)


def encode_g2(point: G2Affine, encoding: PointEncoding = PointEncoding.BIG_ENDIAN) -> str:
    (x0, x1), (y0, y1) = point
    if encoding is PointEncoding.LITTLE_ENDIAN:
        order = (x0, x1, y0, y1)
    else:
        order = (x1, x0, y1, y0)
    return "".join(_coord(value, encoding) for value in order)


def _chunks(value: str, expected: int, label: str) -> Tuple[str, ...]:
    text = value[2:] if value.lower().startswith("0x") else value
    if len(text) != expected:
        raise EncodingError(f"{label} must be {expected} hex chars, got {len(text)}")
    try:
        bytes.fromhex(text)
    except ValueError as exc:
        raise EncodingError(f"{label} is not hex") from exc
    return tuple(text[i:i + FIELD_HEX_WIDTH] for i in range(0, expected, FIELD_HEX_WIDTH))


def decode_g1(value: str, encoding: PointEncoding = PointEncoding.BIG_ENDIAN) -> G1Affine:
    x, y = _chunks(value, G1_HEX_CHARS, "G1 point")
    return (_parse_coord(x, encoding), _parse_coord(y, encoding))


def decode_g2(value: str, encoding: PointEncoding = PointEncoding.BIG_ENDIAN) -> G2Affine:
    first, second, third, fourth = (
        _parse_coord(chunk, encoding) for chunk in _chunks(value, G2_HEX_CHARS, "G2 point")
    )
    if encoding is PointEncoding.LITTLE_ENDIAN:
        return ((first, second), (third, fourth))
    return ((second, first), (fourth, third))


def encode_proof(proof: Groth16Proof, encoding: PointEncoding = PointEncoding.BIG_ENDIAN) -> WireProof:
    return WireProof(
        a=encode_g1(proof.a, encoding),
        b=encode_g2(proof.b, encoding),
        c=encode_g1(proof.c, encoding),
    )


def decode_proof(wire: WireProof, encoding: PointEncoding = PointEncoding.BIG_ENDIAN) -> Groth16Proof:
    return Groth16Proof(
        a=decode_g1(wire.a, encoding),
        b=decode_g2(wire.b, encoding),
        c=decode_g1(wire.c, encoding),
    )
