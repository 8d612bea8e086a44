"""Tests for relay proof encoding."""

from __future__ import annotations

import pytest

from daovote_privacy.membership_protocol.types import Groth16Proof
from daovote_privacy.relay.encoding import (
    PointEncoding,
    decode_g2,
    decode_proof,
    decode_scalar,
    encode_g1,
    encode_g2,
    encode_proof,
    encode_scalar,
)
from daovote_privacy.relay.errors import EncodingError, WireFormatError

PROOF = Groth16Proof(
    a=(1, 2),
    b=((3, 4), (5, 6)),
    c=(7, 8),
)


def _be(value: int) -> str:
    return format(value, "064x")


def _le(value: int) -> str:
    return value.to_bytes(32, "little").hex()


def test_scalar_is_64_char_big_endian():
    assert encode_scalar(0xABC) == "0" * 61 + "abc"
    assert decode_scalar("0x" + encode_scalar(99)) == 99


def test_scalar_too_large():
    with pytest.raises(EncodingError):
        encode_scalar(1 << 256)
    with pytest.raises(WireFormatError):
        decode_scalar("zz")


def test_big_endian_layout():
    assert encode_g1(PROOF.a) == _be(1) + _be(2)
    # EIP-197: imaginary coefficient first
    assert encode_g2(PROOF.b) == _be(4) + _be(3) + _be(6) + _be(5)


def test_little_endian_layout():
    assert encode_g1(PROOF.a, PointEncoding.LITTLE_ENDIAN) == _le(1) + _le(2)
    assert encode_g2(PROOF.b, PointEncoding.LITTLE_ENDIAN) == _le(3) + _le(4) + _le(5) + _le(6)


@pytest.mark.parametrize("encoding", list(PointEncoding))
def test_proof_decodes_to_original(encoding):
    wire = encode_proof(PROOF, encoding)
    assert len(wire.a) == 128 and len(wire.b) == 256 and len(wire.c) == 128
    assert decode_proof(wire, encoding) == PROOF


def test_encodings_are_not_interchangeable():
    wire = encode_proof(PROOF, PointEncoding.BIG_ENDIAN)
    assert decode_proof(wire, PointEncoding.LITTLE_ENDIAN) != PROOF


def test_wire_json_keys():
    assert set(encode_proof(PROOF).to_json()) == {"a", "b", "c"}


def test_decode_rejects_bad_input():
    with pytest.raises(EncodingError):
        decode_g2("00" * 10)
    with pytest.raises(EncodingError):
        decode_g2("zz" * 128)
    assert decode_g2("0x" + encode_g2(PROOF.b)) == PROOF.b
