"""Groth16 verification over BN254 (snarkjs conventions) using py_ecc."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

from py_ecc.optimized_bn128 import (
    FQ,
    FQ2,
    FQ12,
    Z1,
    add,
    b,
    b2,
    curve_order,
    field_modulus,
    final_exponentiate,
    is_inf,
    is_on_curve,
    multiply,
    neg,
    normalize,
    pairing,
)

from ..types import G1Affine, G2Affine, Groth16Proof, VerificationKey

logger = logging.getLogger(__name__)


def g1_from_affine(point: G1Affine):
    x, y = point
    if not (0 <= x < field_modulus and 0 <= y < field_modulus):
        raise ValueError("G1 coordinate out of range")
    if x == 0 and y == 0:
        return Z1
    p = (FQ(x), FQ(y), FQ.one())
    if not is_on_curve(p, b):
        raise ValueError("G1 point not on curve")
    return p


def g2_from_affine(point: G2Affine):
    (x0, x1), (y0, y1) = point
    for value in (x0, x1, y0, y1):
        if not 0 <= value < field_modulus:
            raise ValueError("G2 coordinate out of range")
    p = (FQ2([x0, x1]), FQ2([y0, y1]), FQ2.one())
    if not is_on_curve(p, b2):
        raise ValueError("G2 point not on curve")
    # G2 has a cofactor: reject points outside the prime-order subgroup
    if not is_inf(multiply(p, curve_order)):
        raise ValueError("G2 point not in subgroup")
    return p


def g1_to_affine(point) -> G1Affine:
    x, y = normalize(point)
    return (_int(x), _int(y))


def g2_to_affine(point) -> G2Affine:
    x, y = normalize(point)
    return (
        (_int(x.coeffs[0]), _int(x.coeffs[1])),
        (_int(y.coeffs[0]), _int(y.coeffs[1])),
    )


def _int(value: Any) -> int:
    if isinstance(value, int):
        return value
    return int(value.n)


class Groth16Verifier:
    """
    Verify ``e(A, B) == e(alpha, beta) * e(vk_x, gamma) * e(C, delta)``.

    ``verify`` never raises on malformed input; it returns False.
    """

    def verify(
        self,
        vk: VerificationKey,
        proof: Groth16Proof,
        public_signals: Sequence[int],
    ) -> bool:
        try:
            return self._verify(vk, proof, public_signals)
        except (ValueError, TypeError, ArithmeticError, AssertionError) as exc:
            logger.debug("groth16 verification rejected input: %s", exc)
            return False

    def _verify(
        self,
        vk: VerificationKey,
        proof: Groth16Proof,
        public_signals: Sequence[int],
    ) -> bool:
        if len(public_signals) != vk.n_public:
            return False
        for signal in public_signals:
            if isinstance(signal, bool) or not isinstance(signal, int):
                return False
            if not 0 <= signal < curve_order:
                return False

        a = g1_from_affine(proof.a)
        b_point = g2_from_affine(proof.b)
        c = g1_from_affine(proof.c)

        vk_x = g1_from_affine(vk.ic[0])
        for signal, ic in zip(public_signals, vk.ic[1:]):
            vk_x = add(vk_x, multiply(g1_from_affine(ic), signal))

        alpha = g1_from_affine(vk.alpha)
        beta = g2_from_affine(vk.beta)
        gamma = g2_from_affine(vk.gamma)
        delta = g2_from_affine(vk.delta)

        product = (
            pairing(b_point, neg(a), final_exponentiate=False)
            * pairing(beta, alpha, final_exponentiate=False)
            * pairing(gamma, vk_x, final_exponentiate=False)
            * pairing(delta, c, final_exponentiate=False)
        )
        return final_exponentiate(product) == FQ12.one()


def verify_snarkjs_files(
    vkey_path: str | Path,
    proof_path: str | Path,
    public_path: str | Path,
    verifier: Optional[Groth16Verifier] = None,
) -> bool:
    """Verify snarkjs JSON files. Returns False for unreadable input."""
    try:
        vk = VerificationKey.from_snarkjs(_read_json(vkey_path))
        proof = Groth16Proof.from_snarkjs(_read_json(proof_path))
        public = [int(value) for value in _read_json(public_path)]
    except (OSError, ValueError, TypeError):
        return False
    return (verifier or Groth16Verifier()).verify(vk, proof, public)


def _read_json(path: str | Path) -> Mapping[str, Any] | list:
    return json.loads(Path(path).read_text(encoding="utf-8"))
