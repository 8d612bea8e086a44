"""
Poseidon hash over the BN254 scalar field, compatible with circomlib.

The permutation follows circomlib's reference implementation: state
``[0, inputs...]``, x^5 S-box on every lane in full rounds and on lane 0 in
partial rounds, output ``state[0]``.

Round constants and the MDS matrix are produced with the Grain LFSR procedure
of the Poseidon reference parameter script. Deployments that ship the exact
constants used to compile their circuits (circomlibjs ``{"C": ..., "M": ...}``
layout) load them with ``PoseidonParams.from_circomlib_json`` and register them
with ``set_params`` so hashing here always matches the circuit.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Sequence, Tuple

from .config import (
    FIELD_BITS,
    FIELD_MODULUS,
    POSEIDON_FULL_ROUNDS,
    POSEIDON_MAX_INPUTS,
    POSEIDON_PARTIAL_ROUNDS,
    POSEIDON_SBOX_EXPONENT,
)
from .field import to_field

_PRIME_FIELD_TAG = 1
_SBOX_TAG = 0  # x^alpha

_registered: Dict[int, "PoseidonParams"] = {}


@dataclass(frozen=True)
class PoseidonParams:
    """Constants for one state width ``t``."""

    t: int
    full_rounds: int
    partial_rounds: int
    round_constants: Tuple[int, ...]
    mds: Tuple[Tuple[int, ...], ...]

    def validate(self) -> None:
        if self.t < 2:
            raise ValueError("state width must be at least 2")
        expected = (self.full_rounds + self.partial_rounds) * self.t
        if len(self.round_constants) != expected:
            raise ValueError(
                f"expected {expected} round constants, got {len(self.round_constants)}"
            )
        if len(self.mds) != self.t or any(len(row) != self.t for row in self.mds):
            raise ValueError("MDS matrix must be t x t")
        for value in self.round_constants:
            if not 0 <= value < FIELD_MODULUS:
                raise ValueError("round constant out of field range")

    @classmethod
    def generate(cls, t: int) -> "PoseidonParams":
        """Derive constants for width ``t`` with the Grain LFSR."""
        if t < 2 or t - 2 >= len(POSEIDON_PARTIAL_ROUNDS):
            raise ValueError(f"unsupported Poseidon width: {t}")
        full_rounds = POSEIDON_FULL_ROUNDS
        partial_rounds = POSEIDON_PARTIAL_ROUNDS[t - 2]
        grain = _GrainLFSR(FIELD_BITS, t, full_rounds, partial_rounds)

        round_constants = []
        for _ in range((full_rounds + partial_rounds) * t):
            value = grain.next_int(FIELD_BITS)
            while value >= FIELD_MODULUS:
                value = grain.next_int(FIELD_BITS)
            round_constants.append(value)

        mds = _cauchy_mds(grain, t)
        params = cls(
            t=t,
            full_rounds=full_rounds,
            partial_rounds=partial_rounds,
            round_constants=tuple(round_constants),
            mds=mds,
        )
        params.validate()
        return params

    @classmethod
    def from_circomlib_json(cls, path: str | Path, t: int) -> "PoseidonParams":
        """
        Load reference constants exported from circomlibjs.

        Args:
            path: JSON file with ``C`` (per-width constant lists) and ``M``
                (per-width matrices); index 0 corresponds to t = 2
            t: State width to extract

        Returns:
            Validated parameters for width ``t``
        """
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(payload, dict) or "C" not in payload or "M" not in payload:
            raise ValueError("constants file must contain 'C' and 'M'")
        index = t - 2
        try:
            constants = payload["C"][index]
            matrix = payload["M"][index]
        except (IndexError, TypeError) as exc:
            raise ValueError(f"constants file has no entry for t={t}") from exc
        params = cls(
            t=t,
            full_rounds=POSEIDON_FULL_ROUNDS,
            partial_rounds=POSEIDON_PARTIAL_ROUNDS[index],
            round_constants=tuple(to_field(value) for value in constants),
            mds=tuple(tuple(to_field(value) for value in row) for row in matrix),
        )
        params.validate()
        return params


class _GrainLFSR:
    """80-bit self-shrinking Grain LFSR seeded with the instance parameters."""

    def __init__(self, field_bits: int, t: int, full_rounds: int, partial_rounds: int):
        seed = (
            _bits(_PRIME_FIELD_TAG, 2)
            + _bits(_SBOX_TAG, 4)
            + _bits(field_bits, 12)
            + _bits(t, 12)
            + _bits(full_rounds, 10)
            + _bits(partial_rounds, 10)
            + [1] * 30
        )
        self._state = seed
        for _ in range(160):
            self._clock()

    def _clock(self) -> int:
        s = self._state
        bit = s[62] ^ s[51] ^ s[38] ^ s[23] ^ s[13] ^ s[0]
        s.pop(0)
        s.append(bit)
        return bit

    def next_bit(self) -> int:
        while True:
            keep = self._clock()
            bit = self._clock()
            if keep == 1:
                return bit

    def next_int(self, width: int) -> int:
        value = 0
        for _ in range(width):
            value = (value << 1) | self.next_bit()
        return value


def _bits(value: int, width: int) -> List[int]:
    return [int(ch) for ch in format(value, "b").zfill(width)]


def _cauchy_mds(grain: _GrainLFSR, t: int) -> Tuple[Tuple[int, ...], ...]:
    while True:
        values = [grain.next_int(FIELD_BITS) % FIELD_MODULUS for _ in range(2 * t)]
        if len(set(values)) == len(values):
            break
    xs, ys = values[:t], values[t:]
    return tuple(
        tuple(pow((x + y) % FIELD_MODULUS, -1, FIELD_MODULUS) for y in ys) for x in xs
    )


@lru_cache(maxsize=None)
def _generated_params(t: int) -> PoseidonParams:
    return PoseidonParams.generate(t)


def get_params(t: int) -> PoseidonParams:
    """Return registered constants for width ``t``, generating them if needed."""
    registered = _registered.get(t)
    if registered is not None:
        return registered
    return _generated_params(t)


def set_params(params: PoseidonParams | None, t: int | None = None) -> None:
    """
    Register reference constants for one width (or clear with ``None``).

    Args:
        params: Parameters to use for ``params.t``; None clears ``t``
        t: Width to clear when ``params`` is None
    """
    if params is None:
        if t is None:
            _registered.clear()
        else:
            _registered.pop(t, None)
        return
    params.validate()
    _registered[params.t] = params


def load_reference_constants(path: str | Path, widths: Iterable[int] = (3, 4)) -> None:
    """Register circomlibjs constants for each width in ``widths``."""
    for t in widths:
        set_params(PoseidonParams.from_circomlib_json(path, t))


def permute(params: PoseidonParams, state: Sequence[int]) -> List[int]:
    """Apply the Poseidon permutation to a full state of width ``params.t``."""
    t = params.t
    if len(state) != t:
        raise ValueError(f"state must have {t} elements")
    p = FIELD_MODULUS
    half_full = params.full_rounds // 2
    total_rounds = params.full_rounds + params.partial_rounds
    constants = params.round_constants
    mds = params.mds
    current = [value % p for value in state]

    for r in range(total_rounds):
        offset = r * t
        current = [(current[i] + constants[offset + i]) % p for i in range(t)]
        if r < half_full or r >= half_full + params.partial_rounds:
            current = [pow(value, POSEIDON_SBOX_EXPONENT, p) for value in current]
        else:
            current[0] = pow(current[0], POSEIDON_SBOX_EXPONENT, p)
        current = [
            sum(row[j] * current[j] for j in range(t)) % p for row in mds
        ]
    return current


def poseidon_hash(*inputs: int) -> int:
    """
    Hash 1..16 field elements with circomlib's Poseidon.

    Raises:
        ValueError: If an input is not a canonical field element or the
            arity is unsupported
    """
    if not 1 <= len(inputs) <= POSEIDON_MAX_INPUTS:
        raise ValueError(f"Poseidon accepts 1..{POSEIDON_MAX_INPUTS} inputs")
    for value in inputs:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError("Poseidon inputs must be integers")
        if not 0 <= value < FIELD_MODULUS:
            raise ValueError("Poseidon input is not a canonical field element")
    params = get_params(len(inputs) + 1)
    return permute(params, [0, *inputs])[0]
