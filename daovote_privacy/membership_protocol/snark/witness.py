"""Circuit schemas and witness construction."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from ..config import FIELD_MODULUS, TREE_DEPTH
from ..exceptions import WitnessConstructionFailed
from ..merkle import compute_root
from ..poseidon import poseidon_hash
from ..types import MerklePath


@dataclass(frozen=True)
class CircuitSchema:
    """Fixed public-signal order of one circuit version."""

    name: str
    version: int
    public_names: Tuple[str, ...]

    @property
    def n_public(self) -> int:
        return len(self.public_names)

    @property
    def exposes_commitment(self) -> bool:
        return "commitment" in self.public_names


VOTE_SCHEMA = CircuitSchema(
    name="vote",
    version=1,
    public_names=("root", "nullifier", "daoId", "proposalId", "voteChoice"),
)

COMMENT_SCHEMA = CircuitSchema(
    name="comment",
    version=1,
    public_names=("root", "nullifier", "daoId", "proposalId", "voteChoice", "commitment"),
)


@dataclass(frozen=True)
class PrivateWitness:
    secret: int = field(repr=False)
    salt: int = field(repr=False)
    path: MerklePath


@dataclass(frozen=True)
class PublicInputs:
    root: int
    nullifier: int
    group_id: int
    context_id: int
    payload: int
    commitment: Optional[int] = None

    def values(self) -> Dict[str, Optional[int]]:
        return {
            "root": self.root,
            "nullifier": self.nullifier,
            "daoId": self.group_id,
            "proposalId": self.context_id,
            "voteChoice": self.payload,
            "commitment": self.commitment,
        }


def public_signals_for(schema: CircuitSchema, public: PublicInputs) -> Tuple[int, ...]:
    """Public inputs in the circuit's declared order."""
    values = public.values()
    signals = []
    for name in schema.public_names:
        value = values[name]
        if value is None:
            raise WitnessConstructionFailed(f"{schema.name} circuit requires '{name}'")
        if not 0 <= value < FIELD_MODULUS:
            raise WitnessConstructionFailed(f"public input '{name}' is not a field element")
        signals.append(value)
    return tuple(signals)


def build_witness(
    schema: CircuitSchema,
    private: PrivateWitness,
    public: PublicInputs,
    depth: int = TREE_DEPTH,
) -> Dict[str, Any]:
    """
    Build the snarkjs input object and check it satisfies the circuit relations.

    Raises:
        WitnessConstructionFailed: On dimension or range errors, or when the
            inputs could not satisfy the circuit (wrong root or nullifier)
    """
    try:
        private.path.validate(depth=depth)
    except ValueError as exc:
        raise WitnessConstructionFailed(f"invalid Merkle path: {exc}") from exc
    for name, value in (("secret", private.secret), ("salt", private.salt)):
        if not 0 < value < FIELD_MODULUS:
            raise WitnessConstructionFailed(f"{name} is not a non-zero field element")
    if public.payload not in (0, 1):
        raise WitnessConstructionFailed("payload must be 0 or 1")

    signals = public_signals_for(schema, public)

    commitment = poseidon_hash(private.secret, private.salt)
    if public.commitment is not None and public.commitment != commitment:
        raise WitnessConstructionFailed("public commitment does not match the secret")
    if compute_root(commitment, private.path) != public.root:
        raise WitnessConstructionFailed("Merkle path does not fold to the eligibility root")
    expected_nullifier = poseidon_hash(private.secret, public.group_id, public.context_id)
    if expected_nullifier != public.nullifier:
        raise WitnessConstructionFailed("nullifier does not match the secret and context")

    witness: Dict[str, Any] = {
        name: str(value) for name, value in zip(schema.public_names, signals)
    }
    witness.update({
        "secret": str(private.secret),
        "salt": str(private.salt),
        "pathElements": [str(value) for value in private.path.path_elements],
        "pathIndices": [int(bit) for bit in private.path.path_indices],
    })
    return witness
