"""
Common types for anonymous membership proofs.

This module provides:
1. Credentials - per-group member secrets and their public commitment
2. MerklePath - authentication path for one leaf
3. Actions - the vote and comment requests a member can make
4. Groth16Proof / VerificationKey - snarkjs-compatible proof material
5. ProofBundle / SubmissionOutcome - pipeline results
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from .config import FIELD_MODULUS, MAX_ID, TREE_DEPTH
from .field import require_field_element, to_field

G1Affine = Tuple[int, int]
# snarkjs order: ((x.c0, x.c1), (y.c0, y.c1))
G2Affine = Tuple[Tuple[int, int], Tuple[int, int]]


def require_id(value: int, name: str) -> int:
    """Validate a u64 ledger identifier."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be int")
    if value < 0 or value > MAX_ID:
        raise ValueError(f"{name} must fit in u64")
    return value


# ============================================================================
# CREDENTIALS
# ============================================================================


@dataclass(frozen=True)
class Credentials:
    """
    Per-(group, identity) membership credentials.

    ``secret`` and ``salt`` never leave the member's device. Only
    ``commitment`` is published to the ledger.

    Attributes:
        secret: Field element derived from the member's signature
        salt: Independent field element derived from the same signature
        commitment: Poseidon(secret, salt), the public tree leaf
        leaf_index: Position in the group tree, once registration is observed
    """

    secret: int = field(repr=False)
    salt: int = field(repr=False)
    commitment: int
    leaf_index: Optional[int] = None

    def validate(self) -> None:
        for name in ("secret", "salt", "commitment"):
            value = getattr(self, name)
            if not 0 < value < FIELD_MODULUS:
                raise ValueError(f"{name} must be a non-zero field element")
        if self.leaf_index is not None and self.leaf_index < 0:
            raise ValueError("leaf_index must be non-negative")

    def with_leaf_index(self, leaf_index: int) -> "Credentials":
        return Credentials(
            secret=self.secret,
            salt=self.salt,
            commitment=self.commitment,
            leaf_index=leaf_index,
        )

    def to_record(self) -> Dict[str, Any]:
        """Local persistence record (never sent over the network)."""
        return {
            "secret": str(self.secret),
            "salt": str(self.salt),
            "commitment": str(self.commitment),
            "leafIndex": self.leaf_index,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Credentials":
        leaf_index = record.get("leafIndex")
        creds = cls(
            secret=require_field_element(record["secret"], "secret"),
            salt=require_field_element(record["salt"], "salt"),
            commitment=require_field_element(record["commitment"], "commitment"),
            leaf_index=None if leaf_index is None else int(leaf_index),
        )
        creds.validate()
        return creds


# ============================================================================
# MERKLE PATH
# ============================================================================


@dataclass(frozen=True)
class MerklePath:
    """
    Authentication path from a leaf to the root.

    ``path_indices[i] == 0`` means the node at level ``i`` is the left child.
    """

    path_elements: Tuple[int, ...]
    path_indices: Tuple[int, ...]

    @property
    def depth(self) -> int:
        return len(self.path_elements)

    def validate(self, depth: int = TREE_DEPTH, leaf_index: Optional[int] = None) -> None:
        if len(self.path_elements) != depth or len(self.path_indices) != depth:
            raise ValueError(
                f"path must have depth {depth}, got "
                f"{len(self.path_elements)}/{len(self.path_indices)}"
            )
        for bit in self.path_indices:
            if bit not in (0, 1):
                raise ValueError("path indices must be 0 or 1")
        for element in self.path_elements:
            if not 0 <= element < FIELD_MODULUS:
                raise ValueError("path element out of field range")
        if leaf_index is not None:
            if self.leaf_index() != leaf_index:
                raise ValueError("path indices do not match the leaf index")

    def leaf_index(self) -> int:
        return sum(bit << level for level, bit in enumerate(self.path_indices))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Sequence[Any]]) -> "MerklePath":
        return cls(
            path_elements=tuple(to_field(value) for value in data["pathElements"]),
            path_indices=tuple(int(value) for value in data["pathIndices"]),
        )

    def to_mapping(self) -> Dict[str, Any]:
        return {
            "pathElements": [str(value) for value in self.path_elements],
            "pathIndices": list(self.path_indices),
        }


# ============================================================================
# ACTIONS
# ============================================================================


class EligibilityPolicy(str, Enum):
    """How the eligibility root of an action context is chosen."""

    SNAPSHOT = "snapshot"  # root pinned when the context was created
    LIVE = "live"  # current root at proof time


class ActionKind(str, Enum):
    VOTE = "vote"
    COMMENT = "comment"

    @property
    def single_use(self) -> bool:
        return self is ActionKind.VOTE


class Phase(str, Enum):
    """Progress markers reported while an action runs."""

    DERIVING = "deriving"
    PATH = "path"
    NULLIFIER = "nullifier"
    PROVING = "proving"
    VERIFYING = "verifying"
    SUBMITTING = "submitting"


@dataclass(frozen=True)
class VoteAction:
    """A single-use yes/no vote on a proposal."""

    group_id: int
    proposal_id: int
    choice: bool
    policy: EligibilityPolicy = EligibilityPolicy.SNAPSHOT
    pinned_root: Optional[int] = None

    kind = ActionKind.VOTE

    @property
    def context_id(self) -> int:
        return self.proposal_id

    @property
    def payload(self) -> int:
        return 1 if self.choice else 0

    def validate(self) -> None:
        require_id(self.group_id, "group_id")
        require_id(self.proposal_id, "proposal_id")
        if not isinstance(self.choice, bool):
            raise TypeError("choice must be bool")
        _validate_policy(self.policy, self.pinned_root)


@dataclass(frozen=True)
class CommentAction:
    """A multi-use anonymous comment on a proposal."""

    group_id: int
    proposal_id: int
    content_cid: str
    parent_id: Optional[int] = None
    policy: EligibilityPolicy = EligibilityPolicy.LIVE
    pinned_root: Optional[int] = None

    kind = ActionKind.COMMENT

    @property
    def context_id(self) -> int:
        return self.proposal_id

    @property
    def payload(self) -> int:
        # The comment circuit reserves the payload slot; it is always zero.
        return 0

    def validate(self) -> None:
        require_id(self.group_id, "group_id")
        require_id(self.proposal_id, "proposal_id")
        if not isinstance(self.content_cid, str) or not self.content_cid:
            raise ValueError("content_cid must be a non-empty string")
        if self.parent_id is not None:
            require_id(self.parent_id, "parent_id")
        _validate_policy(self.policy, self.pinned_root)


def _validate_policy(policy: EligibilityPolicy, pinned_root: Optional[int]) -> None:
    if not isinstance(policy, EligibilityPolicy):
        raise TypeError("policy must be EligibilityPolicy")
    if policy is EligibilityPolicy.SNAPSHOT:
        if pinned_root is None:
            raise ValueError("snapshot policy requires a pinned root")
        require_field_element(pinned_root, "pinned_root")


# ============================================================================
# GROTH16
# ============================================================================


@dataclass(frozen=True)
class Groth16Proof:
    """Groth16 proof points in snarkjs affine convention."""

    a: G1Affine
    b: G2Affine
    c: G1Affine

    @classmethod
    def from_snarkjs(cls, data: Mapping[str, Any]) -> "Groth16Proof":
        """Parse a snarkjs ``proof.json`` object (projective, z = 1)."""
        try:
            pi_a = data["pi_a"]
            pi_b = data["pi_b"]
            pi_c = data["pi_c"]
            a = (to_field_base(pi_a[0]), to_field_base(pi_a[1]))
            b = (
                (to_field_base(pi_b[0][0]), to_field_base(pi_b[0][1])),
                (to_field_base(pi_b[1][0]), to_field_base(pi_b[1][1])),
            )
            c = (to_field_base(pi_c[0]), to_field_base(pi_c[1]))
        except (KeyError, IndexError, TypeError) as exc:
            raise ValueError("malformed snarkjs proof") from exc
        return cls(a=a, b=b, c=c)

    def to_snarkjs(self) -> Dict[str, Any]:
        return {
            "pi_a": [str(self.a[0]), str(self.a[1]), "1"],
            "pi_b": [
                [str(self.b[0][0]), str(self.b[0][1])],
                [str(self.b[1][0]), str(self.b[1][1])],
                ["1", "0"],
            ],
            "pi_c": [str(self.c[0]), str(self.c[1]), "1"],
            "protocol": "groth16",
            "curve": "bn128",
        }


@dataclass(frozen=True)
class VerificationKey:
    """Groth16 verification key (snarkjs ``verification_key.json``)."""

    alpha: G1Affine
    beta: G2Affine
    gamma: G2Affine
    delta: G2Affine
    ic: Tuple[G1Affine, ...]

    @property
    def n_public(self) -> int:
        return len(self.ic) - 1

    @classmethod
    def from_snarkjs(cls, data: Mapping[str, Any]) -> "VerificationKey":
        try:
            if data.get("protocol", "groth16") != "groth16":
                raise ValueError("verification key is not groth16")
            key = cls(
                alpha=_g1(data["vk_alpha_1"]),
                beta=_g2(data["vk_beta_2"]),
                gamma=_g2(data["vk_gamma_2"]),
                delta=_g2(data["vk_delta_2"]),
                ic=tuple(_g1(point) for point in data["IC"]),
            )
        except (KeyError, IndexError, TypeError) as exc:
            raise ValueError("malformed verification key") from exc
        n_public = data.get("nPublic")
        if n_public is not None and int(n_public) != key.n_public:
            raise ValueError("nPublic does not match IC length")
        return key

    def to_snarkjs(self) -> Dict[str, Any]:
        return {
            "protocol": "groth16",
            "curve": "bn128",
            "nPublic": self.n_public,
            "vk_alpha_1": [str(self.alpha[0]), str(self.alpha[1]), "1"],
            "vk_beta_2": _g2_json(self.beta),
            "vk_gamma_2": _g2_json(self.gamma),
            "vk_delta_2": _g2_json(self.delta),
            "IC": [[str(x), str(y), "1"] for x, y in self.ic],
        }


def to_field_base(value: Any) -> int:
    """Parse a decimal/hex coordinate without reducing it."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.lower().startswith("0x"):
            return int(text[2:], 16)
        return int(text, 10)
    raise TypeError("coordinate must be int or str")


def _g1(point: Sequence[Any]) -> G1Affine:
    return (to_field_base(point[0]), to_field_base(point[1]))


def _g2(point: Sequence[Sequence[Any]]) -> G2Affine:
    return (
        (to_field_base(point[0][0]), to_field_base(point[0][1])),
        (to_field_base(point[1][0]), to_field_base(point[1][1])),
    )


def _g2_json(point: G2Affine) -> list:
    return [
        [str(point[0][0]), str(point[0][1])],
        [str(point[1][0]), str(point[1][1])],
        ["1", "0"],
    ]


# ============================================================================
# RESULTS
# ============================================================================


@dataclass(frozen=True)
class ProofBundle:
    """A locally verified proof ready for submission. Never reused."""

    proof: Groth16Proof
    public_signals: Tuple[int, ...]
    circuit: str
    public_names: Tuple[str, ...]

    def signal(self, name: str) -> int:
        return self.public_signals[self.public_names.index(name)]


class SubmissionStatus(str, Enum):
    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"  # the nullifier was already spent before this submission
    RECONCILED = "reconciled"  # an ambiguous earlier attempt of ours was recorded


@dataclass(frozen=True)
class SubmissionOutcome:
    status: SubmissionStatus
    nullifier: int
    tx_hash: Optional[str] = None
    detail: Optional[str] = None
    attempts: int = 1

    @property
    def recorded(self) -> bool:
        return self.status in (SubmissionStatus.ACCEPTED, SubmissionStatus.RECONCILED)
