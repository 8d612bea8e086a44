"""Action-scoped nullifiers."""

from __future__ import annotations

from .config import FIELD_MODULUS
from .exceptions import InvalidNullifier
from .poseidon import poseidon_hash
from .types import require_id


class NullifierComputer:
    """
    nullifier = Poseidon(secret, group_id, context_id).

    Identifiers are lifted into the field as plain unsigned integers, the same
    encoding the ledger verifier uses for its public inputs.
    """

    def compute(self, secret: int, group_id: int, context_id: int) -> int:
        if isinstance(secret, bool) or not isinstance(secret, int):
            raise InvalidNullifier("secret must be an integer")
        if not 0 < secret < FIELD_MODULUS:
            raise InvalidNullifier("secret must be a non-zero field element")
        try:
            require_id(group_id, "group_id")
            require_id(context_id, "context_id")
        except (TypeError, ValueError) as exc:
            raise InvalidNullifier(str(exc)) from exc

        nullifier = poseidon_hash(secret, group_id, context_id)
        if nullifier == 0:
            raise InvalidNullifier("nullifier is zero")
        return nullifier
