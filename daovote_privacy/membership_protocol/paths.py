"""Authentication paths for a member's leaf."""

from __future__ import annotations

import logging

from .config import TREE_DEPTH, ZERO_LEAF
from .exceptions import MembershipRevoked, NotEligible, WitnessConstructionFailed
from .ledger import LedgerReader
from .merkle import compute_root, find_historical_path
from .types import MerklePath

logger = logging.getLogger(__name__)


class MerklePathProvider:
    def __init__(self, reader: LedgerReader, depth: int = TREE_DEPTH):
        self._reader = reader
        self.depth = depth

    async def path(self, group_id: int, leaf_index: int) -> MerklePath:
        """Current authentication path for ``leaf_index``. Pure read."""
        path = await self._reader.get_merkle_path(group_id, leaf_index)
        try:
            path.validate(depth=self.depth, leaf_index=leaf_index)
        except ValueError as exc:
            raise WitnessConstructionFailed(f"ledger returned a malformed path: {exc}") from exc
        return path

    async def path_for_root(
        self, group_id: int, leaf_index: int, commitment: int, root: int
    ) -> MerklePath:
        """
        Path for ``commitment`` at ``leaf_index`` that folds to ``root``.

        The current path is used when it matches. Otherwise the group's leaf
        sequence is replayed to find the tree state the root was taken from.

        Raises:
            MembershipRevoked: The member's leaf has been zeroed
            NotEligible: ``root`` predates the member's leaf or is unknown
        """
        current = await self.path(group_id, leaf_index)
        folded = compute_root(commitment, current)
        # A leaf's own path ignores its value, so check it still holds the commitment
        if folded == await self._reader.current_root(group_id) and folded == root:
            return current

        leaves = await self._reader.get_leaves(group_id)
        if leaf_index >= len(leaves):
            raise NotEligible(f"leaf {leaf_index} is not in the tree")
        if leaves[leaf_index] == ZERO_LEAF:
            raise MembershipRevoked(f"leaf {leaf_index} has been removed")
        if leaves[leaf_index] != commitment:
            raise NotEligible(f"leaf {leaf_index} holds a different commitment")

        logger.debug("replaying %d leaves of group %s for a historical root", len(leaves), group_id)
        historical = find_historical_path(leaves, leaf_index, root, depth=self.depth)
        if historical is None:
            raise NotEligible("root does not include this member")
        return historical
