"""
Ledger interfaces for the membership tree, and an in-memory ledger.

The in-memory ledger mirrors the membership-tree contract (fixed-depth
incremental tree, bounded root history, zeroed leaves on removal) together
with the voting contract's per-context nullifier sets. It can inject the
failures seen against a real network: indexer read lag after a write and
stale account sequences.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Protocol, Set, Tuple

import trio

from .config import MAX_ROOT_HISTORY, TREE_DEPTH, ZERO_LEAF
from .exceptions import CapabilityRefused, CommitmentExists, LedgerError, StaleSequenceError
from .merkle import IncrementalMerkleTree
from .types import MerklePath

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TreeInfo:
    depth: int
    leaf_count: int
    root: int


class LedgerReader(Protocol):
    async def get_leaf_index(self, group_id: int, commitment: int) -> Optional[int]: ...

    async def get_tree_info(self, group_id: int) -> TreeInfo: ...

    async def current_root(self, group_id: int) -> int: ...

    async def get_merkle_path(self, group_id: int, leaf_index: int) -> MerklePath: ...

    async def get_leaves(self, group_id: int) -> List[int]: ...

    async def is_root_known(self, group_id: int, root: int) -> bool: ...

    async def is_nullifier_used(self, group_id: int, context_id: int, nullifier: int) -> bool: ...


class LedgerWriter(Protocol):
    async def register(self, group_id: int, commitment: int, member: str) -> None:
        """
        Insert ``commitment`` into the group tree, authorised by ``member``.

        Raises:
            CommitmentExists: The commitment is already a leaf
            StaleSequenceError: The transaction must be rebuilt and resent
            CapabilityRefused: The member declined to authorise the write
        """
        ...


@dataclass
class _GroupState:
    tree: IncrementalMerkleTree
    index_of: Dict[int, int] = field(default_factory=dict)
    roots: Deque[int] = field(default_factory=lambda: deque(maxlen=MAX_ROOT_HISTORY))
    registered_members: Set[str] = field(default_factory=set)
    pending_reads: Dict[int, int] = field(default_factory=dict)

    def push_root(self) -> None:
        self.roots.append(self.tree.root)


class InMemoryLedger:
    """
    Reference ledger for tests and local simulation.

    Args:
        depth: Tree depth for new groups
        read_lag: Number of ``get_leaf_index`` calls that miss a freshly
            inserted commitment before it becomes visible
        stale_sequence_failures: Number of upcoming writes rejected with
            ``StaleSequenceError``
    """

    def __init__(
        self,
        depth: int = TREE_DEPTH,
        read_lag: int = 0,
        stale_sequence_failures: int = 0,
    ):
        self.depth = depth
        self.read_lag = read_lag
        self.stale_sequence_failures = stale_sequence_failures
        self.refuse_writes = False
        self.write_attempts = 0
        self._groups: Dict[int, _GroupState] = {}
        self._nullifiers: Dict[Tuple[int, int], Set[int]] = {}

    def _group(self, group_id: int) -> _GroupState:
        state = self._groups.get(group_id)
        if state is None:
            state = _GroupState(tree=IncrementalMerkleTree(depth=self.depth))
            state.push_root()
            self._groups[group_id] = state
        return state

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def register(self, group_id: int, commitment: int, member: str) -> None:
        await trio.lowlevel.checkpoint()
        self.write_attempts += 1
        if self.refuse_writes:
            raise CapabilityRefused("member declined the registration transaction")
        if self.stale_sequence_failures > 0:
            self.stale_sequence_failures -= 1
            raise StaleSequenceError("txBadSeq")

        state = self._group(group_id)
        if commitment in state.index_of:
            raise CommitmentExists("Error(Contract, #5)")
        index = state.tree.insert(commitment)
        state.index_of[commitment] = index
        state.registered_members.add(member)
        state.push_root()
        if self.read_lag:
            state.pending_reads[commitment] = self.read_lag
        logger.debug("group %s: inserted leaf %d", group_id, index)

    def insert_commitment(self, group_id: int, commitment: int) -> int:
        """Administrative insert without failure injection (test setup)."""
        state = self._group(group_id)
        if commitment in state.index_of:
            raise CommitmentExists("Error(Contract, #5)")
        index = state.tree.insert(commitment)
        state.index_of[commitment] = index
        state.push_root()
        return index

    def remove_commitment(self, group_id: int, commitment: int) -> None:
        """Revoke a member: the leaf is zeroed and the root changes."""
        state = self._group(group_id)
        index = state.index_of.get(commitment)
        if index is None:
            raise LedgerError("Error(Contract, #12)", user_message="Member is not in the tree.")
        state.tree.update(index, ZERO_LEAF)
        state.push_root()

    def record_nullifier(self, group_id: int, context_id: int, nullifier: int) -> bool:
        """Mark a nullifier as spent. Returns False if it already was."""
        spent = self._nullifiers.setdefault((group_id, context_id), set())
        if nullifier in spent:
            return False
        spent.add(nullifier)
        return True

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_leaf_index(self, group_id: int, commitment: int) -> Optional[int]:
        await trio.lowlevel.checkpoint()
        state = self._group(group_id)
        remaining = state.pending_reads.get(commitment, 0)
        if remaining > 0:
            state.pending_reads[commitment] = remaining - 1
            return None
        return state.index_of.get(commitment)

    async def get_tree_info(self, group_id: int) -> TreeInfo:
        await trio.lowlevel.checkpoint()
        state = self._group(group_id)
        return TreeInfo(depth=state.tree.depth, leaf_count=state.tree.size, root=state.tree.root)

    async def current_root(self, group_id: int) -> int:
        await trio.lowlevel.checkpoint()
        return self._group(group_id).tree.root

    async def get_merkle_path(self, group_id: int, leaf_index: int) -> MerklePath:
        await trio.lowlevel.checkpoint()
        state = self._group(group_id)
        if not 0 <= leaf_index < state.tree.size:
            raise LedgerError("Error(Contract, #10)", user_message="Leaf index is out of bounds.")
        return state.tree.path(leaf_index)

    async def get_leaves(self, group_id: int) -> List[int]:
        await trio.lowlevel.checkpoint()
        return self._group(group_id).tree.leaves

    async def is_root_known(self, group_id: int, root: int) -> bool:
        await trio.lowlevel.checkpoint()
        return root in self._group(group_id).roots

    async def is_nullifier_used(self, group_id: int, context_id: int, nullifier: int) -> bool:
        await trio.lowlevel.checkpoint()
        return nullifier in self._nullifiers.get((group_id, context_id), set())
