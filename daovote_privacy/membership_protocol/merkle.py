"""
Merkle tree utilities for group membership.
Uses two-input Poseidon for nodes over a fixed-depth, zero-padded tree.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Iterable, List, Optional, Tuple

from .config import TREE_DEPTH, ZERO_LEAF
from .poseidon import poseidon_hash
from .types import MerklePath


def hash_node(left: int, right: int) -> int:
    """
    Hash two Merkle nodes.

    Note:
        Uses fixed left||right ordering (no sorting).
    """
    return poseidon_hash(left, right)


@lru_cache(maxsize=None)
def zero_hashes(depth: int = TREE_DEPTH) -> Tuple[int, ...]:
    """
    Roots of empty subtrees.

    Returns:
        Tuple of ``depth + 1`` values: ``zeros[0]`` is the empty leaf and
        ``zeros[i + 1] = H(zeros[i], zeros[i])``
    """
    zeros = [ZERO_LEAF]
    for _ in range(depth):
        zeros.append(hash_node(zeros[-1], zeros[-1]))
    return tuple(zeros)


def compute_root(leaf: int, path: MerklePath) -> int:
    """Fold ``leaf`` up the authentication path."""
    current = leaf
    for sibling, bit in zip(path.path_elements, path.path_indices):
        if bit == 0:
            # Current on left, sibling on right
            current = hash_node(current, sibling)
        else:
            current = hash_node(sibling, current)
    return current


def verify_path(leaf: int, path: MerklePath, root: int) -> bool:
    """
    Verify a Merkle authentication path.

    Returns:
        True if path is valid, False otherwise
    """
    if len(path.path_elements) != len(path.path_indices):
        return False
    return compute_root(leaf, path) == root


class IncrementalMerkleTree:
    """
    Append-only fixed-depth tree with in-place leaf updates.

    Only populated nodes are stored; missing right siblings are the
    precomputed empty-subtree roots.

    Example:
        tree = IncrementalMerkleTree(depth=4)
        index = tree.insert(commitment)
        assert verify_path(commitment, tree.path(index), tree.root)
    """

    def __init__(self, depth: int = TREE_DEPTH, leaves: Optional[Iterable[int]] = None):
        if depth < 1:
            raise ValueError("depth must be >= 1")
        self.depth = depth
        self._zeros = zero_hashes(depth)
        self._layers: List[List[int]] = [[] for _ in range(depth + 1)]
        for leaf in leaves or ():
            self.insert(leaf)

    @property
    def capacity(self) -> int:
        return 1 << self.depth

    @property
    def size(self) -> int:
        return len(self._layers[0])

    @property
    def leaves(self) -> List[int]:
        return list(self._layers[0])

    @property
    def root(self) -> int:
        top = self._layers[self.depth]
        return top[0] if top else self._zeros[self.depth]

    def insert(self, leaf: int) -> int:
        if self.size >= self.capacity:
            raise ValueError("tree is full")
        index = self.size
        self._layers[0].append(leaf)
        self._update_from(index)
        return index

    def update(self, index: int, leaf: int) -> None:
        if not 0 <= index < self.size:
            raise IndexError("leaf index out of bounds")
        self._layers[0][index] = leaf
        self._update_from(index)

    def _node(self, level: int, index: int) -> int:
        layer = self._layers[level]
        if index < len(layer):
            return layer[index]
        return self._zeros[level]

    def _update_from(self, index: int) -> None:
        for level in range(self.depth):
            parent = index >> 1
            left = self._node(level, parent * 2)
            right = self._node(level, parent * 2 + 1)
            value = hash_node(left, right)
            upper = self._layers[level + 1]
            if parent < len(upper):
                upper[parent] = value
            else:
                upper.append(value)
            index = parent

    def path(self, index: int) -> MerklePath:
        if not 0 <= index < self.size:
            raise IndexError("leaf index out of bounds")
        elements = []
        indices = []
        for level in range(self.depth):
            bit = index & 1
            sibling = index ^ 1
            elements.append(self._node(level, sibling))
            indices.append(bit)
            index >>= 1
        return MerklePath(path_elements=tuple(elements), path_indices=tuple(indices))


def find_historical_path(
    leaves: List[int],
    leaf_index: int,
    root: int,
    depth: int = TREE_DEPTH,
) -> Optional[MerklePath]:
    """
    Replay the append-only leaf sequence and return ``leaf_index``'s path in
    the first tree state whose root equals ``root``.

    Returns:
        The matching path, or None if no prefix of ``leaves`` containing
        ``leaf_index`` produces ``root``
    """
    tree = IncrementalMerkleTree(depth=depth)
    for leaf in leaves:
        tree.insert(leaf)
        if tree.size > leaf_index and tree.root == root:
            return tree.path(leaf_index)
    return None
