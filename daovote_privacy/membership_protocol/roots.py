"""Eligibility root selection."""

from __future__ import annotations

from typing import Optional

from .exceptions import WitnessConstructionFailed
from .field import require_field_element
from .ledger import LedgerReader
from .types import EligibilityPolicy


class RootSelector:
    def __init__(self, reader: LedgerReader):
        self._reader = reader

    async def select_root(
        self, policy: EligibilityPolicy, pinned_root: Optional[int], group_id: int
    ) -> int:
        """
        SNAPSHOT: the root pinned when the action context was created (no I/O).
        LIVE: the group's current root, read once and never cached.
        """
        if policy is EligibilityPolicy.SNAPSHOT:
            if pinned_root is None:
                raise WitnessConstructionFailed("snapshot policy without a pinned root")
            return require_field_element(pinned_root, "pinned_root")
        if policy is EligibilityPolicy.LIVE:
            return await self._reader.current_root(group_id)
        raise ValueError(f"unknown eligibility policy: {policy!r}")
