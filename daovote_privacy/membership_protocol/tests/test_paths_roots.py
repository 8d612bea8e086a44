"""Tests for Merkle path retrieval and eligibility root selection."""

from __future__ import annotations

import pytest

from daovote_privacy.membership_protocol.config import FIELD_MODULUS
from daovote_privacy.membership_protocol.exceptions import (
    LedgerError,
    MembershipRevoked,
    NotEligible,
    WitnessConstructionFailed,
)
from daovote_privacy.membership_protocol.ledger import InMemoryLedger
from daovote_privacy.membership_protocol.merkle import compute_root
from daovote_privacy.membership_protocol.paths import MerklePathProvider
from daovote_privacy.membership_protocol.roots import RootSelector
from daovote_privacy.membership_protocol.types import EligibilityPolicy, MerklePath

DEPTH = 4
MEMBER = 500


def _ledger(before=2, after=0):
    ledger = InMemoryLedger(depth=DEPTH)
    for i in range(before):
        ledger.insert_commitment(7, 100 + i)
    ledger.insert_commitment(7, MEMBER)
    for i in range(after):
        ledger.insert_commitment(7, 200 + i)
    return ledger


class ShortPathLedger(InMemoryLedger):
    async def get_merkle_path(self, group_id, leaf_index):
        path = await super().get_merkle_path(group_id, leaf_index)
        return MerklePath(path.path_elements[:-1], path.path_indices[:-1])


class TestMerklePathProvider:
    @pytest.mark.trio
    async def test_current_path_folds_to_current_root(self):
        ledger = _ledger()
        provider = MerklePathProvider(ledger, depth=DEPTH)
        root = await ledger.current_root(7)
        path = await provider.path_for_root(7, 2, MEMBER, root)
        assert compute_root(MEMBER, path) == root

    @pytest.mark.trio
    async def test_snapshot_root_after_later_joins(self):
        ledger = _ledger()
        snapshot = await ledger.current_root(7)
        ledger.insert_commitment(7, 300)
        ledger.insert_commitment(7, 301)
        provider = MerklePathProvider(ledger, depth=DEPTH)
        path = await provider.path_for_root(7, 2, MEMBER, snapshot)
        assert compute_root(MEMBER, path) == snapshot
        assert compute_root(MEMBER, await provider.path(7, 2)) != snapshot

    @pytest.mark.trio
    async def test_root_predating_member_is_not_eligible(self):
        ledger = InMemoryLedger(depth=DEPTH)
        ledger.insert_commitment(7, 100)
        snapshot = await ledger.current_root(7)
        ledger.insert_commitment(7, MEMBER)
        provider = MerklePathProvider(ledger, depth=DEPTH)
        with pytest.raises(NotEligible) as excinfo:
            await provider.path_for_root(7, 1, MEMBER, snapshot)
        assert "after" in excinfo.value.user_message

    @pytest.mark.trio
    async def test_removed_member_is_revoked(self):
        ledger = _ledger()
        snapshot = await ledger.current_root(7)
        ledger.remove_commitment(7, MEMBER)
        provider = MerklePathProvider(ledger, depth=DEPTH)
        with pytest.raises(MembershipRevoked):
            await provider.path_for_root(7, 2, MEMBER, snapshot)

    @pytest.mark.trio
    async def test_wrong_commitment_at_index(self):
        ledger = _ledger()
        provider = MerklePathProvider(ledger, depth=DEPTH)
        with pytest.raises(NotEligible):
            await provider.path_for_root(7, 1, MEMBER, await ledger.current_root(7))

    @pytest.mark.trio
    async def test_unknown_leaf_index(self):
        ledger = _ledger()
        provider = MerklePathProvider(ledger, depth=DEPTH)
        with pytest.raises(LedgerError):
            await provider.path(7, 9)

    @pytest.mark.trio
    async def test_malformed_ledger_path(self):
        ledger = ShortPathLedger(depth=DEPTH)
        ledger.insert_commitment(7, MEMBER)
        provider = MerklePathProvider(ledger, depth=DEPTH)
        with pytest.raises(WitnessConstructionFailed):
            await provider.path(7, 0)


class TestRootSelector:
    @pytest.mark.trio
    async def test_snapshot_uses_pinned_root(self):
        ledger = _ledger()
        selector = RootSelector(ledger)
        assert await selector.select_root(EligibilityPolicy.SNAPSHOT, 12345, 7) == 12345

    @pytest.mark.trio
    async def test_live_reads_current_root_each_time(self):
        ledger = _ledger()
        selector = RootSelector(ledger)
        first = await selector.select_root(EligibilityPolicy.LIVE, None, 7)
        assert first == await ledger.current_root(7)
        ledger.insert_commitment(7, 999)
        second = await selector.select_root(EligibilityPolicy.LIVE, None, 7)
        assert second != first

    @pytest.mark.trio
    async def test_snapshot_without_root(self):
        with pytest.raises(WitnessConstructionFailed):
            await RootSelector(_ledger()).select_root(EligibilityPolicy.SNAPSHOT, None, 7)

    @pytest.mark.trio
    async def test_snapshot_root_must_be_field_element(self):
        with pytest.raises(ValueError):
            await RootSelector(_ledger()).select_root(EligibilityPolicy.SNAPSHOT, FIELD_MODULUS, 7)
