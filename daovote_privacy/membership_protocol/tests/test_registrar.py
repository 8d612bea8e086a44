"""Tests for the in-memory ledger and commitment registration."""

from __future__ import annotations

import pytest
import trio

from daovote_privacy.membership_protocol.capability import Authenticated, ReadOnly
from daovote_privacy.membership_protocol.credentials import Ed25519SigningCapability
from daovote_privacy.membership_protocol.exceptions import (
    CapabilityRefused,
    CapabilityUnavailable,
    CommitmentExists,
    LedgerError,
    RegistrationUnconfirmed,
    StaleSequenceError,
)
from daovote_privacy.membership_protocol.ledger import InMemoryLedger
from daovote_privacy.membership_protocol.merkle import verify_path
from daovote_privacy.membership_protocol.registrar import CommitmentRegistrar
from daovote_privacy.membership_protocol.retry import RetryPolicy

DEPTH = 4
FAST = RetryPolicy(max_attempts=3, base_delay=0.0)


@pytest.fixture
def ctx():
    return Authenticated(Ed25519SigningCapability.from_seed(b"\x01" * 32))


def _registrar(ledger, write_retry=FAST, lookup_retry=FAST):
    return CommitmentRegistrar(ledger, ledger, write_retry=write_retry, lookup_retry=lookup_retry)


class TestInMemoryLedger:
    @pytest.mark.trio
    async def test_register_and_read_back(self):
        ledger = InMemoryLedger(depth=DEPTH)
        await ledger.register(7, 100, "alice")
        assert await ledger.get_leaf_index(7, 100) == 0
        info = await ledger.get_tree_info(7)
        assert info.depth == DEPTH
        assert info.leaf_count == 1
        assert info.root == await ledger.current_root(7)

    @pytest.mark.trio
    async def test_duplicate_commitment(self):
        ledger = InMemoryLedger(depth=DEPTH)
        await ledger.register(7, 100, "alice")
        with pytest.raises(CommitmentExists):
            await ledger.register(7, 100, "alice")

    @pytest.mark.trio
    async def test_paths_match_current_root(self):
        ledger = InMemoryLedger(depth=DEPTH)
        for commitment in (100, 101, 102):
            ledger.insert_commitment(7, commitment)
        root = await ledger.current_root(7)
        path = await ledger.get_merkle_path(7, 1)
        assert verify_path(101, path, root)

    @pytest.mark.trio
    async def test_path_out_of_range(self):
        ledger = InMemoryLedger(depth=DEPTH)
        with pytest.raises(LedgerError):
            await ledger.get_merkle_path(7, 0)

    @pytest.mark.trio
    async def test_root_history_is_bounded(self):
        ledger = InMemoryLedger(depth=5)
        first_root = await ledger.current_root(7)
        assert await ledger.is_root_known(7, first_root)
        for commitment in range(1, 31):
            ledger.insert_commitment(7, commitment)
        assert not await ledger.is_root_known(7, first_root)
        assert await ledger.is_root_known(7, await ledger.current_root(7))

    @pytest.mark.trio
    async def test_removal_zeroes_leaf(self):
        ledger = InMemoryLedger(depth=DEPTH)
        ledger.insert_commitment(7, 100)
        ledger.insert_commitment(7, 101)
        before = await ledger.current_root(7)
        ledger.remove_commitment(7, 100)
        assert await ledger.get_leaves(7) == [0, 101]
        assert await ledger.current_root(7) != before
        with pytest.raises(LedgerError):
            ledger.remove_commitment(7, 999)

    @pytest.mark.trio
    async def test_nullifier_sets_are_per_context(self):
        ledger = InMemoryLedger(depth=DEPTH)
        assert ledger.record_nullifier(7, 42, 5) is True
        assert ledger.record_nullifier(7, 42, 5) is False
        assert await ledger.is_nullifier_used(7, 42, 5)
        assert not await ledger.is_nullifier_used(7, 43, 5)
        assert not await ledger.is_nullifier_used(8, 42, 5)


@pytest.mark.trio
async def test_register_returns_leaf_index(ctx):
    ledger = InMemoryLedger(depth=DEPTH)
    ledger.insert_commitment(7, 1)
    ledger.insert_commitment(7, 2)
    assert await _registrar(ledger).register(ctx, 7, 100) == 2


@pytest.mark.trio
async def test_register_twice_is_idempotent(ctx):
    ledger = InMemoryLedger(depth=DEPTH)
    registrar = _registrar(ledger)
    first = await registrar.register(ctx, 7, 100)
    second = await registrar.register(ctx, 7, 100)
    assert first == second == 0
    assert (await ledger.get_tree_info(7)).leaf_count == 1


@pytest.mark.trio
async def test_register_waits_for_indexer(ctx):
    ledger = InMemoryLedger(depth=DEPTH, read_lag=2)
    assert await _registrar(ledger).register(ctx, 7, 100) == 0


@pytest.mark.trio
async def test_register_unconfirmed_when_lag_outlasts_retries(ctx):
    ledger = InMemoryLedger(depth=DEPTH, read_lag=5)
    with pytest.raises(RegistrationUnconfirmed):
        await _registrar(ledger).register(ctx, 7, 100)


@pytest.mark.trio
async def test_register_retries_stale_sequence(ctx):
    ledger = InMemoryLedger(depth=DEPTH, stale_sequence_failures=2)
    assert await _registrar(ledger).register(ctx, 7, 100) == 0
    assert ledger.write_attempts == 3


@pytest.mark.trio
async def test_register_gives_up_on_persistent_stale_sequence(ctx):
    ledger = InMemoryLedger(depth=DEPTH, stale_sequence_failures=10)
    with pytest.raises(StaleSequenceError):
        await _registrar(ledger).register(ctx, 7, 100)
    assert ledger.write_attempts == FAST.max_attempts


@pytest.mark.trio
async def test_refused_write_is_not_retried(ctx):
    ledger = InMemoryLedger(depth=DEPTH)
    ledger.refuse_writes = True
    with pytest.raises(CapabilityRefused):
        await _registrar(ledger).register(ctx, 7, 100)
    assert ledger.write_attempts == 1


@pytest.mark.trio
async def test_read_only_context_cannot_register():
    ledger = InMemoryLedger(depth=DEPTH)
    with pytest.raises(CapabilityUnavailable):
        await _registrar(ledger).register(ReadOnly(), 7, 100)
    assert ledger.write_attempts == 0


@pytest.mark.trio
async def test_lookup_delays_follow_policy(ctx, autojump_clock):
    ledger = InMemoryLedger(depth=DEPTH, read_lag=2)
    policy = RetryPolicy(max_attempts=4, base_delay=2.0)
    start = trio.current_time()
    await _registrar(ledger, lookup_retry=policy).register(ctx, 7, 100)
    assert trio.current_time() - start == pytest.approx(4.0)
