"""
End-to-end membership proof flow against the in-memory ledger.

Registration, path lookup, nullifier derivation, proving with real Groth16
verification and relay submission, including replay of the same proof.
"""

from __future__ import annotations

import pytest

from daovote_privacy.membership_protocol.capability import Authenticated
from daovote_privacy.membership_protocol.credentials import (
    CredentialDeriver,
    Ed25519SigningCapability,
)
from daovote_privacy.membership_protocol.ledger import InMemoryLedger
from daovote_privacy.membership_protocol.merkle import compute_root
from daovote_privacy.membership_protocol.nullifier import NullifierComputer
from daovote_privacy.membership_protocol.paths import MerklePathProvider
from daovote_privacy.membership_protocol.poseidon import poseidon_hash
from daovote_privacy.membership_protocol.registrar import CommitmentRegistrar
from daovote_privacy.membership_protocol.retry import RetryPolicy
from daovote_privacy.membership_protocol.roots import RootSelector
from daovote_privacy.membership_protocol.snark.backend import Groth16Verifier
from daovote_privacy.membership_protocol.snark.engine import ProofEngine
from daovote_privacy.membership_protocol.snark.witness import (
    VOTE_SCHEMA,
    PrivateWitness,
    PublicInputs,
)
from daovote_privacy.membership_protocol.store import MemoryCredentialStore
from daovote_privacy.membership_protocol.types import (
    ActionKind,
    EligibilityPolicy,
    SubmissionStatus,
    VoteAction,
)
from daovote_privacy.pipeline import ActionPipeline
from daovote_privacy.relay.client import RelayClient
from daovote_privacy.relay.coordinator import SubmissionCoordinator

DEPTH = 5
GROUP = 7
PROPOSAL = 42


@pytest.mark.slow
@pytest.mark.trio
async def test_member_votes_once_and_replay_is_rejected(
    vote_setup, artifacts_for, synthetic_prover, ledger_relay
):
    """A fourth member votes; resubmitting the same proof is a duplicate."""
    print("\n" + "=" * 70)
    print("TEST: End-to-end anonymous vote")
    print("=" * 70)

    ledger = InMemoryLedger(depth=DEPTH)
    for seed in (1, 2, 3):
        ledger.insert_commitment(GROUP, poseidon_hash(seed, seed + 100))

    member = Authenticated(signer=Ed25519SigningCapability.from_seed(b"\x2a" * 32))
    credentials = await CredentialDeriver(check_stability=True).derive(member.signer, GROUP)
    leaf_index = await CommitmentRegistrar(ledger, ledger).register(
        member, GROUP, credentials.commitment
    )
    assert leaf_index == 3
    print(f"✓ Registered at leaf {leaf_index}")

    action = VoteAction(
        GROUP, PROPOSAL, True, pinned_root=await ledger.current_root(GROUP)
    )
    root = await RootSelector(ledger).select_root(action.policy, action.pinned_root, GROUP)
    path = await MerklePathProvider(ledger, depth=DEPTH).path_for_root(
        GROUP, leaf_index, credentials.commitment, root
    )
    assert compute_root(credentials.commitment, path) == root
    nullifier = NullifierComputer().compute(credentials.secret, GROUP, PROPOSAL)

    engine = ProofEngine(
        VOTE_SCHEMA,
        artifacts_for(VOTE_SCHEMA),
        synthetic_prover(vote_setup, VOTE_SCHEMA),
        verifier=Groth16Verifier(),
        verification_key=vote_setup.verification_key,
        depth=DEPTH,
    )
    bundle = await engine.prove(
        PrivateWitness(secret=credentials.secret, salt=credentials.salt, path=path),
        PublicInputs(
            root=root, nullifier=nullifier, group_id=GROUP, context_id=PROPOSAL, payload=1
        ),
    )
    assert bundle.public_signals == (root, nullifier, GROUP, PROPOSAL, 1)
    print("✓ Proof verified locally")

    relay = ledger_relay(ledger)
    coordinator = SubmissionCoordinator(
        RelayClient("https://relay.example", transport=relay.transport()),
        ledger=ledger,
        retry=RetryPolicy(max_attempts=2, base_delay=0.0),
    )
    accepted = await coordinator.submit(bundle, action)
    assert accepted.status is SubmissionStatus.ACCEPTED
    assert await ledger.is_nullifier_used(GROUP, PROPOSAL, nullifier)

    replay = await coordinator.submit(bundle, action)
    assert replay.status is SubmissionStatus.DUPLICATE
    assert not replay.recorded
    print("✓ Replayed proof reported as duplicate")

    # The pipeline sees the spent nullifier before proving again
    pipeline = ActionPipeline(
        ledger, ledger, coordinator, {ActionKind.VOTE: engine}, MemoryCredentialStore(), depth=DEPTH
    )
    again = await pipeline.run(member, action)
    assert again.status is SubmissionStatus.DUPLICATE
    assert len(relay.requests) == 2


@pytest.mark.slow
@pytest.mark.trio
async def test_live_vote_uses_current_root(
    vote_setup, artifacts_for, synthetic_prover, ledger_relay
):
    ledger = InMemoryLedger(depth=DEPTH)
    relay = ledger_relay(ledger)
    engine = ProofEngine(
        VOTE_SCHEMA,
        artifacts_for(VOTE_SCHEMA),
        synthetic_prover(vote_setup, VOTE_SCHEMA),
        verification_key=vote_setup.verification_key,
        depth=DEPTH,
    )
    pipeline = ActionPipeline(
        ledger,
        ledger,
        SubmissionCoordinator(
            RelayClient("https://relay.example", transport=relay.transport()), ledger=ledger
        ),
        {ActionKind.VOTE: engine},
        MemoryCredentialStore(),
        depth=DEPTH,
    )
    member = Authenticated(signer=Ed25519SigningCapability.from_seed(b"\x07" * 32))
    await pipeline.register(member, GROUP)
    ledger.insert_commitment(GROUP, poseidon_hash(9, 9))

    outcome = await pipeline.run(
        member, VoteAction(GROUP, PROPOSAL, False, policy=EligibilityPolicy.LIVE)
    )

    assert outcome.status is SubmissionStatus.ACCEPTED
    _, body = relay.requests[0]
    assert int(body["root"], 16) == await ledger.current_root(GROUP)
    assert body["choice"] is False
