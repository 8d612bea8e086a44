"""
Anonymous action pipeline.

Runs one action end to end:
    derive credentials -> Merkle path -> nullifier -> prove -> verify -> submit

Each step consumes only the outputs of the steps before it. Nothing leaves
the device before the proof has verified locally, so cancelling before
SUBMITTING has no external effect.
"""

from __future__ import annotations

import logging
from typing import Callable, Mapping, Optional, Union

from .membership_protocol.capability import CapabilityContext, require_authenticated
from .membership_protocol.config import TREE_DEPTH
from .membership_protocol.credentials import CredentialDeriver
from .membership_protocol.exceptions import NotRegistered
from .membership_protocol.ledger import LedgerReader, LedgerWriter
from .membership_protocol.nullifier import NullifierComputer
from .membership_protocol.paths import MerklePathProvider
from .membership_protocol.registrar import CommitmentRegistrar
from .membership_protocol.roots import RootSelector
from .membership_protocol.snark.engine import ProofEngine
from .membership_protocol.snark.witness import PrivateWitness, PublicInputs
from .membership_protocol.store import ActionLog, CredentialStore, MemoryActionLog
from .membership_protocol.types import (
    ActionKind,
    CommentAction,
    Credentials,
    Phase,
    SubmissionOutcome,
    SubmissionStatus,
    VoteAction,
)
from .relay.coordinator import SubmissionCoordinator

logger = logging.getLogger(__name__)

Action = Union[VoteAction, CommentAction]
PhaseObserver = Callable[[Phase], None]


class ActionPipeline:
    def __init__(
        self,
        reader: LedgerReader,
        writer: LedgerWriter,
        coordinator: SubmissionCoordinator,
        engines: Mapping[ActionKind, ProofEngine],
        store: CredentialStore,
        action_log: Optional[ActionLog] = None,
        deriver: Optional[CredentialDeriver] = None,
        registrar: Optional[CommitmentRegistrar] = None,
        depth: int = TREE_DEPTH,
    ):
        self._reader = reader
        self._coordinator = coordinator
        self._engines = dict(engines)
        self._store = store
        self._action_log = action_log or MemoryActionLog()
        self._deriver = deriver or CredentialDeriver()
        self._registrar = registrar or CommitmentRegistrar(reader, writer)
        self._paths = MerklePathProvider(reader, depth=depth)
        self._roots = RootSelector(reader)
        self._nullifiers = NullifierComputer()

    async def register(self, ctx: CapabilityContext, group_id: int) -> Credentials:
        """Derive credentials, register the commitment and persist the result."""
        auth = require_authenticated(ctx)
        credentials = await self._deriver.derive(auth.signer, group_id)
        leaf_index = await self._registrar.register(ctx, group_id, credentials.commitment)
        credentials = credentials.with_leaf_index(leaf_index)
        self._store.put(group_id, auth.identity, credentials)
        logger.info("member registered in group %s at leaf %d", group_id, leaf_index)
        return credentials

    async def load_credentials(self, ctx: CapabilityContext, group_id: int) -> Credentials:
        """
        Stored credentials, or re-derived ones with the leaf index recovered.

        Raises:
            NotRegistered: The derived commitment is not in the group tree
        """
        auth = require_authenticated(ctx)
        cached = self._store.get(group_id, auth.identity)
        if cached is not None and cached.leaf_index is not None:
            return cached

        credentials = cached or await self._deriver.derive(auth.signer, group_id)
        leaf_index = await self._reader.get_leaf_index(group_id, credentials.commitment)
        if leaf_index is None:
            raise NotRegistered(f"commitment not found in group {group_id}")
        credentials = credentials.with_leaf_index(leaf_index)
        self._store.put(group_id, auth.identity, credentials)
        return credentials

    def has_acted(self, ctx: CapabilityContext, group_id: int, context_id: int) -> bool:
        """Local, network-free check for a completed single-use action."""
        auth = require_authenticated(ctx)
        return self._action_log.has_acted(group_id, auth.identity, context_id)

    async def run(
        self,
        ctx: CapabilityContext,
        action: Action,
        observer: Optional[PhaseObserver] = None,
    ) -> SubmissionOutcome:
        action.validate()
        auth = require_authenticated(ctx)
        engine = self._engines.get(action.kind)
        if engine is None:
            raise ValueError(f"no proof engine configured for {action.kind.value}")

        def _notify(phase: Phase) -> None:
            logger.debug("%s: %s", action.kind.value, phase.value)
            if observer is not None:
                observer(phase)

        _notify(Phase.DERIVING)
        credentials = await self.load_credentials(ctx, action.group_id)

        _notify(Phase.PATH)
        root = await self._roots.select_root(action.policy, action.pinned_root, action.group_id)
        path = await self._paths.path_for_root(
            action.group_id, credentials.leaf_index, credentials.commitment, root
        )

        _notify(Phase.NULLIFIER)
        nullifier = self._nullifiers.compute(
            credentials.secret, action.group_id, action.context_id
        )
        if action.kind.single_use and await self._reader.is_nullifier_used(
            action.group_id, action.context_id, nullifier
        ):
            logger.info("nullifier already spent; skipping proof generation")
            self._action_log.record(action.group_id, auth.identity, action.context_id)
            return SubmissionOutcome(status=SubmissionStatus.DUPLICATE, nullifier=nullifier, attempts=0)

        public = PublicInputs(
            root=root,
            nullifier=nullifier,
            group_id=action.group_id,
            context_id=action.context_id,
            payload=action.payload,
            commitment=credentials.commitment if engine.schema.exposes_commitment else None,
        )
        private = PrivateWitness(secret=credentials.secret, salt=credentials.salt, path=path)
        bundle = await engine.prove(private, public, observer=_notify)

        _notify(Phase.SUBMITTING)
        outcome = await self._coordinator.submit(bundle, action)
        if action.kind.single_use:
            self._action_log.record(action.group_id, auth.identity, action.context_id)
        return outcome
