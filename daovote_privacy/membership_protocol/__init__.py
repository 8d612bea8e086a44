"""Public API for membership_protocol."""
from __future__ import annotations

from .capability import Authenticated, CapabilityContext, ReadOnly, resolve_capability
from .credentials import CredentialDeriver, Ed25519SigningCapability, SigningCapability
from .exceptions import DaoPrivacyError
from .ledger import InMemoryLedger, LedgerReader, LedgerWriter, TreeInfo
from .merkle import IncrementalMerkleTree
from .nullifier import NullifierComputer
from .paths import MerklePathProvider
from .poseidon import poseidon_hash
from .registrar import CommitmentRegistrar
from .roots import RootSelector
from .store import FileActionLog, FileCredentialStore, MemoryActionLog, MemoryCredentialStore
from .types import (
    ActionKind,
    CommentAction,
    Credentials,
    EligibilityPolicy,
    MerklePath,
    Phase,
    ProofBundle,
    SubmissionOutcome,
    SubmissionStatus,
    VoteAction,
)

__all__ = [
    "ActionKind",
    "Authenticated",
    "CapabilityContext",
    "CommentAction",
    "CommitmentRegistrar",
    "CredentialDeriver",
    "Credentials",
    "DaoPrivacyError",
    "Ed25519SigningCapability",
    "EligibilityPolicy",
    "FileActionLog",
    "FileCredentialStore",
    "InMemoryLedger",
    "IncrementalMerkleTree",
    "LedgerReader",
    "LedgerWriter",
    "MemoryActionLog",
    "MemoryCredentialStore",
    "MerklePath",
    "MerklePathProvider",
    "NullifierComputer",
    "Phase",
    "ProofBundle",
    "ReadOnly",
    "RootSelector",
    "SigningCapability",
    "SubmissionOutcome",
    "SubmissionStatus",
    "TreeInfo",
    "VoteAction",
    "poseidon_hash",
    "resolve_capability",
]
