"""Groth16 proving and verification for the membership circuits."""

from .assets import CircuitArtifacts, resolve_artifacts
from .backend import Groth16Verifier, verify_snarkjs_files
from .engine import ProofEngine
from .prover import ProverBackend, SnarkjsProver
from .witness import COMMENT_SCHEMA, VOTE_SCHEMA, CircuitSchema, PrivateWitness, PublicInputs

__all__ = [
    "CircuitArtifacts",
    "resolve_artifacts",
    "Groth16Verifier",
    "verify_snarkjs_files",
    "ProofEngine",
    "ProverBackend",
    "SnarkjsProver",
    "CircuitSchema",
    "VOTE_SCHEMA",
    "COMMENT_SCHEMA",
    "PrivateWitness",
    "PublicInputs",
]
