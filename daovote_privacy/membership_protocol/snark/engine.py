"""Proof generation gated by local verification."""

from __future__ import annotations

import functools
import logging
from typing import Callable, Optional, Sequence

import trio

from ..config import TREE_DEPTH
from ..exceptions import ProofInternallyInvalid
from ..types import Groth16Proof, Phase, ProofBundle, VerificationKey
from .assets import CircuitArtifacts
from .backend import Groth16Verifier
from .prover import ProverBackend
from .witness import CircuitSchema, PrivateWitness, PublicInputs, build_witness, public_signals_for

logger = logging.getLogger(__name__)

PhaseObserver = Callable[[Phase], None]


class ProofEngine:
    """
    Prove one circuit version and verify the result before releasing it.

    A proof leaves the engine only after it verified against the circuit's
    verification key with exactly the public signals that were requested.
    """

    def __init__(
        self,
        schema: CircuitSchema,
        artifacts: CircuitArtifacts,
        prover: ProverBackend,
        verifier: Optional[Groth16Verifier] = None,
        verification_key: Optional[VerificationKey] = None,
        depth: int = TREE_DEPTH,
    ):
        if artifacts.circuit != schema.name or artifacts.version != schema.version:
            raise ValueError(
                f"artifacts {artifacts.circuit} v{artifacts.version} do not match "
                f"schema {schema.name} v{schema.version}"
            )
        self.schema = schema
        self.artifacts = artifacts
        self._prover = prover
        self._verifier = verifier or Groth16Verifier()
        self._vk = verification_key
        self.depth = depth

    @property
    def verification_key(self) -> VerificationKey:
        if self._vk is None:
            vk = self.artifacts.load_verification_key()
            if vk.n_public != self.schema.n_public:
                raise ProofInternallyInvalid(
                    f"verification key expects {vk.n_public} public inputs, "
                    f"{self.schema.name} v{self.schema.version} has {self.schema.n_public}"
                )
            self._vk = vk
        return self._vk

    async def prove(
        self,
        private: PrivateWitness,
        public: PublicInputs,
        observer: Optional[PhaseObserver] = None,
    ) -> ProofBundle:
        """
        Raises:
            WitnessConstructionFailed: Inputs cannot satisfy the circuit
            ProofArtifactUnavailable: Artifacts or prover are missing/corrupt
            ProofInternallyInvalid: The produced proof failed local verification
        """
        expected = public_signals_for(self.schema, public)
        witness = build_witness(self.schema, private, public, depth=self.depth)

        if observer is not None:
            observer(Phase.PROVING)
        proof, signals = await self._prover.prove(self.artifacts, witness)

        if observer is not None:
            observer(Phase.VERIFYING)
        if tuple(signals) != expected:
            raise ProofInternallyInvalid("prover returned different public signals")
        if not await self.verify_locally(proof, signals):
            raise ProofInternallyInvalid("proof failed local verification")

        logger.info("%s proof generated and verified locally", self.schema.name)
        return ProofBundle(
            proof=proof,
            public_signals=tuple(signals),
            circuit=self.schema.name,
            public_names=self.schema.public_names,
        )

    async def verify_locally(self, proof: Groth16Proof, public_signals: Sequence[int]) -> bool:
        vk = self.verification_key
        check = functools.partial(self._verifier.verify, vk, proof, tuple(public_signals))
        return await trio.to_thread.run_sync(check, abandon_on_cancel=True)
