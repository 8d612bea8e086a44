"""Shared fixtures: a synthetic Groth16 setup and an in-memory relay."""

from __future__ import annotations

import json
import random
from pathlib import Path
from typing import Any, Dict, Sequence, Tuple

import httpx
import pytest
from py_ecc.optimized_bn128 import G1, G2, curve_order, multiply

from daovote_privacy.membership_protocol.ledger import InMemoryLedger
from daovote_privacy.membership_protocol.snark.assets import CircuitArtifacts
from daovote_privacy.membership_protocol.snark.backend import g1_to_affine, g2_to_affine
from daovote_privacy.membership_protocol.snark.witness import CircuitSchema
from daovote_privacy.membership_protocol.types import Groth16Proof, VerificationKey
from daovote_privacy.relay.encoding import decode_scalar


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: pairing-heavy Groth16 verification tests")


class SyntheticGroth16:
    """
    Groth16 keys generated from known scalars.

    Knowing the discrete logs of every key element lets the setup produce a
    valid proof for arbitrary public signals without a circuit.
    """

    def __init__(self, n_public: int, seed: int = 7):
        self._rng = random.Random(seed)
        self._alpha = self._scalar()
        self._beta = self._scalar()
        self._gamma = self._scalar()
        self._delta = self._scalar()
        self._ic = [self._scalar() for _ in range(n_public + 1)]
        self.verification_key = VerificationKey(
            alpha=g1_to_affine(multiply(G1, self._alpha)),
            beta=g2_to_affine(multiply(G2, self._beta)),
            gamma=g2_to_affine(multiply(G2, self._gamma)),
            delta=g2_to_affine(multiply(G2, self._delta)),
            ic=tuple(g1_to_affine(multiply(G1, s)) for s in self._ic),
        )

    def _scalar(self) -> int:
        return self._rng.randrange(1, curve_order)

    def prove(self, signals: Sequence[int]) -> Groth16Proof:
        r = curve_order
        a = self._scalar()
        b = self._scalar()
        vk_x = self._ic[0]
        for signal, ic in zip(signals, self._ic[1:]):
            vk_x = (vk_x + signal * ic) % r
        c = (a * b - self._alpha * self._beta - vk_x * self._gamma) * pow(self._delta, -1, r) % r
        return Groth16Proof(
            a=g1_to_affine(multiply(G1, a)),
            b=g2_to_affine(multiply(G2, b)),
            c=g1_to_affine(multiply(G1, c)),
        )


class SyntheticProver:
    """ProverBackend that answers with synthetic proofs for the witness's public inputs."""

    def __init__(self, setup: SyntheticGroth16, schema: CircuitSchema):
        self.setup = setup
        self.schema = schema
        self.calls = 0

    async def prove(
        self, artifacts: CircuitArtifacts, witness: Dict[str, Any]
    ) -> Tuple[Groth16Proof, Tuple[int, ...]]:
        self.calls += 1
        signals = tuple(int(witness[name]) for name in self.schema.public_names)
        return self.setup.prove(signals), signals


def make_artifacts(tmp_path: Path, schema: CircuitSchema) -> CircuitArtifacts:
    base = tmp_path / schema.name / f"v{schema.version}"
    base.mkdir(parents=True, exist_ok=True)
    for name in (f"{schema.name}.wasm", f"{schema.name}_final.zkey"):
        (base / name).write_bytes(b"\x00")
    vkey = base / "verification_key.json"
    vkey.write_text("{}", encoding="utf-8")
    return CircuitArtifacts(
        circuit=schema.name,
        version=schema.version,
        wasm_path=base / f"{schema.name}.wasm",
        zkey_path=base / f"{schema.name}_final.zkey",
        vkey_path=vkey,
    )


class LedgerRelay:
    """
    Relay double backed by an ``InMemoryLedger``.

    Accepts every well-formed request, spends vote nullifiers in the ledger and
    answers a second vote with the relay's "already voted" error.
    """

    def __init__(self, ledger: InMemoryLedger):
        self.ledger = ledger
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append((request.url.path, body))
        if request.url.path == "/vote":
            fresh = self.ledger.record_nullifier(
                body["daoId"], body["proposalId"], decode_scalar(body["nullifier"])
            )
            if not fresh:
                return httpx.Response(400, json={"error": "Already voted on this proposal"})
        return httpx.Response(200, json={"success": True, "txHash": f"tx{len(self.requests)}"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture(scope="session")
def vote_setup() -> SyntheticGroth16:
    return SyntheticGroth16(n_public=5, seed=5)


@pytest.fixture(scope="session")
def comment_setup() -> SyntheticGroth16:
    return SyntheticGroth16(n_public=6, seed=6)


@pytest.fixture
def artifacts_for(tmp_path):
    """Placeholder artifact files laid out for ``schema``."""
    return lambda schema: make_artifacts(tmp_path, schema)


@pytest.fixture
def synthetic_prover():
    return SyntheticProver


@pytest.fixture
def ledger_relay():
    return LedgerRelay
