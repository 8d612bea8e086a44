"""Groth16 prover backed by the snarkjs CLI."""

from __future__ import annotations

import json
import logging
import shlex
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Protocol, Tuple

import trio

from ..config import DEFAULT_PROVER_COMMAND, DEFAULT_PROVER_TIMEOUT
from ..exceptions import ProofArtifactUnavailable, WitnessConstructionFailed
from ..field import to_field
from ..types import Groth16Proof
from .assets import CircuitArtifacts

logger = logging.getLogger(__name__)

# snarkjs/circom witness-calculator messages for unsatisfied constraints
_CONSTRAINT_MARKERS = ("Assert Failed", "Error in template", "Not all inputs have been set")


class ProverBackend(Protocol):
    async def prove(
        self, artifacts: CircuitArtifacts, witness: Dict[str, Any]
    ) -> Tuple[Groth16Proof, Tuple[int, ...]]: ...


class SnarkjsProver:
    """
    Run ``snarkjs groth16 fullprove`` in a subprocess.

    The subprocess runs under trio, so cancelling the calling task kills it.
    """

    def __init__(
        self,
        command: str = DEFAULT_PROVER_COMMAND,
        timeout: float = DEFAULT_PROVER_TIMEOUT,
    ):
        self.command = command
        self.timeout = timeout

    def _argv(self) -> List[str]:
        argv = shlex.split(self.command)
        if not argv:
            raise ProofArtifactUnavailable("empty prover command")
        executable = shutil.which(argv[0])
        if executable is None:
            raise ProofArtifactUnavailable(f"missing prover binary: {argv[0]}")
        return [executable, *argv[1:]]

    async def prove(
        self, artifacts: CircuitArtifacts, witness: Dict[str, Any]
    ) -> Tuple[Groth16Proof, Tuple[int, ...]]:
        for path in (artifacts.wasm_path, artifacts.zkey_path):
            if not path.exists():
                raise ProofArtifactUnavailable(f"missing circuit artifact: {path}")

        argv = self._argv()
        with tempfile.TemporaryDirectory() as tmp_dir:
            tmp = Path(tmp_dir)
            input_path = tmp / "input.json"
            proof_path = tmp / "proof.json"
            public_path = tmp / "public.json"
            input_path.write_text(json.dumps(witness), encoding="utf-8")

            command = [
                *argv,
                "groth16",
                "fullprove",
                str(input_path),
                str(artifacts.wasm_path),
                str(artifacts.zkey_path),
                str(proof_path),
                str(public_path),
            ]
            logger.debug("running prover for %s v%d", artifacts.circuit, artifacts.version)
            try:
                with trio.fail_after(self.timeout):
                    result = await trio.run_process(
                        command,
                        capture_stdout=True,
                        capture_stderr=True,
                        check=False,
                    )
            except trio.TooSlowError as exc:
                raise ProofArtifactUnavailable(
                    f"prover timed out after {self.timeout}s"
                ) from exc
            except OSError as exc:
                raise ProofArtifactUnavailable(f"cannot start prover: {exc}") from exc

            if result.returncode != 0:
                _raise_for_failure(result)

            try:
                proof = Groth16Proof.from_snarkjs(
                    json.loads(proof_path.read_text(encoding="utf-8"))
                )
                public = json.loads(public_path.read_text(encoding="utf-8"))
                signals = tuple(to_field(value) for value in public)
            except (OSError, ValueError, TypeError) as exc:
                raise ProofArtifactUnavailable(f"prover produced unreadable output: {exc}") from exc
        return proof, signals


def _raise_for_failure(result: subprocess.CompletedProcess) -> None:
    output = b"\n".join(part for part in (result.stderr, result.stdout) if part)
    message = output.decode("utf-8", errors="replace").strip() or "unknown prover error"
    if any(marker in message for marker in _CONSTRAINT_MARKERS):
        raise WitnessConstructionFailed(f"circuit constraints not satisfied: {message[:500]}")
    raise ProofArtifactUnavailable(f"prover failed: {message[:500]}")
