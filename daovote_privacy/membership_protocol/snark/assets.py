"""Helpers to resolve circuit artifacts with backward-compatible fallbacks."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Tuple

from ..exceptions import ProofArtifactUnavailable
from ..types import VerificationKey

_ENV_VAR_NAME = "DAOVOTE_CIRCUITS_DIR"


@dataclass(frozen=True)
class CircuitArtifacts:
    circuit: str
    version: int
    wasm_path: Path
    zkey_path: Path
    vkey_path: Path

    def load_verification_key(self) -> VerificationKey:
        try:
            payload = json.loads(self.vkey_path.read_text(encoding="utf-8"))
            return VerificationKey.from_snarkjs(payload)
        except (OSError, ValueError) as exc:
            raise ProofArtifactUnavailable(
                f"unreadable verification key {self.vkey_path}: {exc}"
            ) from exc


def resolve_artifacts(
    circuit: str,
    version: int = 1,
    base_dir: str | Path | None = None,
) -> CircuitArtifacts:
    """
    Resolve wasm / zkey / verification key for a circuit version.

    Layouts checked, in order:
        <base>/<circuit>/v<version>/{<circuit>.wasm, <circuit>_final.zkey, verification_key.json}
        <base>/{<circuit>.wasm, <circuit>_final.zkey, <circuit>_verification_key.json}
        <base>/{<circuit>_js/<circuit>.wasm, <circuit>_final.zkey, verification_key.json}

    Raises:
        ProofArtifactUnavailable: If no layout has all three files
    """
    base = Path(base_dir) if base_dir else _default_circuits_dir()
    candidates: List[Tuple[Path, Path, Path]] = []

    versioned = base / circuit / f"v{version}"
    candidates.append((
        versioned / f"{circuit}.wasm",
        versioned / f"{circuit}_final.zkey",
        versioned / "verification_key.json",
    ))
    candidates.append((
        base / f"{circuit}.wasm",
        base / f"{circuit}_final.zkey",
        base / f"{circuit}_verification_key.json",
    ))
    candidates.append((
        base / f"{circuit}_js" / f"{circuit}.wasm",
        base / f"{circuit}_final.zkey",
        base / "verification_key.json",
    ))

    wasm, zkey, vkey = _first_existing_tuple(candidates, f"{circuit} v{version} artifacts")
    return CircuitArtifacts(
        circuit=circuit,
        version=version,
        wasm_path=wasm,
        zkey_path=zkey,
        vkey_path=vkey,
    )


def _default_circuits_dir() -> Path:
    return Path(os.getenv(_ENV_VAR_NAME, Path.cwd() / "circuits"))


def _first_existing_tuple(
    candidates: Iterable[Tuple[Path, Path, Path]],
    label: str,
) -> Tuple[Path, Path, Path]:
    candidates = list(candidates)
    for wasm, zkey, vkey in candidates:
        if wasm.exists() and zkey.exists() and vkey.exists():
            return wasm, zkey, vkey
    checked = "; ".join(f"{w}, {z}, {v}" for w, z, v in candidates)
    raise ProofArtifactUnavailable(f"Unable to resolve {label}. Checked: {checked}")
