"""JSON request schemas and response classification for the relay."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from ..membership_protocol.config import FIELD_MODULUS, MAX_ID
from .constants import (
    CIDV0_MIN_LENGTH,
    CIDV0_PREFIX,
    CIDV1_MIN_LENGTH,
    CIDV1_PREFIXES,
    COMMENT_PATH,
    CONTRACT_ERROR_COMMITMENT_REVOKED,
    CONTRACT_ERROR_INVALID_PROOF,
    CONTRACT_ERROR_NOT_MEMBER,
    CONTRACT_ERROR_PROPOSAL_NOT_FOUND,
    CONTRACT_ERROR_ROOT_MISMATCH,
    CONTRACT_ERROR_ROOT_NOT_IN_HISTORY,
    CONTRACT_ERROR_ROOT_PREDATES_PROPOSAL,
    G1_HEX_CHARS,
    G2_HEX_CHARS,
    MAX_ERROR_CHARS,
    VOTE_PATH,
)
from .encoding import WireProof, decode_scalar
from .errors import EncodingError, SchemaError

_CONTRACT_ERROR_RE = re.compile(r"Error\(Contract, #(\d+)\)")


def _require_id(value: Any, field: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise SchemaError(f"{field} must be an integer")
    if value < 0 or value > MAX_ID:
        raise SchemaError(f"{field} out of range")


def _require_scalar(value: Any, field: str) -> None:
    if not isinstance(value, str):
        raise SchemaError(f"{field} must be a hex string")
    try:
        parsed = decode_scalar(value)
    except EncodingError as exc:
        raise SchemaError(f"{field} must be hex") from exc
    if len(value) != 64 or parsed >= FIELD_MODULUS:
        raise SchemaError(f"{field} must be a 64-char hex field element")


def _require_proof(proof: WireProof) -> None:
    for name, value, length in (
        ("proof.a", proof.a, G1_HEX_CHARS),
        ("proof.b", proof.b, G2_HEX_CHARS),
        ("proof.c", proof.c, G1_HEX_CHARS),
    ):
        if not isinstance(value, str) or len(value) != length:
            raise SchemaError(f"{name} must be {length} hex chars")
        if set(value) <= {"0"}:
            raise SchemaError(f"{name} cannot be the point at infinity")


def is_valid_cid(value: str) -> bool:
    if value.startswith(CIDV0_PREFIX) and len(value) >= CIDV0_MIN_LENGTH:
        return True
    if value.startswith(CIDV1_PREFIXES) and len(value) >= CIDV1_MIN_LENGTH:
        return True
    return False


@dataclass(frozen=True)
class VoteSubmission:
    dao_id: int
    proposal_id: int
    choice: bool
    nullifier: str
    root: str
    proof: WireProof

    path = VOTE_PATH

    def validate(self) -> None:
        _require_id(self.dao_id, "daoId")
        _require_id(self.proposal_id, "proposalId")
        if not isinstance(self.choice, bool):
            raise SchemaError("choice must be a boolean")
        _require_scalar(self.nullifier, "nullifier")
        _require_scalar(self.root, "root")
        _require_proof(self.proof)

    def to_json(self) -> Dict[str, Any]:
        self.validate()
        return {
            "daoId": self.dao_id,
            "proposalId": self.proposal_id,
            "choice": self.choice,
            "nullifier": self.nullifier,
            "root": self.root,
            "proof": self.proof.to_json(),
        }


@dataclass(frozen=True)
class CommentSubmission:
    dao_id: int
    proposal_id: int
    content_cid: str
    parent_id: Optional[int]
    nullifier: str
    root: str
    commitment: str
    proof: WireProof

    path = COMMENT_PATH

    def validate(self) -> None:
        _require_id(self.dao_id, "daoId")
        _require_id(self.proposal_id, "proposalId")
        if not isinstance(self.content_cid, str) or not is_valid_cid(self.content_cid):
            raise SchemaError("contentCid must be an IPFS CID")
        if self.parent_id is not None:
            _require_id(self.parent_id, "parentId")
        _require_scalar(self.nullifier, "nullifier")
        _require_scalar(self.root, "root")
        _require_scalar(self.commitment, "commitment")
        _require_proof(self.proof)

    def to_json(self) -> Dict[str, Any]:
        self.validate()
        return {
            "daoId": self.dao_id,
            "proposalId": self.proposal_id,
            "contentCid": self.content_cid,
            "parentId": self.parent_id,
            "voteChoice": False,
            "nullifier": self.nullifier,
            "root": self.root,
            "commitment": self.commitment,
            "proof": self.proof.to_json(),
        }


# ============================================================================
# RESPONSES
# ============================================================================


class ResponseKind(str, Enum):
    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"
    INELIGIBLE = "ineligible"
    REVOKED = "revoked"
    CLOSED = "closed"
    NOT_FOUND = "not_found"
    INVALID_PROOF = "invalid_proof"
    TRANSIENT = "transient"
    AMBIGUOUS = "ambiguous"
    REJECTED = "rejected"


@dataclass(frozen=True)
class RelayResponse:
    status_code: int
    body: Mapping[str, Any]

    @property
    def error(self) -> str:
        value = self.body.get("error")
        return str(value)[:MAX_ERROR_CHARS] if value else ""

    @property
    def details(self) -> str:
        value = self.body.get("details")
        return str(value)[:MAX_ERROR_CHARS] if value else ""

    @property
    def tx_hash(self) -> Optional[str]:
        value = self.body.get("txHash")
        return str(value) if value else None

    def contract_error(self) -> Optional[int]:
        match = _CONTRACT_ERROR_RE.search(f"{self.error} {self.details}")
        return int(match.group(1)) if match else None


_CONTRACT_KINDS = {
    CONTRACT_ERROR_NOT_MEMBER: ResponseKind.INELIGIBLE,
    CONTRACT_ERROR_COMMITMENT_REVOKED: ResponseKind.REVOKED,
    CONTRACT_ERROR_ROOT_NOT_IN_HISTORY: ResponseKind.INELIGIBLE,
    CONTRACT_ERROR_INVALID_PROOF: ResponseKind.INVALID_PROOF,
    CONTRACT_ERROR_PROPOSAL_NOT_FOUND: ResponseKind.NOT_FOUND,
    CONTRACT_ERROR_ROOT_MISMATCH: ResponseKind.INELIGIBLE,
    CONTRACT_ERROR_ROOT_PREDATES_PROPOSAL: ResponseKind.INELIGIBLE,
}


def classify_response(response: RelayResponse) -> ResponseKind:
    """Map a relay HTTP response onto the submission outcome taxonomy."""
    status = response.status_code
    text = f"{response.error} {response.details}".lower()

    if 200 <= status < 300:
        if response.body.get("success", True) is False:
            return ResponseKind.REJECTED
        return ResponseKind.ACCEPTED

    if status == 504:
        return ResponseKind.AMBIGUOUS
    if status in (429, 500, 502, 503):
        return ResponseKind.TRANSIENT

    if "already voted" in text:
        return ResponseKind.DUPLICATE
    if "voting period" in text:
        return ResponseKind.CLOSED
    if status == 404 or "not found" in text:
        return ResponseKind.NOT_FOUND
    if "not eligible" in text or "root must match" in text:
        return ResponseKind.INELIGIBLE
    if "revoked" in text:
        return ResponseKind.REVOKED

    code = response.contract_error()
    if code in _CONTRACT_KINDS:
        return _CONTRACT_KINDS[code]

    if "invalid" in text and "proof" in text:
        return ResponseKind.INVALID_PROOF
    if "proof verification failed" in text:
        return ResponseKind.INVALID_PROOF
    return ResponseKind.REJECTED
