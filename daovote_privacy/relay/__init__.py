"""Relay wire schemas, HTTP client and submission coordination."""

from .client import RelayClient
from .constants import COMMENT_PATH, HEALTH_PATH, VOTE_PATH
from .coordinator import SubmissionCoordinator, build_submission
from .encoding import PointEncoding, WireProof, decode_proof, encode_proof
from .errors import EncodingError, SchemaError, WireFormatError
from .messages import (
    CommentSubmission,
    RelayResponse,
    ResponseKind,
    VoteSubmission,
    classify_response,
)

__all__ = [
    "VOTE_PATH",
    "COMMENT_PATH",
    "HEALTH_PATH",
    "WireFormatError",
    "SchemaError",
    "EncodingError",
    "PointEncoding",
    "WireProof",
    "encode_proof",
    "decode_proof",
    "VoteSubmission",
    "CommentSubmission",
    "RelayResponse",
    "ResponseKind",
    "classify_response",
    "RelayClient",
    "SubmissionCoordinator",
    "build_submission",
]
