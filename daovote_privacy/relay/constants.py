"""Relay API constants."""

from __future__ import annotations

VOTE_PATH = "/vote"
COMMENT_PATH = "/comment/anonymous"
HEALTH_PATH = "/health"

# G1 = 64 bytes, G2 = 128 bytes, hex-encoded
G1_HEX_CHARS = 128
G2_HEX_CHARS = 256

CIDV0_PREFIX = "Qm"
CIDV0_MIN_LENGTH = 46
CIDV1_PREFIXES = ("bafy", "bafk")
CIDV1_MIN_LENGTH = 59

MAX_ERROR_CHARS = 512

# Ledger contract error codes surfaced in relay error details
CONTRACT_ERROR_NOT_MEMBER = 5
CONTRACT_ERROR_COMMITMENT_REVOKED = 9
CONTRACT_ERROR_ROOT_NOT_IN_HISTORY = 12
CONTRACT_ERROR_INVALID_PROOF = 15
CONTRACT_ERROR_PROPOSAL_NOT_FOUND = 28
CONTRACT_ERROR_ROOT_MISMATCH = 29
CONTRACT_ERROR_ROOT_PREDATES_PROPOSAL = 30
