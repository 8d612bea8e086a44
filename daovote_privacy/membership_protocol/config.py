"""
Protocol configuration for anonymous DAO membership proofs.

Every value here is shared with the deployed circuits and ledger contracts.
Changing one without rebuilding the circuit artifacts and redeploying the
verifier breaks proof verification.
"""

# ============================================================================
# FIELD
# ============================================================================

# BN254 scalar field (the field the Groth16 circuits are defined over)
FIELD_MODULUS = 21888242871839275222246405745257275088548364400416034343698204186575808495617
FIELD_BITS = 254
FIELD_HEX_WIDTH = 64  # 32 bytes, big-endian

# Group and context identifiers are u64 on the ledger
MAX_ID = 2**64 - 1

# ============================================================================
# POSEIDON (circomlib-compatible)
# ============================================================================

POSEIDON_FULL_ROUNDS = 8
POSEIDON_SBOX_EXPONENT = 5

# Partial rounds for state width t = 2..17, indexed by t - 2
POSEIDON_PARTIAL_ROUNDS = (
    56, 57, 56, 60, 60, 63, 64, 63, 60, 66, 60, 65, 70, 60, 64, 68,
)

POSEIDON_MAX_INPUTS = len(POSEIDON_PARTIAL_ROUNDS)

# ============================================================================
# MERKLE TREE
# ============================================================================

# Matches MAX_TREE_DEPTH of the membership-tree contract
TREE_DEPTH = 18
ZERO_LEAF = 0

# Number of historical roots retained by the ledger
MAX_ROOT_HISTORY = 30

# ============================================================================
# CREDENTIAL DERIVATION
# ============================================================================

DERIVATION_MESSAGE_PREFIX = "derive-credentials:"

DOMAIN_SEPARATORS = {
    "secret": b"secret",
    "salt": b"salt",
}

# ============================================================================
# RETRY DEFAULTS
# ============================================================================

# Ledger reads after a write: indexers may lag the confirmed transaction
LEAF_INDEX_ATTEMPTS = 6
LEAF_INDEX_DELAY_SECONDS = 2.0

# Registration writes rebuilt on a stale account sequence
STALE_SEQUENCE_ATTEMPTS = 3
STALE_SEQUENCE_DELAY_SECONDS = 1.0

# Relay submissions on transient failures
SUBMISSION_ATTEMPTS = 3
SUBMISSION_BASE_DELAY_SECONDS = 1.0
SUBMISSION_MAX_DELAY_SECONDS = 8.0

# ============================================================================
# PROVER
# ============================================================================

DEFAULT_PROVER_COMMAND = "snarkjs"
DEFAULT_PROVER_TIMEOUT = 120

# ============================================================================
# VALIDATION
# ============================================================================


def validate_config() -> bool:
    """
    Validate configuration parameters.

    Returns:
        True if configuration is valid

    Raises:
        AssertionError: If configuration is invalid
    """
    assert FIELD_MODULUS.bit_length() == FIELD_BITS, "Field size mismatch"
    assert FIELD_HEX_WIDTH * 4 >= FIELD_BITS, "Hex width too small for field"
    assert 1 <= TREE_DEPTH <= 32, "Unsupported tree depth"
    assert MAX_ROOT_HISTORY >= 1, "Root history must retain the current root"
    assert MAX_ID < FIELD_MODULUS, "Identifiers must embed in the field"
    assert POSEIDON_MAX_INPUTS >= 3, "Nullifier needs a 3-input Poseidon"
    assert LEAF_INDEX_ATTEMPTS >= 1 and SUBMISSION_ATTEMPTS >= 1

    return True


# Auto-validate on import
validate_config()
