"""
Custom exceptions for the anonymous membership-proof pipeline.

Each error carries a ``user_message`` that is safe to show to the member.
The message never contains secret material and names a concrete next step
where one exists.
"""

from __future__ import annotations

from typing import Optional


class DaoPrivacyError(Exception):
    """Base exception for membership-proof pipeline errors."""

    default_message = "The anonymous action could not be completed."

    def __init__(self, detail: Optional[str] = None, *, user_message: Optional[str] = None):
        self.detail = detail
        self.user_message = user_message or self.default_message
        super().__init__(detail or self.user_message)


class ConfigurationError(DaoPrivacyError):
    """Configuration error."""

    default_message = "The client configuration is invalid."


# ============================================================================
# CAPABILITY
# ============================================================================


class CapabilityError(DaoPrivacyError):
    """Problems with the member's signing capability."""

    pass


class CredentialDerivationFailed(CapabilityError):
    """The wallet could not produce a usable derivation signature."""

    default_message = (
        "Could not derive your anonymous credentials. "
        "Make sure your wallet supports message signing and approve the request."
    )


class CapabilityRefused(CapabilityError):
    """The member declined to sign or authorise a request."""

    default_message = "The request was declined in your wallet."


class CapabilityUnavailable(CapabilityError):
    """No signing capability is connected."""

    default_message = "Connect a wallet to continue."


# ============================================================================
# LEDGER CONSISTENCY
# ============================================================================


class LedgerError(DaoPrivacyError):
    """An error reported by the ledger."""

    default_message = "The ledger rejected the request."


class CommitmentExists(LedgerError):
    """The commitment is already registered in the group tree."""

    default_message = "You are already registered for anonymous actions in this group."


class StaleSequenceError(LedgerError):
    """The submitted transaction used an outdated account sequence."""

    default_message = "The network was busy. Please retry."


class RegistrationUnconfirmed(LedgerError):
    """The registration write was sent but its leaf could not be observed."""

    default_message = (
        "Your registration was submitted but is not visible yet. "
        "Wait a few seconds and try again; registering twice is safe."
    )


class RetryExhausted(DaoPrivacyError):
    """All retry attempts failed."""

    def __init__(self, label: str, attempts: int, last_error: BaseException):
        self.label = label
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{label} failed after {attempts} attempts: {last_error}")


# ============================================================================
# ELIGIBILITY
# ============================================================================


class EligibilityError(DaoPrivacyError):
    """The member may not act in this context."""

    pass


class NotRegistered(EligibilityError):
    """No commitment for this member exists in the group tree."""

    default_message = "You are not registered for anonymous actions in this group yet."


class NotEligible(EligibilityError):
    """The member's commitment is not part of the eligibility root."""

    default_message = (
        "You are not eligible for this proposal. "
        "You joined the group after its membership snapshot was taken."
    )


class MembershipRevoked(EligibilityError):
    """The member's commitment was removed from the group tree."""

    default_message = "Your membership in this group has been revoked."


class VotingClosed(EligibilityError):
    """The action context no longer accepts submissions."""

    default_message = "The voting period for this proposal has ended."


class ProposalNotFound(EligibilityError):
    """The action context does not exist."""

    default_message = "This proposal does not exist."


# ============================================================================
# PROTOCOL INVARIANTS
# ============================================================================


class ProtocolInvariantError(DaoPrivacyError):
    """A local protocol invariant was violated. Never retried."""

    default_message = "An internal error prevented the proof from being created."


class InvalidNullifier(ProtocolInvariantError):
    """The derived nullifier is zero or not a field element."""

    pass


class WitnessConstructionFailed(ProtocolInvariantError):
    """The circuit witness could not be built from the inputs."""

    pass


class ProofArtifactUnavailable(ProtocolInvariantError):
    """Circuit artifacts or the prover are missing or corrupt."""

    default_message = "The proving files could not be loaded. Reinstall the circuit artifacts."


class ProofInternallyInvalid(ProtocolInvariantError):
    """A freshly generated proof did not pass local verification."""

    default_message = "The generated proof failed local verification and was not submitted."


# ============================================================================
# SUBMISSION
# ============================================================================


class SubmissionError(DaoPrivacyError):
    """Errors while handing a proof to the relay."""

    pass


class ProofRejected(SubmissionError):
    """The relay or ledger rejected the proof as invalid."""

    default_message = "The ledger rejected the proof."


class RelayUnavailable(SubmissionError):
    """The relay could not be reached after retrying."""

    default_message = "The relay is unavailable. Please try again later."


class RelayRequestFailed(SubmissionError):
    """The relay rejected the request for an unclassified reason."""

    default_message = "The submission failed."
