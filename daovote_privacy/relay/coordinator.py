"""Submission of locally verified proofs through the relay."""

from __future__ import annotations

import logging
from typing import Optional, Union

import httpx
import trio

from ..membership_protocol.exceptions import (
    LedgerError,
    MembershipRevoked,
    NotEligible,
    ProofRejected,
    ProposalNotFound,
    RelayRequestFailed,
    RelayUnavailable,
    RetryExhausted,
    VotingClosed,
)
from ..membership_protocol.ledger import LedgerReader
from ..membership_protocol.retry import SUBMISSION_RETRY, RetryPolicy
from ..membership_protocol.types import (
    CommentAction,
    EligibilityPolicy,
    ProofBundle,
    SubmissionOutcome,
    SubmissionStatus,
    VoteAction,
)
from .client import RelayClient, Submission
from .encoding import PointEncoding, encode_proof, encode_scalar
from .messages import CommentSubmission, ResponseKind, VoteSubmission, classify_response

logger = logging.getLogger(__name__)

Action = Union[VoteAction, CommentAction]

_LIVE_INELIGIBLE_MESSAGE = (
    "Your membership is not part of this group's current tree. "
    "If you just registered, wait a moment and try again."
)


def build_submission(
    bundle: ProofBundle,
    action: Action,
    encoding: PointEncoding = PointEncoding.BIG_ENDIAN,
) -> Submission:
    """Wire request for ``bundle``; every value comes from the proof's public signals."""
    wire_proof = encode_proof(bundle.proof, encoding)
    nullifier = encode_scalar(bundle.signal("nullifier"))
    root = encode_scalar(bundle.signal("root"))
    if isinstance(action, VoteAction):
        return VoteSubmission(
            dao_id=bundle.signal("daoId"),
            proposal_id=bundle.signal("proposalId"),
            choice=bool(bundle.signal("voteChoice")),
            nullifier=nullifier,
            root=root,
            proof=wire_proof,
        )
    return CommentSubmission(
        dao_id=bundle.signal("daoId"),
        proposal_id=bundle.signal("proposalId"),
        content_cid=action.content_cid,
        parent_id=action.parent_id,
        nullifier=nullifier,
        root=root,
        commitment=encode_scalar(bundle.signal("commitment")),
        proof=wire_proof,
    )


class _RetryableSend(Exception):
    pass


class SubmissionCoordinator:
    """
    Deliver a proof to the relay and turn the reply into an outcome.

    Once the first request is sent the whole exchange runs in a shielded
    cancel scope, backoff and reconciliation included, and is awaited to an
    outcome or a terminal error. After an ambiguous failure (confirmation
    timeout, connection dropped mid-request) a single-use action is
    reconciled through the ledger's nullifier set or a later duplicate reply.
    """

    def __init__(
        self,
        client: RelayClient,
        ledger: Optional[LedgerReader] = None,
        retry: RetryPolicy = SUBMISSION_RETRY,
        encoding: PointEncoding = PointEncoding.BIG_ENDIAN,
    ):
        retry.validate()
        self._client = client
        self._ledger = ledger
        self._retry = retry
        self._encoding = encoding

    async def submit(self, bundle: ProofBundle, action: Action) -> SubmissionOutcome:
        submission = build_submission(bundle, action, self._encoding)
        submission.validate()
        with trio.CancelScope(shield=True):
            return await self._exchange(submission, bundle.signal("nullifier"), action)

    async def _exchange(
        self, submission: Submission, nullifier: int, action: Action
    ) -> SubmissionOutcome:
        single_use = action.kind.single_use
        attempt = 0
        ambiguous_sent = False

        def _spent(detail: str) -> SubmissionOutcome:
            status = SubmissionStatus.RECONCILED if ambiguous_sent else SubmissionStatus.DUPLICATE
            logger.info("nullifier already spent (%s)", status.value)
            return SubmissionOutcome(
                status=status, nullifier=nullifier, detail=detail, attempts=attempt
            )

        async def _attempt() -> SubmissionOutcome:
            nonlocal attempt, ambiguous_sent
            attempt += 1
            kind, response, detail = await self._send(submission)

            if kind is ResponseKind.ACCEPTED:
                logger.info("%s accepted by relay", action.kind.value)
                return SubmissionOutcome(
                    status=SubmissionStatus.ACCEPTED,
                    nullifier=nullifier,
                    tx_hash=response.tx_hash if response else None,
                    attempts=attempt,
                )
            if kind is ResponseKind.DUPLICATE and single_use:
                return _spent(detail)
            if kind in (ResponseKind.TRANSIENT, ResponseKind.AMBIGUOUS):
                if kind is ResponseKind.AMBIGUOUS:
                    ambiguous_sent = True
                    if not single_use:
                        # Multi-use actions have no nullifier to reconcile against
                        raise RelayUnavailable(
                            detail,
                            user_message="The relay timed out. Your comment may have been posted; "
                            "check the proposal before posting again.",
                        )
                if single_use and await self._nullifier_spent(action, nullifier):
                    return _spent(detail)
                raise _RetryableSend(f"relay {kind.value}: {detail}")

            self._raise_terminal(kind, detail, action)

        try:
            return await self._retry.run(
                _attempt, retry_on=(_RetryableSend,), label=f"{action.kind.value} submission"
            )
        except RetryExhausted as exc:
            raise RelayUnavailable(
                f"relay unavailable after {exc.attempts} attempts: {exc.last_error}"
            ) from exc

    async def _send(self, submission: Submission):
        try:
            response = await self._client.submit(submission)
        except (httpx.ConnectError, httpx.ConnectTimeout) as exc:
            return ResponseKind.TRANSIENT, None, f"connection failed: {exc}"
        except httpx.TransportError as exc:
            return ResponseKind.AMBIGUOUS, None, f"request interrupted: {exc}"
        kind = classify_response(response)
        detail = response.error or f"HTTP {response.status_code}"
        return kind, response, detail

    async def _nullifier_spent(self, action: Action, nullifier: int) -> bool:
        if self._ledger is None:
            return False
        try:
            return await self._ledger.is_nullifier_used(
                action.group_id, action.context_id, nullifier
            )
        except (LedgerError, httpx.TransportError, OSError) as exc:
            logger.warning("nullifier reconciliation read failed: %s", exc)
            return False

    def _raise_terminal(self, kind: ResponseKind, detail: str, action: Action) -> None:
        if kind is ResponseKind.INELIGIBLE:
            if action.policy is EligibilityPolicy.LIVE:
                raise NotEligible(detail, user_message=_LIVE_INELIGIBLE_MESSAGE)
            raise NotEligible(detail)
        if kind is ResponseKind.REVOKED:
            raise MembershipRevoked(detail)
        if kind is ResponseKind.CLOSED:
            raise VotingClosed(detail)
        if kind is ResponseKind.NOT_FOUND:
            raise ProposalNotFound(detail)
        if kind is ResponseKind.INVALID_PROOF:
            raise ProofRejected(detail)
        raise RelayRequestFailed(detail, user_message=f"The submission failed: {detail}")
