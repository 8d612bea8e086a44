"""Idempotent registration of a commitment in the group tree."""

from __future__ import annotations

import logging

from .capability import CapabilityContext, require_authenticated
from .exceptions import (
    CommitmentExists,
    RegistrationUnconfirmed,
    RetryExhausted,
    StaleSequenceError,
)
from .ledger import LedgerReader, LedgerWriter
from .retry import LEAF_INDEX_RETRY, STALE_SEQUENCE_RETRY, RetryPolicy

logger = logging.getLogger(__name__)


class _LeafNotVisible(Exception):
    pass


class CommitmentRegistrar:
    """
    Make a commitment a leaf of the group tree and return its index.

    Registering an already-registered commitment is a success. The index is
    always read back from the ledger, never taken from the write itself.
    """

    def __init__(
        self,
        reader: LedgerReader,
        writer: LedgerWriter,
        write_retry: RetryPolicy = STALE_SEQUENCE_RETRY,
        lookup_retry: RetryPolicy = LEAF_INDEX_RETRY,
    ):
        self._reader = reader
        self._writer = writer
        self._write_retry = write_retry
        self._lookup_retry = lookup_retry

    async def register(self, ctx: CapabilityContext, group_id: int, commitment: int) -> int:
        auth = require_authenticated(ctx)

        async def _write() -> None:
            await self._writer.register(group_id, commitment, auth.identity)

        try:
            await self._write_retry.run(
                _write, retry_on=(StaleSequenceError,), label="commitment registration"
            )
            logger.info("registered commitment in group %s", group_id)
        except CommitmentExists:
            logger.info("commitment already registered in group %s; recovering index", group_id)
        except RetryExhausted as exc:
            raise exc.last_error from exc

        return await self.lookup(group_id, commitment)

    async def lookup(self, group_id: int, commitment: int) -> int:
        """
        Resolve the leaf index of a registered commitment.

        Raises:
            RegistrationUnconfirmed: The commitment never became visible
        """

        async def _read() -> int:
            index = await self._reader.get_leaf_index(group_id, commitment)
            if index is None:
                raise _LeafNotVisible("commitment not visible yet")
            return index

        try:
            return await self._lookup_retry.run(
                _read, retry_on=(_LeafNotVisible,), label="leaf index lookup"
            )
        except RetryExhausted as exc:
            raise RegistrationUnconfirmed(
                f"leaf index not visible after {exc.attempts} attempts"
            ) from exc
