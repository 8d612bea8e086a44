"""Capability context resolved once per session."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from .credentials import SigningCapability
from .exceptions import CapabilityUnavailable


@dataclass(frozen=True)
class Authenticated:
    """A connected signer that may derive credentials and write to the ledger."""

    signer: SigningCapability

    @property
    def identity(self) -> str:
        return self.signer.identity


@dataclass(frozen=True)
class ReadOnly:
    """No signer; only ledger reads are possible."""

    reason: str = "no wallet connected"


CapabilityContext = Union[Authenticated, ReadOnly]


def resolve_capability(signer: Optional[SigningCapability]) -> CapabilityContext:
    if signer is None:
        return ReadOnly()
    return Authenticated(signer=signer)


def require_authenticated(ctx: CapabilityContext) -> Authenticated:
    if isinstance(ctx, Authenticated):
        return ctx
    raise CapabilityUnavailable(getattr(ctx, "reason", "not authenticated"))
