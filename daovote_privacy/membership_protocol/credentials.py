"""Deterministic derivation of per-group membership credentials."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from .config import DERIVATION_MESSAGE_PREFIX, DOMAIN_SEPARATORS
from .exceptions import (
    CapabilityRefused,
    CapabilityUnavailable,
    CredentialDerivationFailed,
)
from .field import hash_to_field
from .poseidon import poseidon_hash
from .types import Credentials, require_id

logger = logging.getLogger(__name__)


@runtime_checkable
class SigningCapability(Protocol):
    """A wallet able to sign arbitrary messages deterministically."""

    @property
    def identity(self) -> str: ...

    async def sign_message(self, message: bytes) -> bytes: ...


class Ed25519SigningCapability:
    """
    Local Ed25519 signer.

    Ed25519 signatures are deterministic (RFC 8032), so the same key always
    derives the same credentials.
    """

    def __init__(self, private_key: Ed25519PrivateKey):
        self._private_key = private_key
        public_bytes = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        self._identity = public_bytes.hex()

    @classmethod
    def generate(cls) -> "Ed25519SigningCapability":
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_seed(cls, seed: bytes) -> "Ed25519SigningCapability":
        if len(seed) != 32:
            raise ValueError("Ed25519 seed must be 32 bytes")
        return cls(Ed25519PrivateKey.from_private_bytes(seed))

    @classmethod
    def from_file(cls, path: str | Path) -> "Ed25519SigningCapability":
        """Load a PEM private key or a 32-byte hex seed."""
        data = Path(path).read_bytes()
        if data.lstrip().startswith(b"-----BEGIN"):
            key = serialization.load_pem_private_key(data, password=None)
            if not isinstance(key, Ed25519PrivateKey):
                raise ValueError("key file does not contain an Ed25519 key")
            return cls(key)
        return cls.from_seed(bytes.fromhex(data.decode("ascii").strip()))

    @property
    def identity(self) -> str:
        return self._identity

    async def sign_message(self, message: bytes) -> bytes:
        return self._private_key.sign(message)


def derivation_message(group_id: int) -> bytes:
    return f"{DERIVATION_MESSAGE_PREFIX}{group_id}".encode("utf-8")


def compute_commitment(secret: int, salt: int) -> int:
    """Commitment = Poseidon(secret, salt)."""
    return poseidon_hash(secret, salt)


class CredentialDeriver:
    """
    Derive ``(secret, salt, commitment)`` from a deterministic signature.

    The same signer and group always produce the same credentials, so they can
    be recovered on any device. There is no random fallback: a signer that
    cannot produce a stable signature fails derivation.
    """

    def __init__(self, check_stability: bool = False):
        self._check_stability = check_stability

    async def derive(self, signer: Optional[SigningCapability], group_id: int) -> Credentials:
        if signer is None:
            raise CredentialDerivationFailed(
                "no signing capability", user_message=CapabilityUnavailable.default_message
            )
        require_id(group_id, "group_id")
        message = derivation_message(group_id)

        signature = await self._sign(signer, message)
        if self._check_stability:
            second = await self._sign(signer, message)
            if second != signature:
                raise CredentialDerivationFailed(
                    "signer produced non-deterministic signatures"
                )

        secret = hash_to_field(DOMAIN_SEPARATORS["secret"], signature)
        salt = hash_to_field(DOMAIN_SEPARATORS["salt"], signature)
        if secret == 0 or salt == 0:
            raise CredentialDerivationFailed("derived a zero field element")

        commitment = compute_commitment(secret, salt)
        logger.debug("derived credentials for group %s (commitment %s...)", group_id, hex(commitment)[:12])
        return Credentials(secret=secret, salt=salt, commitment=commitment)

    async def _sign(self, signer: SigningCapability, message: bytes) -> bytes:
        try:
            signature = await signer.sign_message(message)
        except CapabilityRefused as exc:
            raise CredentialDerivationFailed(
                "signature request refused", user_message=exc.user_message
            ) from exc
        except CredentialDerivationFailed:
            raise
        except Exception as exc:
            raise CredentialDerivationFailed(f"signing failed: {exc}") from exc
        if not isinstance(signature, (bytes, bytearray)) or not signature:
            raise CredentialDerivationFailed("signer returned an empty signature")
        return bytes(signature)
