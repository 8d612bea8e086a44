"""Tests for credential derivation and the capability context."""

from __future__ import annotations

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from daovote_privacy.membership_protocol.capability import (
    Authenticated,
    ReadOnly,
    require_authenticated,
    resolve_capability,
)
from daovote_privacy.membership_protocol.credentials import (
    CredentialDeriver,
    Ed25519SigningCapability,
    SigningCapability,
    compute_commitment,
    derivation_message,
)
from daovote_privacy.membership_protocol.exceptions import (
    CapabilityRefused,
    CapabilityUnavailable,
    CredentialDerivationFailed,
)
from daovote_privacy.membership_protocol.poseidon import poseidon_hash

SEED = bytes(range(32))


class RefusingSigner:
    identity = "refuser"

    async def sign_message(self, message: bytes) -> bytes:
        raise CapabilityRefused("user rejected", user_message="You declined the signature request.")


class RandomizedSigner:
    """Produces a different signature on every call."""

    identity = "randomized"

    def __init__(self):
        self.counter = 0

    async def sign_message(self, message: bytes) -> bytes:
        self.counter += 1
        return message + bytes([self.counter])


class BrokenSigner:
    identity = "broken"

    async def sign_message(self, message: bytes) -> bytes:
        raise RuntimeError("device disconnected")


class EmptySigner:
    identity = "empty"

    async def sign_message(self, message: bytes) -> bytes:
        return b""


def test_derivation_message_names_the_group():
    assert derivation_message(7) == b"derive-credentials:7"


def test_ed25519_signer_satisfies_protocol():
    assert isinstance(Ed25519SigningCapability.from_seed(SEED), SigningCapability)


def test_seed_must_be_32_bytes():
    with pytest.raises(ValueError):
        Ed25519SigningCapability.from_seed(b"short")


def test_signer_from_hex_seed_file(tmp_path):
    path = tmp_path / "member.key"
    path.write_text(SEED.hex() + "\n")
    assert Ed25519SigningCapability.from_file(path).identity == Ed25519SigningCapability.from_seed(SEED).identity


def test_signer_from_pem_file(tmp_path):
    key = Ed25519PrivateKey.from_private_bytes(SEED)
    pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    path = tmp_path / "member.pem"
    path.write_bytes(pem)
    assert Ed25519SigningCapability.from_file(path).identity == Ed25519SigningCapability.from_seed(SEED).identity


@pytest.mark.trio
async def test_derive_is_deterministic():
    deriver = CredentialDeriver()
    first = await deriver.derive(Ed25519SigningCapability.from_seed(SEED), 7)
    second = await deriver.derive(Ed25519SigningCapability.from_seed(SEED), 7)
    assert first == second
    assert first.leaf_index is None


@pytest.mark.trio
async def test_commitment_binds_secret_and_salt():
    creds = await CredentialDeriver().derive(Ed25519SigningCapability.from_seed(SEED), 7)
    assert creds.commitment == poseidon_hash(creds.secret, creds.salt)
    assert creds.commitment == compute_commitment(creds.secret, creds.salt)
    assert compute_commitment(creds.secret + 1, creds.salt) != creds.commitment
    assert compute_commitment(creds.secret, creds.salt + 1) != creds.commitment


@pytest.mark.trio
async def test_groups_get_independent_credentials():
    signer = Ed25519SigningCapability.from_seed(SEED)
    deriver = CredentialDeriver()
    group_a = await deriver.derive(signer, 7)
    group_b = await deriver.derive(signer, 8)
    assert group_a.secret != group_b.secret
    assert group_a.commitment != group_b.commitment


@pytest.mark.trio
async def test_secret_material_not_in_repr():
    creds = await CredentialDeriver().derive(Ed25519SigningCapability.from_seed(SEED), 7)
    text = repr(creds)
    assert str(creds.secret) not in text
    assert str(creds.salt) not in text
    assert str(creds.commitment) in text


@pytest.mark.trio
async def test_missing_signer_fails():
    with pytest.raises(CredentialDerivationFailed) as excinfo:
        await CredentialDeriver().derive(None, 7)
    assert excinfo.value.user_message == CapabilityUnavailable.default_message


@pytest.mark.trio
async def test_refusal_keeps_user_message():
    with pytest.raises(CredentialDerivationFailed) as excinfo:
        await CredentialDeriver().derive(RefusingSigner(), 7)
    assert excinfo.value.user_message == "You declined the signature request."
    assert isinstance(excinfo.value.__cause__, CapabilityRefused)


@pytest.mark.trio
async def test_signer_errors_are_wrapped():
    with pytest.raises(CredentialDerivationFailed):
        await CredentialDeriver().derive(BrokenSigner(), 7)


@pytest.mark.trio
async def test_empty_signature_fails():
    with pytest.raises(CredentialDerivationFailed):
        await CredentialDeriver().derive(EmptySigner(), 7)


@pytest.mark.trio
async def test_stability_check_rejects_nondeterministic_signer():
    with pytest.raises(CredentialDerivationFailed):
        await CredentialDeriver(check_stability=True).derive(RandomizedSigner(), 7)


@pytest.mark.trio
async def test_invalid_group_id():
    signer = Ed25519SigningCapability.from_seed(SEED)
    with pytest.raises(ValueError):
        await CredentialDeriver().derive(signer, -1)
    with pytest.raises(TypeError):
        await CredentialDeriver().derive(signer, "7")


class TestCapabilityContext:
    def test_resolve_without_signer_is_read_only(self):
        assert isinstance(resolve_capability(None), ReadOnly)

    def test_resolve_with_signer_is_authenticated(self):
        signer = Ed25519SigningCapability.from_seed(SEED)
        ctx = resolve_capability(signer)
        assert isinstance(ctx, Authenticated)
        assert ctx.identity == signer.identity

    def test_read_only_cannot_act(self):
        with pytest.raises(CapabilityUnavailable):
            require_authenticated(ReadOnly())
