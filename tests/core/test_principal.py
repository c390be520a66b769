"""Tests for principals and key pairs."""

import pytest
from cryptography.exceptions import InvalidSignature

from lnbridge.core.principal import (
    ED25519_PUB,
    P256_PUB,
    InMemoryKeyStore,
    KeyPair,
    Principal,
)
from lnbridge.exceptions import NotFoundError, ValidationError


class TestPrincipal:
    """String form, parsing and key extraction."""

    def test_ed25519_string_form(self, alice_key):
        text = str(alice_key.principal)

        assert text.startswith("z6Mk")
        assert Principal.decode(text) == alice_key.principal

    def test_explode(self, alice_key):
        codec, key = alice_key.principal.explode()

        assert codec == ED25519_PUB
        assert len(key) == 32
        assert alice_key.principal.raw[:2] == b"\xed\x01"

    def test_p256_principal(self):
        principal = Principal.from_public_key(P256_PUB, b"\x02" + b"\x11" * 32)

        decoded = Principal.decode(str(principal))

        assert decoded.explode() == (P256_PUB, b"\x02" + b"\x11" * 32)

    @pytest.mark.parametrize(
        "text",
        ["", "abc", "z", "z0OIl", "zQmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"],
    )
    def test_invalid(self, text):
        with pytest.raises(ValidationError):
            Principal.decode(text)

    def test_wrong_key_length(self):
        principal = Principal.from_public_key(ED25519_PUB, b"\x01" * 31)

        with pytest.raises(ValidationError):
            Principal.decode(str(principal))


class TestKeyPair:
    """Signing keys."""

    def test_from_seed_is_deterministic(self):
        seed = b"\x07" * 32

        assert KeyPair.from_seed(seed).principal == KeyPair.from_seed(seed).principal

    def test_sign_and_verify(self, alice_key):
        signature = alice_key.sign(b"hello")

        alice_key.verify(signature, b"hello")
        with pytest.raises(InvalidSignature):
            alice_key.verify(signature, b"other")

    def test_distinct_accounts(self, alice_key, bob_key):
        assert alice_key.principal != bob_key.principal


class TestInMemoryKeyStore:
    def test_lookup(self, keystore, alice, alice_key):
        assert keystore.get_key(alice) is alice_key

    def test_unknown_account(self):
        with pytest.raises(NotFoundError):
            InMemoryKeyStore().get_key("z6MkUnknown")
