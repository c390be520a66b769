"""Network principals and the key pairs behind them.

A principal is a public key prefixed with its multicodec varint and rendered
as multibase base58btc, which gives ed25519 accounts their familiar
``z6Mk...`` shape.
"""

from dataclasses import dataclass
from typing import Protocol

import base58
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from lnbridge.exceptions import NotFoundError, ValidationError

BASE58BTC_PREFIX = "z"

ED25519_PUB = 0xED
P256_PUB = 0x1200

# Raw public key sizes per multicodec
_KEY_SIZES = {
    ED25519_PUB: 32,
    P256_PUB: 33,
}


def _uvarint_encode(value: int) -> bytes:
    out = bytearray()
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def _uvarint_decode(data: bytes) -> tuple[int, int]:
    """Decode an unsigned varint, returning (value, bytes consumed)."""
    value = 0
    for i, byte in enumerate(data[:9]):
        value |= (byte & 0x7F) << (7 * i)
        if not byte & 0x80:
            return value, i + 1
    raise ValueError("invalid varint")


@dataclass(frozen=True)
class Principal:
    """Binary principal: ``<multicodec varint><raw public key>``."""

    raw: bytes

    @classmethod
    def from_public_key(cls, codec: int, key: bytes) -> "Principal":
        return cls(_uvarint_encode(codec) + key)

    @classmethod
    def decode(cls, text: str) -> "Principal":
        """Parse the string form of a principal.

        Raises:
            ValidationError: If ``text`` is not a supported principal
        """
        if not text or not text.startswith(BASE58BTC_PREFIX):
            raise ValidationError(
                "Principal must be base58btc multibase", field="principal", value=text
            )
        try:
            raw = base58.b58decode(text[1:])
            codec, offset = _uvarint_decode(raw)
        except ValueError as e:
            raise ValidationError(
                "Principal is not valid base58", field="principal", value=text, original_error=e
            ) from e

        size = _KEY_SIZES.get(codec)
        if size is None or len(raw) - offset != size:
            raise ValidationError(
                "Unsupported principal key type", field="principal", value=text
            )
        return cls(raw)

    def explode(self) -> tuple[int, bytes]:
        """Split into (multicodec, raw public key bytes)."""
        codec, offset = _uvarint_decode(self.raw)
        return codec, self.raw[offset:]

    @property
    def public_key(self) -> bytes:
        return self.explode()[1]

    def __str__(self) -> str:
        return BASE58BTC_PREFIX + base58.b58encode(self.raw).decode("ascii")


class KeyPair:
    """Ed25519 signing key of an account or device."""

    def __init__(self, private_key: Ed25519PrivateKey):
        self._private_key = private_key
        public = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        self.principal = Principal.from_public_key(ED25519_PUB, public)

    @classmethod
    def generate(cls) -> "KeyPair":
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_seed(cls, seed: bytes) -> "KeyPair":
        """Deterministic key pair from a 32-byte seed."""
        return cls(Ed25519PrivateKey.from_private_bytes(seed))

    def sign(self, data: bytes) -> bytes:
        return self._private_key.sign(data)

    def verify(self, signature: bytes, data: bytes) -> None:
        """Raise ``cryptography.exceptions.InvalidSignature`` when ``signature`` does not match."""
        self._private_key.public_key().verify(signature, data)


class KeyStore(Protocol):
    """Access to the signing keys of local accounts."""

    def get_key(self, account: str) -> KeyPair:
        """Key pair of ``account``; raises NotFoundError when unknown."""
        ...


class InMemoryKeyStore:
    """Key store backed by a dict, keyed by principal string."""

    def __init__(self, keys: list[KeyPair] | None = None):
        self._keys: dict[str, KeyPair] = {}
        for key in keys or []:
            self.add(key)

    def add(self, key: KeyPair) -> None:
        self._keys[str(key.principal)] = key

    def get_key(self, account: str) -> KeyPair:
        try:
            return self._keys[account]
        except KeyError:
            raise NotFoundError(
                "No signing key for account", entity_type="account", entity_id=account
            ) from None
