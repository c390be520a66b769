"""Domain value objects for wallets.

Value Objects in DDD:
- Immutable (frozen dataclasses)
- No identity (equality based on attributes)
"""

import re
from dataclasses import dataclass, field, replace
from typing import Any

from .enums import WalletType

WALLET_ID_LENGTH = 64
_WALLET_ID_RE = re.compile(r"^[0-9a-f]{64}$")


@dataclass(frozen=True)
class Wallet:
    """A wallet as seen by callers.

    ``balance`` is fetched from the backend on demand and never persisted.
    """

    id: str
    account: str
    address: str
    name: str
    type: WalletType
    balance: int = 0

    def __post_init__(self) -> None:
        if not _WALLET_ID_RE.match(self.id):
            raise ValueError("Wallet id must be 64 lowercase hex chars")
        if not self.account:
            raise ValueError("Wallet account must not be empty")

    def with_balance(self, balance: int) -> "Wallet":
        return replace(self, balance=balance)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "account": self.account,
            "address": self.address,
            "name": self.name,
            "type": self.type.value,
            "balance": self.balance,
        }


@dataclass(frozen=True)
class Credentials:
    """Decoded form of a ``<type>://<login>:<password>@https://<domain>`` URI.

    ``nickname`` is not part of the URI; it only travels to ``/v2/create``.
    """

    domain: str
    wallet_type: str
    login: str
    password: str = field(repr=False)
    nickname: str = ""

    @property
    def base_url(self) -> str:
        return f"https://{self.domain}"


@dataclass(frozen=True)
class WalletAuth:
    """Stored credentials and bearer token of one wallet."""

    login: str = field(repr=False)
    password: str = field(repr=False)
    token: str = field(repr=False)
    address: str = ""


@dataclass(frozen=True)
class InvoiceRequest:
    """What a remote device is asked to mint."""

    amount_sats: int
    memo: str = ""
    hold_invoice: bool = False
    preimage_hash: bytes = b""

    def __post_init__(self) -> None:
        if self.amount_sats < 0:
            raise ValueError(f"Amount must not be negative, got {self.amount_sats}")


@dataclass(frozen=True)
class DecodedInvoice:
    """Fields of a BOLT-11 invoice needed for payments."""

    payment_hash: str
    amount_msat: int | None
    description: str = ""
    destination: str = ""

    @property
    def amount_sat(self) -> int:
        """Embedded amount in whole satoshis (0 for any-amount invoices)."""
        return (self.amount_msat or 0) // 1000
