"""Domain enums for wallets."""

from enum import Enum

from lnbridge.exceptions import UnsupportedWalletTypeError


class WalletType(str, Enum):
    """Backend protocol spoken by a wallet.

    ``LNDHUB_GO`` is the enhanced lndhub server with lightning-address and
    nickname support; an account may own at most one wallet of that type.
    """

    LNDHUB = "lndhub"
    LNDHUB_GO = "lndhub.go"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: "str | WalletType") -> "WalletType":
        """Case-insensitive lookup.

        Raises:
            UnsupportedWalletTypeError: If ``value`` names no known type
        """
        try:
            return cls(str(value).lower())
        except ValueError:
            raise UnsupportedWalletTypeError(
                f"Wallet type not supported. Currently supported: "
                f"{', '.join(t.value for t in cls)}",
                wallet_type=str(value),
            ) from None

    @property
    def is_primary(self) -> bool:
        """Whether wallets of this type are limited to one per account."""
        return self is WalletType.LNDHUB_GO


class InvoiceDirection(str, Enum):
    """Which side of the wallet an invoice is on."""

    INCOMING = "incoming"
    OUTGOING = "outgoing"

    def __str__(self) -> str:
        return self.value
