"""Lightning backend capability interface.

Wallet operations go through a ``LightningBackend`` chosen by wallet type.
lndhub and lndhub.go wallets share the lndhub adapter; other backends (an
LND node, for instance) register their own adapter.
"""

from typing import Protocol

from lnbridge.exceptions import UnsupportedWalletTypeError

from ..domain.enums import InvoiceDirection, WalletType
from ..domain.value_objects import Credentials
from .lndhub_client import LndhubClient
from .lndhub_models import Invoice


class LightningBackend(Protocol):
    """What the wallet service needs from a Lightning backend."""

    async def create(self, base_url: str, credentials: Credentials, token: bytes) -> None: ...

    async def authenticate(self, wallet_id: str) -> str: ...

    async def get_balance(self, wallet_id: str) -> int: ...

    async def list_invoices(self, wallet_id: str, direction: InvoiceDirection) -> list[Invoice]: ...

    async def create_invoice(self, wallet_id: str, amount_sats: int, memo: str) -> str: ...

    async def request_remote_invoice(
        self, base_url: str, remote_user: str, amount_sats: int, memo: str
    ) -> str: ...

    async def pay(self, wallet_id: str, payment_request: str, amount_sats: int) -> None: ...


class LndhubBackend:
    """``LightningBackend`` over an ``LndhubClient``."""

    def __init__(self, client: LndhubClient):
        self.client = client

    async def create(self, base_url: str, credentials: Credentials, token: bytes) -> None:
        await self.client.create_account(base_url, credentials, token)

    async def authenticate(self, wallet_id: str) -> str:
        return await self.client.authenticate(wallet_id)

    async def get_balance(self, wallet_id: str) -> int:
        return await self.client.get_balance(wallet_id)

    async def list_invoices(self, wallet_id: str, direction: InvoiceDirection) -> list[Invoice]:
        if direction is InvoiceDirection.OUTGOING:
            return await self.client.list_paid_invoices(wallet_id)
        return await self.client.list_received_invoices(wallet_id)

    async def create_invoice(self, wallet_id: str, amount_sats: int, memo: str) -> str:
        return await self.client.create_local_invoice(wallet_id, amount_sats, memo)

    async def request_remote_invoice(
        self, base_url: str, remote_user: str, amount_sats: int, memo: str
    ) -> str:
        return await self.client.request_remote_invoice(base_url, remote_user, amount_sats, memo)

    async def pay(self, wallet_id: str, payment_request: str, amount_sats: int) -> None:
        await self.client.pay_invoice(wallet_id, payment_request, amount_sats)


class BackendRegistry:
    """Maps wallet types to backends."""

    def __init__(self, backends: dict[WalletType, LightningBackend] | None = None):
        self._backends: dict[WalletType, LightningBackend] = dict(backends or {})

    @classmethod
    def for_lndhub(cls, client: LndhubClient) -> "BackendRegistry":
        """Registry serving both lndhub flavours through ``client``."""
        backend = LndhubBackend(client)
        return cls({WalletType.LNDHUB: backend, WalletType.LNDHUB_GO: backend})

    def register(self, wallet_type: WalletType, backend: LightningBackend) -> None:
        self._backends[wallet_type] = backend

    def supports(self, wallet_type: str | WalletType) -> bool:
        try:
            return WalletType.parse(wallet_type) in self._backends
        except UnsupportedWalletTypeError:
            return False

    def get(self, wallet_type: str | WalletType) -> LightningBackend:
        """Backend for ``wallet_type``.

        Raises:
            UnsupportedWalletTypeError: If no backend serves the type
        """
        parsed = WalletType.parse(wallet_type)
        try:
            return self._backends[parsed]
        except KeyError:
            raise UnsupportedWalletTypeError(
                "Wallet type not supported", wallet_type=parsed.value
            ) from None
