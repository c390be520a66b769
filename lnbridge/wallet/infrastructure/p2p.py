"""Invoice requests over the P2P network.

When a counterpart has no reachable lightning address, its own devices are
asked, one by one, to mint an invoice. Devices are tried in the order the
network node lists them; each attempt has its own timeout and the first
non-empty payment request wins.
"""

import asyncio
from collections.abc import Sequence
from typing import Protocol

from lnbridge.core.principal import Principal
from lnbridge.exceptions import InvoiceRequestError, NotFoundError, ValidationError
from lnbridge.utils.logging import get_logger

from ..domain.value_objects import InvoiceRequest

logger = get_logger(__name__)


class InvoiceIssuer(Protocol):
    """RPC channel to a remote device able to mint invoices."""

    async def request_invoice(self, request: InvoiceRequest) -> str: ...


class NetworkNode(Protocol):
    """The subset of the P2P node used here."""

    async def list_devices(self, account: Principal) -> Sequence[str]: ...

    async def open_channel(self, device_id: str) -> InvoiceIssuer: ...


class P2PInvoiceFallback:
    """Requests invoices from an account's devices."""

    def __init__(
        self,
        node: NetworkNode,
        device_timeout: float = 10.0,
        local_account: Principal | None = None,
    ):
        """Initialize the fallback.

        Args:
            node: P2P network node
            device_timeout: Seconds allowed to each device (connect + mint)
            local_account: Our own account, which must never be asked
        """
        self.node = node
        self.device_timeout = device_timeout
        self.local_account = local_account

    async def request_invoice(self, account: Principal, request: InvoiceRequest) -> str:
        """Return the first payment request minted by one of ``account``'s devices.

        Raises:
            ValidationError: For hold invoices or requests to ourselves
            NotFoundError: If the account has no known devices
            InvoiceRequestError: If every device failed
        """
        if request.hold_invoice:
            raise ValidationError("Hold invoices are not supported", field="hold_invoice")
        if self.local_account is not None and account == self.local_account:
            raise ValidationError(
                "Cannot request an invoice from our own account",
                field="account",
                value=str(account),
            )

        devices = list(await self.node.list_devices(account))
        if not devices:
            raise NotFoundError(
                "Can't find devices for account", entity_type="account", entity_id=str(account)
            )

        failures: dict[str, str] = {}
        for device in devices:
            try:
                async with asyncio.timeout(self.device_timeout):
                    issuer = await self.node.open_channel(device)
                    payment_request = await issuer.request_invoice(request)
            except TimeoutError:
                failures[device] = "timeout"
            except Exception as e:
                failures[device] = f"{type(e).__name__}: {e}"[:200]
            else:
                if payment_request:
                    logger.info(
                        "p2p_invoice_received",
                        account=str(account),
                        device=device,
                        devices_tried=len(failures) + 1,
                    )
                    return payment_request
                failures[device] = "empty payment request"

            logger.warning("p2p_device_failed", device=device, reason=failures[device])

        raise InvoiceRequestError(
            "Couldn't get remote invoice from any peer",
            context={
                "account": str(account),
                "devices_tried": len(devices),
                "failures": failures,
            },
        )
