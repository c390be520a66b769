"""Tests for invoice requests over the P2P network."""

import asyncio

import pytest

from lnbridge.exceptions import InvoiceRequestError, NotFoundError, ValidationError
from lnbridge.wallet.domain.value_objects import InvoiceRequest
from lnbridge.wallet.infrastructure.p2p import P2PInvoiceFallback


class StubIssuer:
    def __init__(self, result=None, error=None, delay=0.0):
        self.result = result
        self.error = error
        self.delay = delay
        self.requests: list[InvoiceRequest] = []

    async def request_invoice(self, request: InvoiceRequest) -> str:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.result


class StubNode:
    """Network node with a fixed device list per account."""

    def __init__(self, devices: dict[str, StubIssuer]):
        self.devices = devices
        self.opened: list[str] = []

    async def list_devices(self, account):
        return list(self.devices)

    async def open_channel(self, device_id: str):
        self.opened.append(device_id)
        return self.devices[device_id]


class TestP2PInvoiceFallback:
    """Device iteration and failure aggregation."""

    @pytest.mark.asyncio
    async def test_first_device_wins(self, alice_key):
        node = StubNode({"d1": StubIssuer("lnbc1"), "d2": StubIssuer("lnbc2")})
        fallback = P2PInvoiceFallback(node)

        pr = await fallback.request_invoice(alice_key.principal, InvoiceRequest(amount_sats=10))

        assert pr == "lnbc1"
        assert node.opened == ["d1"]

    @pytest.mark.asyncio
    async def test_failing_devices_are_skipped(self, alice_key):
        node = StubNode(
            {
                "broken": StubIssuer(error=RuntimeError("rpc down")),
                "empty": StubIssuer(""),
                "good": StubIssuer("lnbc-good"),
            }
        )
        fallback = P2PInvoiceFallback(node)

        pr = await fallback.request_invoice(alice_key.principal, InvoiceRequest(amount_sats=10))

        assert pr == "lnbc-good"
        assert node.opened == ["broken", "empty", "good"]

    @pytest.mark.asyncio
    async def test_slow_device_times_out(self, alice_key):
        node = StubNode(
            {"slow": StubIssuer("late", delay=1.0), "fast": StubIssuer("lnbc-fast")}
        )
        fallback = P2PInvoiceFallback(node, device_timeout=0.05)

        pr = await fallback.request_invoice(alice_key.principal, InvoiceRequest(amount_sats=10))

        assert pr == "lnbc-fast"

    @pytest.mark.asyncio
    async def test_all_devices_fail(self, alice_key):
        node = StubNode(
            {"d1": StubIssuer(error=RuntimeError("x")), "d2": StubIssuer("")}
        )
        fallback = P2PInvoiceFallback(node)

        with pytest.raises(InvoiceRequestError) as exc_info:
            await fallback.request_invoice(alice_key.principal, InvoiceRequest(amount_sats=10))

        assert "any peer" in str(exc_info.value)
        assert exc_info.value.context["devices_tried"] == 2
        assert set(exc_info.value.context["failures"]) == {"d1", "d2"}

    @pytest.mark.asyncio
    async def test_no_devices(self, alice_key):
        fallback = P2PInvoiceFallback(StubNode({}))

        with pytest.raises(NotFoundError):
            await fallback.request_invoice(alice_key.principal, InvoiceRequest(amount_sats=10))

    @pytest.mark.asyncio
    async def test_hold_invoice_rejected(self, alice_key):
        node = StubNode({"d1": StubIssuer("lnbc1")})
        fallback = P2PInvoiceFallback(node)

        with pytest.raises(ValidationError):
            await fallback.request_invoice(
                alice_key.principal, InvoiceRequest(amount_sats=10, hold_invoice=True)
            )
        assert node.opened == []

    @pytest.mark.asyncio
    async def test_own_account_rejected(self, alice_key):
        node = StubNode({"d1": StubIssuer("lnbc1")})
        fallback = P2PInvoiceFallback(node, local_account=alice_key.principal)

        with pytest.raises(ValidationError):
            await fallback.request_invoice(alice_key.principal, InvoiceRequest(amount_sats=10))

    @pytest.mark.asyncio
    async def test_request_forwarded(self, alice_key):
        issuer = StubIssuer("lnbc1")
        fallback = P2PInvoiceFallback(StubNode({"d1": issuer}))

        await fallback.request_invoice(
            alice_key.principal, InvoiceRequest(amount_sats=21, memo="tea")
        )

        assert issuer.requests == [InvoiceRequest(amount_sats=21, memo="tea")]
