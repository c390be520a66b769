"""CLI commands for wallet and invoice management."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import typer
from rich.console import Console
from rich.table import Table

from lnbridge.exceptions import LnBridgeError
from lnbridge.storage.database.base import init_db
from lnbridge.utils.config import get_settings
from lnbridge.utils.logging import clear_correlation_id, set_correlation_id

from ..application.services.wallet_service import WalletService
from ..infrastructure.lndhub_client import LndhubClient
from ..infrastructure.repository import WalletRepository

wallets_app = typer.Typer(name="wallets", help="Lightning wallet management commands")
invoices_app = typer.Typer(name="invoices", help="Lightning invoice commands")
console = Console()


@asynccontextmanager
async def get_service() -> AsyncIterator[WalletService]:
    """Wallet service over the configured database and lndhub endpoints."""
    settings = get_settings()
    set_correlation_id()
    repository = WalletRepository(init_db(settings.database_url))
    try:
        async with LndhubClient(repository, settings=settings) as client:
            yield WalletService(repository, client, settings=settings)
    finally:
        clear_correlation_id()


def _fail(action: str, error: Exception) -> None:
    typer.echo(f"Error {action}: {error}", err=True)
    raise typer.Exit(1)


# ============================================================================
# Wallets
# ============================================================================


@wallets_app.command("list")
def list_wallets(
    account: str | None = typer.Option(None, help="Only wallets of this account"),
    balance: bool = typer.Option(False, "--balance", help="Fetch balances from the backends"),
):
    """List wallets."""

    async def _list():
        async with get_service() as service:
            try:
                wallets = await service.list_wallets(account, include_balance=balance)
                defaults = {}
                for w in wallets:
                    if w.account not in defaults:
                        defaults[w.account] = service.get_default_wallet(w.account).id
            except LnBridgeError as e:
                _fail("listing wallets", e)

        if not wallets:
            typer.echo("No wallets found")
            return

        table = Table(title=f"Wallets ({len(wallets)} total)")
        table.add_column("ID")
        table.add_column("Name")
        table.add_column("Type")
        table.add_column("Address")
        table.add_column("Default")
        if balance:
            table.add_column("Balance (sat)", justify="right")
        for w in wallets:
            row = [
                w.id[:16] + "...",
                w.name,
                w.type.value,
                w.address,
                "✓" if defaults.get(w.account) == w.id else "",
            ]
            if balance:
                row.append(f"{w.balance:,}")
            table.add_row(*row)
        console.print(table)

    asyncio.run(_list())


@wallets_app.command("import")
def import_wallet(
    credentials_url: str = typer.Argument(..., help="lndhub://<login>:<password>@https://<domain>"),
    account: str = typer.Option(..., help="Owning account id"),
    name: str = typer.Option("", help="Wallet name"),
):
    """Import an lndhub wallet from its credential URI."""

    async def _import():
        async with get_service() as service:
            try:
                wallet = await service.import_wallet(credentials_url, account, name)
            except LnBridgeError as e:
                _fail("importing wallet", e)
        typer.echo(f"✓ Wallet imported: {wallet.id}")

    asyncio.run(_import())


@wallets_app.command("export")
def export_wallet(wallet_id: str):
    """Print the credential URI of a wallet."""

    async def _export():
        async with get_service() as service:
            try:
                typer.echo(service.export_wallet(wallet_id))
            except LnBridgeError as e:
                _fail("exporting wallet", e)

    asyncio.run(_export())


@wallets_app.command("remove")
def remove_wallet(
    wallet_id: str,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Remove a wallet."""
    if not yes:
        typer.confirm(f"Remove wallet {wallet_id[:16]}...?", abort=True)

    async def _remove():
        async with get_service() as service:
            try:
                service.remove_wallet(wallet_id)
            except LnBridgeError as e:
                _fail("removing wallet", e)
        typer.echo("✓ Wallet removed")

    asyncio.run(_remove())


@wallets_app.command("rename")
def rename_wallet(wallet_id: str, name: str):
    """Rename a wallet."""

    async def _rename():
        async with get_service() as service:
            try:
                wallet = service.update_wallet_name(wallet_id, name)
            except LnBridgeError as e:
                _fail("renaming wallet", e)
        typer.echo(f"✓ Wallet renamed to {wallet.name!r}")

    asyncio.run(_rename())


@wallets_app.command("set-default")
def set_default(
    wallet_id: str,
    account: str = typer.Option(..., help="Account whose default changes"),
):
    """Make a wallet the account's default."""

    async def _set_default():
        async with get_service() as service:
            try:
                wallet = service.set_default_wallet(account, wallet_id)
            except LnBridgeError as e:
                _fail("setting default wallet", e)
        typer.echo(f"✓ Default wallet: {wallet.id}")

    asyncio.run(_set_default())


@wallets_app.command("balance")
def wallet_balance(wallet_id: str):
    """Show a wallet's balance."""

    async def _balance():
        async with get_service() as service:
            try:
                sats = await service.get_wallet_balance(wallet_id)
            except LnBridgeError as e:
                _fail("getting balance", e)
        typer.echo(f"Balance: {sats:,} sat")

    asyncio.run(_balance())


@wallets_app.command("ln-address")
def ln_address(
    wallet_id: str | None = typer.Argument(None, help="Wallet id (account default if omitted)"),
    account: str | None = typer.Option(None, help="Account whose default wallet is used"),
    nickname: str | None = typer.Option(None, help="Set a new nickname first"),
):
    """Show (or change) a wallet's lightning address."""

    async def _ln_address():
        async with get_service() as service:
            try:
                if nickname:
                    await service.update_ln_address(nickname, wallet_id, account=account)
                address = await service.get_ln_address(wallet_id, account=account)
            except LnBridgeError as e:
                _fail("getting lightning address", e)
        typer.echo(address)

    asyncio.run(_ln_address())


# ============================================================================
# Invoices
# ============================================================================


@invoices_app.command("create")
def create_invoice(
    account: str = typer.Option(..., help="Account whose default wallet is paid"),
    amount: int = typer.Option(..., help="Amount in satoshis"),
    memo: str = typer.Option("", help="Invoice description"),
):
    """Create an invoice payable to the account's default wallet."""

    async def _create():
        async with get_service() as service:
            try:
                payment_request = await service.create_invoice(account, amount, memo)
            except LnBridgeError as e:
                _fail("creating invoice", e)
        typer.echo(payment_request)

    asyncio.run(_create())


@invoices_app.command("request")
def request_invoice(
    user: str = typer.Argument(..., help="Remote nickname or account id"),
    amount: int = typer.Option(..., help="Amount in satoshis"),
    memo: str = typer.Option("", help="Invoice description"),
    url: str | None = typer.Option(None, help="lndhub service URL (configured service if omitted)"),
):
    """Request an invoice payable to a remote user."""

    async def _request():
        async with get_service() as service:
            try:
                payment_request = await service.request_invoice(user, amount, memo, remote_url=url)
            except LnBridgeError as e:
                _fail("requesting invoice", e)
        typer.echo(payment_request)

    asyncio.run(_request())


@invoices_app.command("pay")
def pay_invoice(
    payment_request: str,
    account: str | None = typer.Option(None, help="Pay from this account's default wallet"),
    wallet: str | None = typer.Option(None, help="Pay from this wallet"),
    amount: int | None = typer.Option(None, help="Amount in satoshis (invoice amount if omitted)"),
):
    """Pay a BOLT-11 invoice."""

    async def _pay():
        async with get_service() as service:
            try:
                wallet_id = await service.pay_invoice(account, payment_request, wallet, amount)
            except LnBridgeError as e:
                _fail("paying invoice", e)
        typer.echo(f"⚡ Paid from wallet {wallet_id}")

    asyncio.run(_pay())


@invoices_app.command("decode")
def decode_invoice(payment_request: str):
    """Decode a Lightning invoice (BOLT-11)."""

    async def _decode():
        async with get_service() as service:
            try:
                decoded = service.decode_invoice(payment_request)
            except LnBridgeError as e:
                _fail("decoding invoice", e)
        typer.echo(f"Payment Hash: {decoded.payment_hash}")
        typer.echo(f"Amount: {decoded.amount_sat or 'Zero-amount'} sat")
        typer.echo(f"Description: {decoded.description}")
        typer.echo(f"Destination: {decoded.destination}")

    asyncio.run(_decode())


def _print_invoices(title: str, invoices: list) -> None:
    if not invoices:
        typer.echo("No invoices found")
        return
    table = Table(title=title)
    table.add_column("Payment Hash")
    table.add_column("Amount (sat)", justify="right")
    table.add_column("Status")
    table.add_column("Description")
    for inv in invoices:
        table.add_row(
            inv.payment_hash[:16] + "..." if inv.payment_hash else "",
            f"{inv.amount:,}",
            inv.status,
            inv.description,
        )
    console.print(table)


@invoices_app.command("paid")
def paid_invoices(wallet_id: str):
    """List invoices paid by a wallet."""

    async def _paid():
        async with get_service() as service:
            try:
                invoices = await service.list_paid_invoices(wallet_id)
            except LnBridgeError as e:
                _fail("listing paid invoices", e)
        _print_invoices("Paid Invoices", invoices)

    asyncio.run(_paid())


@invoices_app.command("received")
def received_invoices(wallet_id: str):
    """List invoices received by a wallet."""

    async def _received():
        async with get_service() as service:
            try:
                invoices = await service.list_received_invoices(wallet_id)
            except LnBridgeError as e:
                _fail("listing received invoices", e)
        _print_invoices("Received Invoices", invoices)

    asyncio.run(_received())
