"""Main CLI entry point for lnbridge."""

import typer
from rich.console import Console

from lnbridge import __version__
from lnbridge.utils.config import get_settings
from lnbridge.utils.logging import configure_logging

from ..wallet.cli.wallet_cli import invoices_app, wallets_app

app = typer.Typer(
    name="lnbridge",
    help="⚡ Lightning wallets over lndhub",
    add_completion=True,
    no_args_is_help=True,
)
console = Console()


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"[bold blue]lnbridge[/bold blue] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    """
    lnbridge - Lightning wallet management.

    Import lndhub wallets, pick a default per account, create, request and
    pay BOLT-11 invoices.
    """
    settings = get_settings()
    configure_logging(settings.log_level, json_logs=settings.json_logs, dev_mode=settings.dev_mode)


app.add_typer(wallets_app, name="wallets", help="👛 Manage wallets")
app.add_typer(invoices_app, name="invoices", help="🧾 Create, request and pay invoices")


if __name__ == "__main__":
    app()
