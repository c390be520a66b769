"""Wallet lifecycle, payments and invoice issuance."""

from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import replace

from sqlalchemy.exc import SQLAlchemyError

from lnbridge.core.principal import KeyStore, Principal
from lnbridge.exceptions import (
    AlreadyHasPrimaryWalletError,
    AuthenticationError,
    ConfigurationError,
    DatabaseError,
    InvoiceRequestError,
    LnBridgeError,
    PaymentError,
    UnsupportedWalletTypeError,
    ValidationError,
    wrap_exception,
)
from lnbridge.utils.config import Settings, get_settings
from lnbridge.utils.logging import LogPerformance, get_logger

from ...domain.credentials import (
    SIGNING_MESSAGE,
    decode_credentials_url,
    derive_wallet_id,
    encode_credentials_url,
)
from ...domain.enums import InvoiceDirection, WalletType
from ...domain.value_objects import Credentials, DecodedInvoice, InvoiceRequest, Wallet
from ...infrastructure.backends import BackendRegistry, LightningBackend
from ...infrastructure.invoice_decoder import decode_invoice
from ...infrastructure.lndhub_client import LndhubClient
from ...infrastructure.lndhub_models import Invoice
from ...infrastructure.p2p import NetworkNode, P2PInvoiceFallback
from ...infrastructure.repository import WalletRepository

logger = get_logger(__name__)

# Paying and receiving payment go through the same errors untouched
_PAYMENT_PASSTHROUGH = (PaymentError, ValidationError)


@contextmanager
def _storage_errors(operation: str, **context: str) -> Generator[None, None, None]:
    """Wrap raw SQLAlchemy failures with the operation that hit them."""
    try:
        yield
    except SQLAlchemyError as e:
        raise wrap_exception(
            e,
            f"Storage failure during {operation}",
            exception_class=DatabaseError,
            operation=operation,
            **context,
        ) from e


class WalletService:
    """Orchestrates wallet storage, Lightning backends and the P2P fallback."""

    def __init__(
        self,
        repository: WalletRepository,
        client: LndhubClient,
        node: NetworkNode | None = None,
        keystore: KeyStore | None = None,
        settings: Settings | None = None,
        backends: BackendRegistry | None = None,
        local_account: str | None = None,
        decoder=decode_invoice,
    ):
        """Initialize the wallet service.

        Args:
            repository: Wallet persistence
            client: lndhub client, also used for lightning addresses
            node: P2P network node (P2P fallback disabled if None)
            keystore: Signing keys of local accounts (needed by create_wallet)
            settings: Application settings (global settings if None)
            backends: Backend per wallet type (lndhub client for both lndhub types if None)
            local_account: Our own account, never asked for P2P invoices
            decoder: BOLT-11 decoder
        """
        self.repository = repository
        self.client = client
        self.keystore = keystore
        self.settings = settings or get_settings()
        self.backends = backends or BackendRegistry.for_lndhub(client)
        self.decoder = decoder
        self.p2p = (
            P2PInvoiceFallback(
                node,
                device_timeout=self.settings.p2p_device_timeout_seconds,
                local_account=Principal.decode(local_account) if local_account else None,
            )
            if node is not None
            else None
        )

    def _backend_for(self, wallet: Wallet) -> LightningBackend:
        return self.backends.get(wallet.type)

    def _resolve_wallet(self, account: str | None, wallet_id: str | None) -> Wallet:
        """Explicit wallet when given, otherwise the account's default."""
        with _storage_errors("resolve_wallet", wallet_id=wallet_id or ""):
            if wallet_id:
                wallet = self.repository.get(wallet_id)
                if account and wallet.account != account:
                    raise ValidationError(
                        "Wallet does not belong to the account", field="wallet_id", value=wallet_id
                    )
                return wallet
            if not account:
                raise ValidationError("Either an account or a wallet id is required", field="account")
            return self.repository.get_default(account)

    # ========================================================================
    # Wallet lifecycle
    # ========================================================================

    async def create_wallet(self, account: str, name: str) -> Wallet:
        """Create the account's lndhub.go wallet from its signing key.

        The password is the hex signature of the fixed sign-in message, so
        the same account always derives the same credentials.
        """
        if self.keystore is None:
            raise ConfigurationError("No key store configured", setting="keystore")

        key = self.keystore.get_key(account)
        login = str(key.principal)
        credentials = Credentials(
            domain=self.settings.lnaddress_domain,
            wallet_type=WalletType.LNDHUB_GO.value,
            login=login,
            password=key.sign(SIGNING_MESSAGE.encode()).hex(),
            nickname=login,
        )
        return await self.import_wallet(encode_credentials_url(credentials), login, name)

    async def import_wallet(self, credentials_url: str, account: str, name: str) -> Wallet:
        """Validate credentials remotely, then persist the wallet.

        A wallet that fails to authenticate right after insertion is removed
        again, so the store never keeps unauthenticated wallets.

        Raises:
            MalformedCredentialsError: If the URI is malformed
            UnsupportedWalletTypeError: If no backend serves the wallet type
            AlreadyHasPrimaryWalletError: If the account already owns an lndhub.go wallet
            DuplicateWalletError: If the wallet was already imported
            AuthenticationError: If the backend rejects the credentials
        """
        if not account:
            raise ValidationError("Account must not be empty", field="account")

        credentials = decode_credentials_url(credentials_url)
        wallet_type = WalletType.parse(credentials.wallet_type)
        backend = self.backends.get(wallet_type)
        principal = Principal.decode(account)

        wallet = Wallet(
            id=derive_wallet_id(credentials_url, account),
            account=account,
            address=credentials.base_url,
            name=name,
            type=wallet_type,
        )

        with LogPerformance("wallet_import", logger, wallet_id=wallet.id):
            if wallet_type.is_primary:
                with _storage_errors("import_wallet", wallet_id=wallet.id):
                    existing = self.repository.list(account)
                if any(w.type.is_primary for w in existing):
                    raise AlreadyHasPrimaryWalletError(
                        f"Only one {WalletType.LNDHUB_GO} wallet is allowed per account",
                        context={"account": account},
                    )
                nickname = credentials.nickname or credentials.login
                await backend.create(
                    wallet.address, replace(credentials, nickname=nickname), principal.public_key
                )

            with _storage_errors("import_wallet", wallet_id=wallet.id):
                self.repository.insert(wallet, credentials.login, credentials.password)

            # Cancellation must roll back too: no unauthenticated wallet stays stored
            try:
                await backend.authenticate(wallet.id)
            except BaseException as e:
                self.repository.remove(wallet.id)
                logger.warning(
                    "wallet_authentication_failed",
                    wallet_id=wallet.id,
                    error_type=type(e).__name__,
                )
                if isinstance(e, LnBridgeError):
                    raise AuthenticationError(
                        "Couldn't authenticate new wallet",
                        context={"wallet_id": wallet.id, "wallet_name": name},
                        original_error=e,
                    ) from e
                raise

        logger.info("wallet_imported", wallet_id=wallet.id, wallet_type=wallet_type.value)
        return wallet

    async def list_wallets(
        self, account: str | None = None, include_balance: bool = False
    ) -> list[Wallet]:
        """List wallets, optionally fetching each balance from its backend.

        A balance that cannot be fetched is reported as 0.
        """
        with _storage_errors("list_wallets"):
            wallets = self.repository.list(account)
        if not include_balance:
            return wallets

        result = []
        for wallet in wallets:
            try:
                balance = await self._backend_for(wallet).get_balance(wallet.id)
            except LnBridgeError as e:
                logger.warning(
                    "wallet_balance_unavailable", wallet_id=wallet.id, error=str(e)
                )
                balance = 0
            result.append(wallet.with_balance(balance))
        return result

    def get_wallet(self, wallet_id: str) -> Wallet:
        with _storage_errors("get_wallet", wallet_id=wallet_id):
            return self.repository.get(wallet_id)

    def remove_wallet(self, wallet_id: str) -> None:
        with _storage_errors("remove_wallet", wallet_id=wallet_id):
            self.repository.remove(wallet_id)

    def update_wallet_name(self, wallet_id: str, name: str) -> Wallet:
        with _storage_errors("update_wallet_name", wallet_id=wallet_id):
            return self.repository.update_name(wallet_id, name)

    def get_default_wallet(self, account: str) -> Wallet:
        with _storage_errors("get_default_wallet"):
            return self.repository.get_default(account)

    def set_default_wallet(self, account: str, wallet_id: str) -> Wallet:
        with _storage_errors("set_default_wallet", wallet_id=wallet_id):
            return self.repository.set_default(account, wallet_id)

    def export_wallet(self, wallet_id: str) -> str:
        """Credential URI of a wallet, always with the plain ``lndhub`` type."""
        with _storage_errors("export_wallet", wallet_id=wallet_id):
            wallet = self.repository.get(wallet_id)
            auth = self.repository.get_auth(wallet_id)

        domain = wallet.address.split("//", 1)[-1].rstrip("/")
        return encode_credentials_url(
            Credentials(
                domain=domain,
                wallet_type=WalletType.LNDHUB.value,
                login=auth.login,
                password=auth.password,
            )
        )

    # ========================================================================
    # Balance & invoices
    # ========================================================================

    async def get_wallet_balance(self, wallet_id: str) -> int:
        wallet = self.get_wallet(wallet_id)
        return await self._backend_for(wallet).get_balance(wallet.id)

    async def list_paid_invoices(self, wallet_id: str) -> list[Invoice]:
        wallet = self.get_wallet(wallet_id)
        return await self._backend_for(wallet).list_invoices(wallet.id, InvoiceDirection.OUTGOING)

    async def list_received_invoices(self, wallet_id: str) -> list[Invoice]:
        wallet = self.get_wallet(wallet_id)
        return await self._backend_for(wallet).list_invoices(wallet.id, InvoiceDirection.INCOMING)

    def decode_invoice(self, payment_request: str) -> DecodedInvoice:
        return self.decoder(payment_request)

    async def create_invoice(
        self, account: str, amount_sats: int, memo: str = "", wallet_id: str | None = None
    ) -> str:
        """Invoice payable to the account's default wallet (or ``wallet_id``)."""
        if amount_sats < 0:
            raise ValidationError("Amount must not be negative", field="amount_sats", value=amount_sats)
        wallet = self._resolve_wallet(account, wallet_id)
        return await self._backend_for(wallet).create_invoice(wallet.id, amount_sats, memo)

    async def request_invoice(
        self,
        remote_user: str,
        amount_sats: int,
        memo: str = "",
        remote_url: str | None = None,
    ) -> str:
        """Get an invoice payable to ``remote_user``.

        The lightning-address service is tried first. When it fails and
        ``remote_user`` is an account id, the account's devices are asked
        over the P2P network.
        """
        base_url = remote_url or self.settings.lndhub_url
        backend = self.backends.get(WalletType.LNDHUB_GO)
        try:
            return await backend.request_remote_invoice(base_url, remote_user, amount_sats, memo)
        except LnBridgeError as e:
            direct_error = e
            logger.info(
                "remote_invoice_direct_failed",
                remote_user=remote_user,
                error_type=type(e).__name__,
            )

        try:
            principal = Principal.decode(remote_user)
        except ValidationError as e:
            raise ValidationError(
                "If using P2P transmission, remote user must be a valid account id",
                field="remote_user",
                value=remote_user,
                original_error=direct_error,
            ) from e

        if self.p2p is None:
            raise InvoiceRequestError(
                "Direct invoice request failed and no P2P network is configured",
                context={"remote_user": remote_user},
                original_error=direct_error,
            )
        return await self.p2p.request_invoice(
            principal, InvoiceRequest(amount_sats=amount_sats, memo=memo)
        )

    # ========================================================================
    # Payments
    # ========================================================================

    async def pay_invoice(
        self,
        account: str | None,
        payment_request: str,
        wallet_id: str | None = None,
        amount_sats: int | None = None,
    ) -> str:
        """Pay a BOLT-11 invoice; returns the id of the wallet that paid.

        With no amount (or 0) the invoice's embedded amount is paid.

        Raises:
            QuantityMismatchError: If ``amount_sats`` differs from a non-zero invoice amount
            InsufficientBalanceError: If the wallet cannot cover the payment
            PaymentError: For any other backend failure
        """
        wallet = self._resolve_wallet(account, wallet_id)
        backend = self._backend_for(wallet)

        if not amount_sats:
            amount_sats = self.decoder(payment_request).amount_sat
            if amount_sats == 0:
                raise ValidationError(
                    "Invoice has no amount, an explicit amount is required", field="amount_sats"
                )

        try:
            await backend.pay(wallet.id, payment_request, amount_sats)
        except _PAYMENT_PASSTHROUGH:
            raise
        except LnBridgeError as e:
            logger.warning(
                "invoice_payment_failed", wallet_id=wallet.id, error_type=type(e).__name__
            )
            raise wrap_exception(
                e,
                "Couldn't pay invoice",
                exception_class=PaymentError,
                operation="pay_invoice",
                wallet_id=wallet.id,
            ) from e

        logger.info("invoice_paid", wallet_id=wallet.id, amount_sats=amount_sats)
        return wallet.id

    # ========================================================================
    # Lightning address
    # ========================================================================

    def _lnaddress_wallet(self, wallet_id: str | None, account: str | None) -> Wallet:
        wallet = self._resolve_wallet(account, wallet_id)
        if wallet.type not in (WalletType.LNDHUB, WalletType.LNDHUB_GO):
            raise UnsupportedWalletTypeError(
                "Selected wallet does not support lightning addresses",
                wallet_type=wallet.type.value,
            )
        return wallet

    async def update_ln_address(
        self, nickname: str, wallet_id: str | None = None, *, account: str | None = None
    ) -> None:
        """Set the nickname part of the wallet's lightning address."""
        wallet = self._lnaddress_wallet(wallet_id, account)
        token = Principal.decode(wallet.account).public_key
        await self.client.update_nickname(wallet.id, nickname, token)

    async def get_ln_address(
        self, wallet_id: str | None = None, *, account: str | None = None
    ) -> str:
        """Lightning address of a wallet, or of the account's default wallet."""
        wallet = self._lnaddress_wallet(wallet_id, account)
        token = Principal.decode(wallet.account).public_key
        return await self.client.get_ln_address(wallet.id, token)
