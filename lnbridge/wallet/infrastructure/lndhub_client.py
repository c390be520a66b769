"""lndhub HTTP client.

Talks to lndhub-compatible REST services with bounded retries:

- Every non-2xx response consumes one attempt from the call's budget.
- HTTP 401 with ``bad auth`` renews the wallet's bearer token once per call
  (``POST /auth`` with a budget of one attempt, no further renewal), stores
  it and retries the original request with it.
- HTTP 429 waits a randomized 1-2 seconds before the next attempt.
- A 2xx body with ``"error": true`` is a remote error and is never retried.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from lnbridge.exceptions import (
    AuthenticationError,
    HTTPError,
    InsufficientBalanceError,
    NetworkError,
    QuantityMismatchError,
    RateLimitExhaustedError,
    RemoteProtocolError,
    TimeoutError,
    ValidationError,
)
from lnbridge.utils.config import Settings, get_settings
from lnbridge.utils.logging import get_logger
from lnbridge.utils.retry import NETWORK_BACKOFF, RetryConfig

from ..domain.value_objects import Credentials, DecodedInvoice, WalletAuth
from .invoice_decoder import decode_invoice
from .lndhub_models import (
    AuthResponse,
    BalanceResponse,
    CheckResponse,
    CreateResponse,
    EmptyResponse,
    Invoice,
    InvoiceList,
    LocalInvoiceResponse,
    RemoteInvoiceResponse,
)

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

# Wire routes
CREATE_ROUTE = "/v2/create"
CHECK_ROUTE = "/v2/check"
AUTH_ROUTE = "/auth"
BALANCE_ROUTE = "/balance"
CREATE_INVOICE_ROUTE = "/addinvoice"
REQUEST_INVOICE_ROUTE = "/v2/invoice"
PAY_INVOICE_ROUTE = "/payinvoice"
PAID_INVOICES_ROUTE = "/v2/invoices/outgoing"
RECEIVED_INVOICES_ROUTE = "/v2/invoices/incoming"

BAD_AUTH_MARKER = "bad auth"
NOT_ENOUGH_BALANCE_MARKER = "not enough balance"


class TokenStore(Protocol):
    """Where wallet credentials and bearer tokens live."""

    def get_auth(self, wallet_id: str) -> WalletAuth: ...

    def set_token(self, wallet_id: str, token: str) -> None: ...


@dataclass
class LndhubRequest:
    """One logical lndhub call; ``token`` is swapped on renewal."""

    method: str
    url: str
    token: str = field(default="", repr=False)
    payload: dict[str, Any] | None = field(default=None, repr=False)
    params: list[tuple[str, str]] | None = None


def _remote_message(body: dict[str, Any]) -> str:
    message = body.get("message")
    return message if isinstance(message, str) else ""


class LndhubClient:
    """Async client for the lndhub wire protocol.

    Wallet-bound calls read the service address and token through the token
    store; the store is also updated when a token is renewed.
    """

    def __init__(
        self,
        store: TokenStore,
        http_client: httpx.AsyncClient | None = None,
        settings: Settings | None = None,
        rate_limit_backoff: RetryConfig | None = None,
        network_backoff: RetryConfig = NETWORK_BACKOFF,
        decoder=decode_invoice,
    ):
        """Initialize the client.

        Args:
            store: Wallet credential and token storage
            http_client: Shared httpx client (created and owned if None)
            settings: Application settings (global settings if None)
            rate_limit_backoff: Wait policy after HTTP 429 (from settings if None)
            network_backoff: Wait policy after transport failures
            decoder: BOLT-11 decoder used to check amounts before paying
        """
        self.store = store
        self.settings = settings or get_settings()
        self._owns_http = http_client is None
        self.http = http_client or httpx.AsyncClient(timeout=self.settings.http_timeout_seconds)
        self.max_attempts = self.settings.request_max_attempts
        self.rate_limit_backoff = rate_limit_backoff or RetryConfig.uniform(
            self.settings.rate_limit_min_delay, self.settings.rate_limit_max_delay
        )
        self.network_backoff = network_backoff
        self.decoder = decoder

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    async def __aenter__(self) -> "LndhubClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ========================================================================
    # Request execution
    # ========================================================================

    async def _send(self, request: LndhubRequest) -> httpx.Response:
        headers = {"Content-Type": "application/json"}
        if request.token:
            headers["Authorization"] = f"Bearer {request.token}"
        json_body = request.payload if request.method != "GET" else None
        return await self.http.request(
            request.method,
            request.url,
            headers=headers,
            params=request.params,
            json=json_body,
        )

    @staticmethod
    def _decode_body(response: httpx.Response) -> dict[str, Any] | None:
        try:
            body = response.json()
        except ValueError:
            return None
        return body if isinstance(body, dict) else None

    def _exhausted(
        self, request: LndhubRequest, status_code: int, remote_message: str, attempts: int
    ) -> Exception:
        message = f"Failed to make request {request.method} {request.url} status={status_code}"
        if remote_message:
            message = f"{message} error={remote_message}"
        context = {"method": request.method, "url": request.url[:100], "attempts": attempts}
        if status_code == httpx.codes.UNAUTHORIZED:
            return AuthenticationError(
                message, remote_message=remote_message, context={**context, "status_code": 401}
            )
        error_class = (
            RateLimitExhaustedError if status_code == httpx.codes.TOO_MANY_REQUESTS else HTTPError
        )
        return error_class(
            message,
            status_code=status_code,
            url=request.url,
            method=request.method,
            remote_message=remote_message,
            context={"attempts": attempts},
        )

    def _parse_success(
        self, request: LndhubRequest, body: dict[str, Any] | None, response_model: type[M]
    ) -> M:
        if body is None:
            if response_model is EmptyResponse:
                return response_model()
            raise RemoteProtocolError(
                "Couldn't decode received payload",
                context={"method": request.method, "url": request.url[:100]},
            )
        if body.get("error") is True:
            raise RemoteProtocolError(
                f"lndhub request {request.method} {request.url} failed",
                code=body.get("code"),
                remote_message=_remote_message(body),
                context={"method": request.method, "url": request.url[:100]},
            )
        try:
            return response_model.model_validate(body)
        except PydanticValidationError as e:
            raise RemoteProtocolError(
                "Unexpected lndhub response shape",
                context={"method": request.method, "url": request.url[:100]},
                original_error=e,
            ) from e

    async def _execute(
        self,
        request: LndhubRequest,
        response_model: type[M],
        *,
        wallet_id: str | None = None,
        max_attempts: int | None = None,
    ) -> M:
        """Run ``request`` through the attempt loop.

        Args:
            request: Request to send; its token may be replaced on renewal
            response_model: Model the 2xx body is validated into
            wallet_id: Wallet whose token may be renewed on ``bad auth``
            max_attempts: Attempt budget (client default if None)
        """
        budget = max_attempts or self.max_attempts
        failures = 0
        renewed = False

        while failures < budget:
            try:
                response = await self._send(request)
            except httpx.InvalidURL as e:
                raise ValidationError(
                    f"Invalid lndhub URL for {request.method} request",
                    field="url",
                    value=request.url,
                    original_error=e,
                ) from e
            except httpx.TransportError as e:
                failures += 1
                logger.warning(
                    "lndhub_transport_error",
                    method=request.method,
                    url=request.url,
                    attempt=failures,
                    error_type=type(e).__name__,
                )
                if failures >= budget:
                    error_class = TimeoutError if isinstance(e, httpx.TimeoutException) else NetworkError
                    raise error_class(
                        f"Failed to reach lndhub {request.method} {request.url}",
                        context={"method": request.method, "url": request.url[:100]},
                        original_error=e,
                    ) from e
                await asyncio.sleep(self.network_backoff.calculate_delay(failures - 1))
                continue

            body = self._decode_body(response)
            if response.is_success:
                return self._parse_success(request, body, response_model)

            failures += 1
            remote_message = _remote_message(body or {})
            if failures >= budget:
                logger.warning(
                    "lndhub_request_failed",
                    method=request.method,
                    status_code=response.status_code,
                    attempts=failures,
                )
                raise self._exhausted(request, response.status_code, remote_message, failures)

            if response.status_code == httpx.codes.UNAUTHORIZED:
                if BAD_AUTH_MARKER in remote_message and wallet_id and not renewed:
                    request.token = await self._renew_token(wallet_id, max_attempts=1)
                    renewed = True
            elif response.status_code == httpx.codes.TOO_MANY_REQUESTS:
                delay = self.rate_limit_backoff.calculate_delay(failures - 1)
                logger.info("lndhub_rate_limited", delay_seconds=round(delay, 2))
                await asyncio.sleep(delay)

            logger.info(
                "lndhub_request_retry",
                method=request.method,
                status_code=response.status_code,
                attempt=failures,
                max_attempts=budget,
            )

        raise HTTPError(
            f"Failed to make request {request.method} {request.url}",
            url=request.url,
            method=request.method,
            context={"attempts": failures},
        )

    async def _renew_token(self, wallet_id: str, max_attempts: int) -> str:
        """Log in with the stored credentials and persist the new token."""
        auth = self.store.get_auth(wallet_id)
        response = await self._execute(
            LndhubRequest(
                method="POST",
                url=auth.address + AUTH_ROUTE,
                payload={"login": auth.login, "password": auth.password},
            ),
            AuthResponse,
            wallet_id=None,
            max_attempts=max_attempts,
        )
        self.store.set_token(wallet_id, response.access_token)
        logger.info("lndhub_token_renewed", wallet_id=wallet_id)
        return response.access_token

    def _wallet_request(
        self, wallet_id: str, method: str, route: str, payload: dict[str, Any] | None = None
    ) -> LndhubRequest:
        auth = self.store.get_auth(wallet_id)
        return LndhubRequest(method=method, url=auth.address + route, token=auth.token, payload=payload)

    # ========================================================================
    # Accounts
    # ========================================================================

    async def create_account(
        self, base_url: str, credentials: Credentials, token: bytes
    ) -> CreateResponse:
        """Register ``credentials`` on an lndhub.go service.

        Args:
            base_url: Service base URL (``https://<domain>``)
            credentials: Login, signed password and nickname
            token: Raw public key whose private key signed the password
        """
        return await self._execute(
            LndhubRequest(
                method="POST",
                url=base_url + CREATE_ROUTE,
                token=token.hex(),
                payload={
                    "login": credentials.login,
                    "password": credentials.password,
                    "nickname": credentials.nickname.lower(),
                },
            ),
            CreateResponse,
        )

    async def check_users(self, base_url: str, users: list[str]) -> list[str]:
        """Return the subset of ``users`` that exist on the service."""
        if not users:
            raise ValidationError("At least one user must be provided", field="users")
        response = await self._execute(
            LndhubRequest(
                method="GET",
                url=base_url + CHECK_ROUTE,
                params=[("user", user) for user in users],
            ),
            CheckResponse,
        )
        return response.existing_users

    async def authenticate(self, wallet_id: str) -> str:
        """Obtain and store a fresh bearer token for ``wallet_id``."""
        return await self._renew_token(wallet_id, max_attempts=self.max_attempts)

    async def update_nickname(self, wallet_id: str, nickname: str, token: bytes) -> None:
        """Change the lightning-address nickname of an lndhub.go wallet.

        Raises:
            ValidationError: If the nickname has upper-case letters
            RemoteProtocolError: If the service did not apply the nickname
        """
        if any(ch.isupper() for ch in nickname):
            raise ValidationError(
                "Nickname cannot contain uppercase letters", field="nickname", value=nickname
            )
        auth = self.store.get_auth(wallet_id)
        response = await self._execute(
            LndhubRequest(
                method="POST",
                url=auth.address + CREATE_ROUTE,
                token=token.hex(),
                payload={"login": auth.login, "password": auth.password, "nickname": nickname},
            ),
            CreateResponse,
            wallet_id=wallet_id,
        )
        if response.nickname != nickname:
            raise RemoteProtocolError(
                "New nickname was not set properly",
                context={"expected": nickname, "received": response.nickname},
            )
        logger.info("lndhub_nickname_updated", wallet_id=wallet_id, nickname=nickname)

    async def get_ln_address(self, wallet_id: str, token: bytes) -> str:
        """Lightning address ``<nickname>@<lnaddress domain>`` of a wallet."""
        auth = self.store.get_auth(wallet_id)
        # Creating with valid credentials and a blank nickname returns the stored one
        response = await self._execute(
            LndhubRequest(
                method="POST",
                url=auth.address + CREATE_ROUTE,
                token=token.hex(),
                payload={"login": auth.login, "password": auth.password, "nickname": ""},
            ),
            CreateResponse,
            wallet_id=wallet_id,
        )
        return f"{response.nickname}@{self.settings.lnaddress_domain}"

    # ========================================================================
    # Balance & invoices
    # ========================================================================

    async def get_balance(self, wallet_id: str) -> int:
        """Confirmed balance in satoshis."""
        response = await self._execute(
            self._wallet_request(wallet_id, "GET", BALANCE_ROUTE),
            BalanceResponse,
            wallet_id=wallet_id,
        )
        return response.btc.available_balance

    async def list_paid_invoices(self, wallet_id: str) -> list[Invoice]:
        response = await self._execute(
            self._wallet_request(wallet_id, "GET", PAID_INVOICES_ROUTE),
            InvoiceList,
            wallet_id=wallet_id,
        )
        return response.invoices

    async def list_received_invoices(self, wallet_id: str) -> list[Invoice]:
        response = await self._execute(
            self._wallet_request(wallet_id, "GET", RECEIVED_INVOICES_ROUTE),
            InvoiceList,
            wallet_id=wallet_id,
        )
        return response.invoices

    async def create_local_invoice(self, wallet_id: str, amount_sats: int, memo: str = "") -> str:
        """Create an invoice payable to ``wallet_id``; returns the BOLT-11 string."""
        response = await self._execute(
            self._wallet_request(
                wallet_id, "POST", CREATE_INVOICE_ROUTE, {"amt": amount_sats, "memo": memo}
            ),
            LocalInvoiceResponse,
            wallet_id=wallet_id,
        )
        return response.payment_request

    async def request_remote_invoice(
        self, base_url: str, remote_user: str, amount_sats: int, memo: str = ""
    ) -> str:
        """Ask a lightning-address service for an invoice payable to ``remote_user``.

        The amount goes on the wire in millisatoshis.
        """
        response = await self._execute(
            LndhubRequest(
                method="GET",
                url=base_url + REQUEST_INVOICE_ROUTE,
                params=[
                    ("user", remote_user),
                    ("amount", str(amount_sats * 1000)),
                    ("memo", memo),
                ],
            ),
            RemoteInvoiceResponse,
        )
        if not response.pr:
            raise RemoteProtocolError(
                "Remote service returned an empty invoice", context={"remote_user": remote_user}
            )
        return response.pr

    # ========================================================================
    # Payments
    # ========================================================================

    async def pay_invoice(self, wallet_id: str, payment_request: str, amount_sats: int) -> None:
        """Pay ``payment_request`` from ``wallet_id``.

        Raises:
            QuantityMismatchError: If the invoice embeds a different non-zero amount
            InsufficientBalanceError: If the wallet cannot cover the payment
        """
        decoded: DecodedInvoice = self.decoder(payment_request)
        if decoded.amount_sat != 0 and decoded.amount_sat != amount_sats:
            raise QuantityMismatchError(
                "Invoice amount differs from the amount to pay",
                requested_sats=amount_sats,
                invoice_sats=decoded.amount_sat,
            )

        try:
            await self._execute(
                self._wallet_request(
                    wallet_id,
                    "POST",
                    PAY_INVOICE_ROUTE,
                    {"invoice": payment_request, "amount": amount_sats},
                ),
                EmptyResponse,
                wallet_id=wallet_id,
            )
        except (RemoteProtocolError, HTTPError) as e:
            if NOT_ENOUGH_BALANCE_MARKER in e.remote_message.lower():
                raise InsufficientBalanceError(
                    "Not enough balance to pay the invoice",
                    context={"wallet_id": wallet_id, "amount_sats": amount_sats},
                    original_error=e,
                ) from e
            raise

        logger.info("lndhub_invoice_paid", wallet_id=wallet_id, amount_sats=amount_sats)
