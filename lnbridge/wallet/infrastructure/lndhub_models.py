"""Typed lndhub wire payloads (pydantic)."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LndhubModel(BaseModel):
    """Base for lndhub payloads; unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class CreateResponse(LndhubModel):
    """Reply of ``/v2/create``."""

    login: str = ""
    password: str = Field(default="", repr=False)
    nickname: str = ""


class CheckResponse(LndhubModel):
    """Reply of ``/v2/check``: the subset of users that exist."""

    existing_users: list[str] = Field(default_factory=list)

    @field_validator("existing_users", mode="before")
    @classmethod
    def _null_is_empty(cls, value: Any) -> Any:
        return value or []


class AuthResponse(LndhubModel):
    """Reply of ``/auth``."""

    access_token: str = Field(repr=False)


class BtcBalance(LndhubModel):
    available_balance: int = Field(default=0, alias="AvailableBalance")


class BalanceResponse(LndhubModel):
    """Reply of ``/balance``; amounts in satoshis."""

    btc: BtcBalance = Field(default_factory=BtcBalance, alias="BTC")


class Invoice(LndhubModel):
    """Invoice as listed by ``/v2/invoices/*``. Amounts are satoshis."""

    payment_hash: str = ""
    payment_request: str = ""
    description: str = ""
    description_hash: str = ""
    payment_preimage: str = ""
    destination: str = ""
    amount: int = 0
    fee: int = 0
    status: str = ""
    type: str = ""
    error_message: str = ""
    settled_at: str = ""
    expires_at: str = ""
    is_paid: bool = False
    keysend: bool = False

    @field_validator(
        "description",
        "description_hash",
        "payment_preimage",
        "error_message",
        "settled_at",
        "expires_at",
        mode="before",
    )
    @classmethod
    def _null_is_blank(cls, value: Any) -> Any:
        return "" if value is None else value


class InvoiceList(LndhubModel):
    invoices: list[Invoice] = Field(default_factory=list)

    @field_validator("invoices", mode="before")
    @classmethod
    def _null_is_empty(cls, value: Any) -> Any:
        return value or []


class LocalInvoiceResponse(LndhubModel):
    """Reply of ``/addinvoice``."""

    payment_request: str


class RemoteInvoiceResponse(LndhubModel):
    """Reply of the LUD-6 ``/v2/invoice`` request."""

    pr: str = ""


class EmptyResponse(LndhubModel):
    """Reply whose content is not needed."""
