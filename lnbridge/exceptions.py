"""Exception hierarchy for lnbridge.

Every error carries a human-readable message plus a structured ``context``
dict for logging. Credentials (login, password, bearer token, credential
URIs) are never placed in messages or context.

Usage:
    from lnbridge.exceptions import ValidationError, NotFoundError

    try:
        wallet = repository.get(wallet_id)
    except NotFoundError as e:
        logger.warning("wallet_missing", error=str(e), context=e.context)
"""

from __future__ import annotations

from typing import Any


class LnBridgeError(Exception):
    """Base exception for all lnbridge errors.

    Attributes:
        message: Human-readable error message
        context: Additional context for debugging (dict)
        original_error: Original exception if wrapped
    """

    def __init__(
        self,
        message: str,
        *,
        context: dict[str, Any] | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.original_error = original_error

    def __str__(self) -> str:
        """Format exception with context for logging."""
        base = self.message
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base = f"{base} ({ctx_str})"
        if self.original_error:
            base = f"{base} [caused by: {type(self.original_error).__name__}]"
        return base

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, context={self.context!r})"


# =============================================================================
# Validation & Input Errors
# =============================================================================


class ValidationError(LnBridgeError):
    """Raised when input validation fails.

    Used for empty accounts, malformed ids, unknown principals and similar
    caller mistakes.
    """

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        constraint: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize validation error.

        Args:
            message: Error description
            field: Name of the invalid field
            value: The invalid value (truncated)
            constraint: Validation constraint that was violated
            **kwargs: Additional context
        """
        context = kwargs.get("context", {})
        if field:
            context["field"] = field
        if value is not None:
            context["value"] = str(value)[:100]
        if constraint:
            context["constraint"] = constraint
        kwargs["context"] = context
        super().__init__(message, **kwargs)


class MalformedCredentialsError(ValidationError):
    """Raised when a credential URI does not match the expected shape.

    The offending URI is never attached, since it embeds a password.
    """


class UnsupportedWalletTypeError(ValidationError):
    """Raised when a wallet type has no backend."""

    def __init__(self, message: str, *, wallet_type: str | None = None, **kwargs: Any) -> None:
        context = kwargs.get("context", {})
        if wallet_type:
            context["wallet_type"] = wallet_type
        kwargs["context"] = context
        super().__init__(message, **kwargs)


class ConfigurationError(LnBridgeError):
    """Raised when application configuration is invalid or missing."""

    def __init__(
        self,
        message: str,
        *,
        setting: str | None = None,
        expected: str | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if setting:
            context["setting"] = setting
        if expected:
            context["expected"] = expected
        kwargs["context"] = context
        super().__init__(message, **kwargs)


# =============================================================================
# Database & Persistence Errors
# =============================================================================


class DatabaseError(LnBridgeError):
    """Base class for database-related errors."""


class RecordNotFoundError(DatabaseError):
    """Raised when a database record is not found.

    Args:
        entity_type: Type of entity (e.g., "wallet", "account")
        entity_id: ID of the missing entity
    """

    def __init__(
        self,
        message: str,
        *,
        entity_type: str | None = None,
        entity_id: int | str | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if entity_type:
            context["entity_type"] = entity_type
        if entity_id:
            context["entity_id"] = str(entity_id)
        kwargs["context"] = context
        super().__init__(message, **kwargs)


NotFoundError = RecordNotFoundError


class NoDefaultWalletError(RecordNotFoundError):
    """Raised when an account has no default wallet."""


class DatabaseIntegrityError(DatabaseError):
    """Raised when database integrity constraints are violated."""


class DuplicateWalletError(DatabaseIntegrityError):
    """Raised when a wallet with the same id already exists."""


# =============================================================================
# Business Logic Errors
# =============================================================================


class BusinessLogicError(LnBridgeError):
    """Base class for business rule violations."""


class AlreadyHasPrimaryWalletError(BusinessLogicError):
    """Raised when an account already owns an lndhub.go wallet."""


class PaymentError(BusinessLogicError):
    """Raised when payment operations fail."""


class QuantityMismatchError(PaymentError):
    """Raised when the amount to pay differs from the invoice amount."""

    def __init__(
        self,
        message: str,
        *,
        requested_sats: int | None = None,
        invoice_sats: int | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if requested_sats is not None:
            context["requested_sats"] = requested_sats
        if invoice_sats is not None:
            context["invoice_sats"] = invoice_sats
        kwargs["context"] = context
        super().__init__(message, **kwargs)


class InsufficientBalanceError(PaymentError):
    """Raised when the wallet cannot cover the payment."""


# =============================================================================
# External Integration Errors
# =============================================================================


class IntegrationError(LnBridgeError):
    """Base class for external service integration errors."""


class RemoteProtocolError(IntegrationError):
    """Raised when an lndhub backend answers with a structured error payload.

    Used for ``{"error": true, "code": ..., "message": ...}`` bodies and for
    responses that cannot be decoded into the expected shape.
    """

    def __init__(
        self,
        message: str,
        *,
        code: int | str | None = None,
        remote_message: str | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if code is not None:
            context["code"] = code
        if remote_message:
            context["remote_message"] = remote_message[:200]
        kwargs["context"] = context
        super().__init__(message, **kwargs)
        self.code = code
        self.remote_message = remote_message or ""


class AuthenticationError(IntegrationError):
    """Raised when the backend keeps rejecting the wallet credentials."""

    def __init__(self, message: str, *, remote_message: str | None = None, **kwargs: Any) -> None:
        context = kwargs.get("context", {})
        if remote_message:
            context["remote_message"] = remote_message[:200]
        kwargs["context"] = context
        super().__init__(message, **kwargs)
        self.remote_message = remote_message or ""


class InvoiceRequestError(IntegrationError):
    """Raised when no route could mint the requested invoice."""


# =============================================================================
# HTTP & Network Errors
# =============================================================================


class NetworkError(LnBridgeError):
    """Base class for network-related errors."""


class HTTPError(NetworkError):
    """Raised when an HTTP request fails after its attempt budget."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str | None = None,
        method: str | None = None,
        remote_message: str | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if method:
            context["method"] = method
        if url:
            context["url"] = url[:100]
        if status_code:
            context["status_code"] = status_code
        if remote_message:
            context["remote_message"] = remote_message[:200]
        kwargs["context"] = context
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.remote_message = remote_message or ""


class RateLimitExhaustedError(HTTPError):
    """Raised when the backend is still rate limiting after every attempt."""


class TimeoutError(NetworkError):
    """Raised when network operation times out."""


# =============================================================================
# Utility Functions
# =============================================================================


def wrap_exception(
    error: Exception,
    message: str,
    *,
    exception_class: type[LnBridgeError] = LnBridgeError,
    **context: Any,
) -> LnBridgeError:
    """Wrap an external exception in the lnbridge hierarchy.

    Args:
        error: Original exception to wrap
        message: Human-readable description
        exception_class: Which lnbridge exception to use
        **context: Additional context to attach

    Returns:
        Wrapped exception with original error preserved

    Example:
        try:
            session.commit()
        except IntegrityError as e:
            raise wrap_exception(
                e,
                "Wallet already exists",
                exception_class=DuplicateWalletError,
                wallet_id=wallet.id,
            )
    """
    return exception_class(
        message,
        context=context,
        original_error=error,
    )


__all__ = [
    # Base
    "LnBridgeError",
    # Validation
    "ValidationError",
    "MalformedCredentialsError",
    "UnsupportedWalletTypeError",
    "ConfigurationError",
    # Database
    "DatabaseError",
    "RecordNotFoundError",
    "NotFoundError",
    "NoDefaultWalletError",
    "DatabaseIntegrityError",
    "DuplicateWalletError",
    # Business Logic
    "BusinessLogicError",
    "AlreadyHasPrimaryWalletError",
    "PaymentError",
    "QuantityMismatchError",
    "InsufficientBalanceError",
    # Integration
    "IntegrationError",
    "RemoteProtocolError",
    "AuthenticationError",
    "InvoiceRequestError",
    # Network
    "NetworkError",
    "HTTPError",
    "RateLimitExhaustedError",
    "TimeoutError",
    # Utilities
    "wrap_exception",
]
