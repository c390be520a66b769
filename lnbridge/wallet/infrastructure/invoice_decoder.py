"""BOLT-11 decoding adapter around the ``bolt11`` library."""

import bolt11
from bolt11.exceptions import Bolt11Exception

from lnbridge.exceptions import ValidationError

from ..domain.value_objects import DecodedInvoice


def decode_invoice(payment_request: str) -> DecodedInvoice:
    """Decode a main-net or test-net BOLT-11 payment request.

    Raises:
        ValidationError: If the payment request cannot be decoded
    """
    text = (payment_request or "").strip()
    if text.lower().startswith("lightning:"):
        text = text[len("lightning:") :]
    if not text:
        raise ValidationError("Payment request is empty", field="payment_request")
    try:
        invoice = bolt11.decode(text)
    except (Bolt11Exception, ValueError, TypeError, IndexError, KeyError) as e:
        raise ValidationError(
            "Could not decode BOLT-11 invoice",
            field="payment_request",
            value=text[:40],
            original_error=e,
        ) from e

    return DecodedInvoice(
        payment_hash=invoice.payment_hash,
        amount_msat=invoice.amount_msat,
        description=invoice.description or "",
        destination=getattr(invoice, "payee", None) or "",
    )
