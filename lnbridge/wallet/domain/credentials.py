"""Credential URI codec and wallet id derivation.

Credential URIs look like ``lndhub.go://<login>:<hex password>@https://<domain>``.
"""

import hashlib
import re

from lnbridge.exceptions import MalformedCredentialsError, ValidationError

from .value_objects import WALLET_ID_LENGTH, Credentials

# Message signed by an account key to derive its lndhub.go password
SIGNING_MESSAGE = "sign in into seed lndhub"

_CREDENTIALS_RE = re.compile(
    r"(?P<type>[A-Za-z0-9_\-.+]+)://"
    r"(?P<login>[A-Za-z0-9_\-.]+):(?P<password>[0-9a-f]+)"
    r"@https://(?P<domain>[A-Za-z0-9_\-.]+)/?"
)


def decode_credentials_url(uri: str) -> Credentials:
    """Parse a credential URI.

    The wallet type is lower-cased. The URI itself is never echoed back in
    the error, since it carries the password.

    Raises:
        MalformedCredentialsError: If ``uri`` does not match exactly
    """
    match = _CREDENTIALS_RE.fullmatch(uri.strip()) if uri else None
    if match is None:
        raise MalformedCredentialsError(
            "Malformed credentials URI, expected <type>://<login>:<password>@https://<domain>",
            field="credentials_url",
        )
    return Credentials(
        domain=match["domain"],
        wallet_type=match["type"].lower(),
        login=match["login"],
        password=match["password"],
    )


def encode_credentials_url(credentials: Credentials) -> str:
    """Build a credential URI, validating it by decoding it again.

    Raises:
        MalformedCredentialsError: If the fields cannot form a valid URI
    """
    uri = (
        f"{credentials.wallet_type}://{credentials.login}:{credentials.password}"
        f"@https://{credentials.domain}"
    )
    decoded = decode_credentials_url(uri)
    if (
        decoded.domain != credentials.domain
        or decoded.login != credentials.login
        or decoded.password != credentials.password
        or decoded.wallet_type != credentials.wallet_type.lower()
    ):
        raise MalformedCredentialsError("Credentials do not survive encoding")
    return uri


def derive_wallet_id(uri: str, account: str) -> str:
    """Hex SHA-256 of ``uri`` followed by ``account``."""
    return hashlib.sha256((uri + account).encode("utf-8")).hexdigest()


def validate_wallet_id(wallet_id: str) -> str:
    """Reject ids of the wrong length before they reach the database.

    Raises:
        ValidationError: If ``wallet_id`` is not 64 characters long
    """
    if not wallet_id or len(wallet_id) != WALLET_ID_LENGTH:
        raise ValidationError(
            f"Wallet id must be {WALLET_ID_LENGTH} characters",
            field="wallet_id",
            value=wallet_id,
        )
    return wallet_id
