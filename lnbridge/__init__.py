"""lnbridge: custodial Lightning wallets for peer-to-peer network accounts.

Accounts send and receive Lightning payments through lndhub-compatible REST
backends, falling back to the counterpart's own devices when no direct
lightning-address route can mint an invoice.
"""

__version__ = "0.1.0"
