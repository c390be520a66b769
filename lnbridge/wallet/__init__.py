"""Lightning wallets backed by lndhub-compatible services.

Wallet lifecycle, payments and invoice issuance, including the P2P fallback
used when a counterpart has no reachable lightning address.
"""
