"""Domain layer for wallets.

Contains enums, value objects, ORM entities and the credential codec.
"""
