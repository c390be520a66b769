"""Wallet entities mapped to database tables via SQLAlchemy."""

from sqlalchemy import ForeignKey, ForeignKeyConstraint, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from lnbridge.storage.database.base import Base, TimestampMixin

from .enums import WalletType
from .value_objects import Wallet, WalletAuth


class WalletRecord(TimestampMixin, Base):
    """Stored wallet, including the credentials needed to talk to its backend.

    ``id`` is the SHA-256 of the credential URI and owning account, so the
    same URI imported by two accounts yields two wallets.
    """

    __tablename__ = "wallets"
    __table_args__ = (UniqueConstraint("account_id", "id"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    account_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("public_keys.id"), nullable=False, index=True
    )
    address: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    type: Mapped[str] = mapped_column(String(16), nullable=False)

    login: Mapped[str] = mapped_column(Text, nullable=False)
    password: Mapped[str] = mapped_column(Text, nullable=False)
    token: Mapped[str] = mapped_column(Text, nullable=False, default="")

    def __repr__(self) -> str:
        return f"<WalletRecord(id={self.id[:8]}..., type='{self.type}', name='{self.name}')>"

    def to_domain(self, account: str) -> Wallet:
        """Build the domain value; ``account`` is the owner's principal string."""
        return Wallet(
            id=self.id,
            account=account,
            address=self.address,
            name=self.name,
            type=WalletType.parse(self.type),
        )

    def to_auth(self) -> WalletAuth:
        return WalletAuth(
            login=self.login,
            password=self.password,
            token=self.token,
            address=self.address,
        )


class DefaultWalletRecord(Base):
    """Default wallet of an account.

    One row per account. The composite foreign key makes it impossible to
    point an account at another account's wallet.
    """

    __tablename__ = "default_wallets"
    __table_args__ = (
        ForeignKeyConstraint(
            ["account_id", "wallet_id"],
            ["wallets.account_id", "wallets.id"],
            ondelete="CASCADE",
        ),
    )

    account_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("public_keys.id"), primary_key=True
    )
    wallet_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    def __repr__(self) -> str:
        return f"<DefaultWalletRecord(account_id={self.account_id}, wallet_id={self.wallet_id[:8]}...)>"
