"""Shared database models."""

from sqlalchemy import LargeBinary
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class PublicKeyRecord(TimestampMixin, Base):
    """Index of known network principals.

    Other tables reference accounts and devices through ``id`` rather than
    repeating the binary principal.
    """

    __tablename__ = "public_keys"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    principal: Mapped[bytes] = mapped_column(LargeBinary, unique=True, nullable=False)

    def __repr__(self) -> str:
        return f"<PublicKeyRecord(id={self.id})>"
