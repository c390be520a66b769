"""Principal index: maps binary principals to internal row ids."""

from sqlalchemy import select
from sqlalchemy.orm import Session

from lnbridge.storage.database.base import dialect_insert
from lnbridge.storage.database.models import PublicKeyRecord


class PrincipalIndex:
    """Lookup and insert-if-absent over the ``public_keys`` table.

    Works inside the caller's session so it joins the caller's transaction.
    """

    def __init__(self, session: Session):
        self.session = session

    def lookup(self, principal: bytes) -> int | None:
        """Row id of ``principal``, or None when it was never seen."""
        stmt = select(PublicKeyRecord.id).where(PublicKeyRecord.principal == principal)
        return self.session.execute(stmt).scalar_one_or_none()

    def ensure(self, principal: bytes) -> int:
        """Row id of ``principal``, inserting it first if needed."""
        existing = self.lookup(principal)
        if existing is not None:
            return existing

        stmt = (
            dialect_insert(self.session, PublicKeyRecord)
            .values(principal=principal)
            .on_conflict_do_nothing(index_elements=[PublicKeyRecord.principal])
        )
        self.session.execute(stmt)
        return self.session.execute(
            select(PublicKeyRecord.id).where(PublicKeyRecord.principal == principal)
        ).scalar_one()

    def principal_of(self, row_id: int) -> bytes | None:
        """Binary principal stored under ``row_id``."""
        record = self.session.get(PublicKeyRecord, row_id)
        return record.principal if record else None
