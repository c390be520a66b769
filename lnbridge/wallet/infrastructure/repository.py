"""Wallet persistence.

Provides data access for wallets and the per-account default wallet. Every
public method runs in its own short-lived session, committed once.

Default wallet rules:
- The first wallet of an account becomes its default.
- Removing the default promotes the newest remaining wallet of the same
  account, or leaves the account without a default when none remain.
- Every default mutation is a single upsert or delete on the account's row.
"""

from __future__ import annotations

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from lnbridge.core.principal import Principal
from lnbridge.exceptions import (
    DuplicateWalletError,
    NoDefaultWalletError,
    NotFoundError,
    ValidationError,
    wrap_exception,
)
from lnbridge.storage.database.base import dialect_insert
from lnbridge.storage.database.models import PublicKeyRecord
from lnbridge.storage.principals import PrincipalIndex
from lnbridge.storage.session import db_session
from lnbridge.utils.logging import get_logger

from ..domain.credentials import validate_wallet_id
from ..domain.models import DefaultWalletRecord, WalletRecord
from ..domain.value_objects import Wallet, WalletAuth

logger = get_logger(__name__)


def _account_str(principal: bytes) -> str:
    return str(Principal(principal))


class WalletRepository:
    """Repository for wallets and their account defaults."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None):
        """Initialize the repository.

        Args:
            session_factory: Factory for sessions (global ``init_db`` factory if None)
        """
        self.session_factory = session_factory

    def _session(self):
        return db_session(self.session_factory)

    def _wallet_query(self):
        return select(WalletRecord, PublicKeyRecord.principal).join(
            PublicKeyRecord, WalletRecord.account_id == PublicKeyRecord.id
        )

    def _get_record(self, db: Session, wallet_id: str) -> WalletRecord:
        record = db.get(WalletRecord, validate_wallet_id(wallet_id))
        if record is None:
            raise NotFoundError("Wallet not found", entity_type="wallet", entity_id=wallet_id)
        return record

    # ========================================================================
    # Wallet CRUD
    # ========================================================================

    def insert(self, wallet: Wallet, login: str, password: str, token: str = "") -> Wallet:
        """Persist a wallet, making it the account default if it has none.

        Raises:
            ValidationError: If the id or account are malformed
            DuplicateWalletError: If a wallet with the same id exists
        """
        validate_wallet_id(wallet.id)
        principal = Principal.decode(wallet.account)

        with self._session() as db:
            account_id = PrincipalIndex(db).ensure(principal.raw)
            db.add(
                WalletRecord(
                    id=wallet.id,
                    account_id=account_id,
                    address=wallet.address,
                    name=wallet.name,
                    type=wallet.type.value.lower(),
                    login=login,
                    password=password,
                    token=token,
                )
            )
            try:
                db.flush()
            except IntegrityError as e:
                raise wrap_exception(
                    e,
                    "Wallet ID already exists",
                    exception_class=DuplicateWalletError,
                    wallet_id=wallet.id,
                ) from e

            db.execute(
                dialect_insert(db, DefaultWalletRecord)
                .values(account_id=account_id, wallet_id=wallet.id)
                .on_conflict_do_nothing(index_elements=[DefaultWalletRecord.account_id])
            )
            db.commit()

        logger.info("wallet_inserted", wallet_id=wallet.id, wallet_type=wallet.type.value)
        return wallet

    def get(self, wallet_id: str) -> Wallet:
        """Find wallet by id.

        Raises:
            NotFoundError: If no wallet has this id
        """
        validate_wallet_id(wallet_id)
        with self._session() as db:
            row = db.execute(self._wallet_query().where(WalletRecord.id == wallet_id)).first()
            if row is None:
                raise NotFoundError("Wallet not found", entity_type="wallet", entity_id=wallet_id)
            record, principal = row
            return record.to_domain(_account_str(principal))

    def list(self, account: str | None = None, limit: int = 0) -> list[Wallet]:
        """List wallets, newest first.

        Args:
            account: Only wallets of this account (all accounts if None)
            limit: Maximum number of wallets; ``<= 0`` means unbounded
        """
        stmt = self._wallet_query().order_by(WalletRecord.created_at.desc(), WalletRecord.id.desc())
        if account is not None:
            stmt = stmt.where(PublicKeyRecord.principal == Principal.decode(account).raw)
        if limit > 0:
            stmt = stmt.limit(limit)

        with self._session() as db:
            return [
                record.to_domain(_account_str(principal))
                for record, principal in db.execute(stmt).all()
            ]

    def count(self, account: str | None = None) -> int:
        """Number of wallets, optionally of one account."""
        stmt = select(func.count(WalletRecord.id)).join(
            PublicKeyRecord, WalletRecord.account_id == PublicKeyRecord.id
        )
        if account is not None:
            stmt = stmt.where(PublicKeyRecord.principal == Principal.decode(account).raw)
        with self._session() as db:
            return db.execute(stmt).scalar_one()

    def update_name(self, wallet_id: str, name: str) -> Wallet:
        """Rename a wallet."""
        with self._session() as db:
            record = self._get_record(db, wallet_id)
            record.name = name
            account = _account_str(db.get(PublicKeyRecord, record.account_id).principal)
            db.commit()
            return record.to_domain(account)

    def remove(self, wallet_id: str) -> None:
        """Delete a wallet, promoting another default when it was the default.

        The default row, the wallet and the promotion are written in one
        transaction, so readers never see an account with two defaults or
        with wallets but no default.

        Raises:
            NotFoundError: If no wallet has this id
        """
        with self._session() as db:
            record = self._get_record(db, wallet_id)
            account_id = record.account_id
            current = db.get(DefaultWalletRecord, account_id)
            was_default = current is not None and current.wallet_id == wallet_id

            if was_default:
                db.execute(
                    delete(DefaultWalletRecord).where(DefaultWalletRecord.account_id == account_id)
                )
            db.execute(delete(WalletRecord).where(WalletRecord.id == wallet_id))

            if was_default:
                newest = (
                    select(WalletRecord.account_id, WalletRecord.id)
                    .where(WalletRecord.account_id == account_id)
                    .order_by(WalletRecord.created_at.desc(), WalletRecord.id.desc())
                    .limit(1)
                )
                db.execute(
                    dialect_insert(db, DefaultWalletRecord)
                    .from_select(["account_id", "wallet_id"], newest)
                    .on_conflict_do_nothing(index_elements=[DefaultWalletRecord.account_id])
                )
            db.commit()

        logger.info("wallet_removed", wallet_id=wallet_id, was_default=was_default)

    # ========================================================================
    # Default wallet
    # ========================================================================

    def set_default(self, account: str, wallet_id: str) -> Wallet:
        """Make ``wallet_id`` the default wallet of ``account``.

        Raises:
            NotFoundError: If the wallet does not exist
            ValidationError: If the wallet belongs to another account
        """
        principal = Principal.decode(account)
        with self._session() as db:
            record = self._get_record(db, wallet_id)
            account_id = PrincipalIndex(db).lookup(principal.raw)
            if account_id is None or record.account_id != account_id:
                raise ValidationError(
                    "Wallet does not belong to the account",
                    field="wallet_id",
                    value=wallet_id,
                )

            stmt = dialect_insert(db, DefaultWalletRecord).values(
                account_id=account_id, wallet_id=wallet_id
            )
            db.execute(
                stmt.on_conflict_do_update(
                    index_elements=[DefaultWalletRecord.account_id],
                    set_={"wallet_id": stmt.excluded.wallet_id},
                )
            )
            db.commit()
            wallet = record.to_domain(account)

        logger.info("default_wallet_set", wallet_id=wallet_id)
        return wallet

    def get_default(self, account: str) -> Wallet:
        """Default wallet of ``account``.

        Raises:
            NoDefaultWalletError: If the account has no wallets
        """
        principal = Principal.decode(account)
        stmt = (
            select(WalletRecord)
            .join(DefaultWalletRecord, DefaultWalletRecord.wallet_id == WalletRecord.id)
            .join(PublicKeyRecord, DefaultWalletRecord.account_id == PublicKeyRecord.id)
            .where(PublicKeyRecord.principal == principal.raw)
        )
        with self._session() as db:
            record = db.execute(stmt).scalar_one_or_none()
            if record is None:
                raise NoDefaultWalletError(
                    "Account has no default wallet", entity_type="account", entity_id=account
                )
            return record.to_domain(account)

    # ========================================================================
    # Credentials
    # ========================================================================

    def get_auth(self, wallet_id: str) -> WalletAuth:
        """Stored login, password, token and service address of a wallet."""
        with self._session() as db:
            return self._get_record(db, wallet_id).to_auth()

    def set_token(self, wallet_id: str, token: str) -> None:
        """Replace the bearer token of a wallet."""
        validate_wallet_id(wallet_id)
        with self._session() as db:
            result = db.execute(
                update(WalletRecord).where(WalletRecord.id == wallet_id).values(token=token)
            )
            if result.rowcount == 0:
                raise NotFoundError("Wallet not found", entity_type="wallet", entity_id=wallet_id)
            db.commit()
        logger.debug("wallet_token_updated", wallet_id=wallet_id)
