"""
Pytest configuration and global fixtures.

This module provides shared fixtures used across all tests.
"""

import hashlib
from collections.abc import Generator

import pytest
from sqlalchemy.orm import Session, sessionmaker

import lnbridge.storage.database.models  # noqa: F401
import lnbridge.wallet.domain.models  # noqa: F401
from lnbridge.core.principal import InMemoryKeyStore, KeyPair
from lnbridge.storage.database.base import Base, create_db_engine, create_session_factory
from lnbridge.utils.config import Settings
from lnbridge.wallet.domain.enums import WalletType
from lnbridge.wallet.domain.value_objects import Wallet
from lnbridge.wallet.infrastructure.repository import WalletRepository

TEST_SERVICE_URL = "https://ln.example.test"


@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine) -> sessionmaker[Session]:
    return create_session_factory(db_engine)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    """
    Create a database session for testing.

    Each test gets a fresh session with automatic rollback.
    """
    session = session_factory()

    yield session

    session.rollback()
    session.close()


@pytest.fixture
def repository(session_factory) -> WalletRepository:
    return WalletRepository(session_factory)


@pytest.fixture
def test_settings() -> Settings:
    """Test settings pointing at a fake lndhub service."""
    return Settings(
        database_url="sqlite://",
        lndhub_domain="ln.example.test",
        lnaddress_domain="ln.example.test",
        request_max_attempts=2,
        p2p_device_timeout_seconds=0.5,
    )


def make_key(label: str) -> KeyPair:
    """Deterministic key pair derived from ``label``."""
    return KeyPair.from_seed(hashlib.sha256(label.encode()).digest())


@pytest.fixture
def alice_key() -> KeyPair:
    return make_key("alice")


@pytest.fixture
def bob_key() -> KeyPair:
    return make_key("bob")


@pytest.fixture
def alice(alice_key) -> str:
    """Account id of Alice."""
    return str(alice_key.principal)


@pytest.fixture
def bob(bob_key) -> str:
    """Account id of Bob."""
    return str(bob_key.principal)


@pytest.fixture
def keystore(alice_key, bob_key) -> InMemoryKeyStore:
    return InMemoryKeyStore([alice_key, bob_key])


def make_wallet(
    account: str,
    label: str,
    wallet_type: WalletType = WalletType.LNDHUB,
    address: str = TEST_SERVICE_URL,
) -> Wallet:
    """Wallet with an id derived from ``label``."""
    return Wallet(
        id=hashlib.sha256(f"{account}:{label}".encode()).hexdigest(),
        account=account,
        address=address,
        name=label,
        type=wallet_type,
    )


@pytest.fixture
def wallet_factory():
    """Build wallets: ``wallet_factory(account, label, wallet_type=..., address=...)``."""
    return make_wallet
