"""Test suite for database session management.

Tests cover:
- Context manager functionality (db_session)
- Exception handling and rollback
- Principal index inside a session
"""

import pytest
from sqlalchemy import select

from lnbridge.storage.database.models import PublicKeyRecord
from lnbridge.storage.principals import PrincipalIndex
from lnbridge.storage.session import db_session

# ============================================================================
# db_session Context Manager Tests
# ============================================================================


class TestDbSession:
    """Test synchronous db_session context manager."""

    def test_commit_persists_changes(self, session_factory):
        with db_session(session_factory) as db:
            db.add(PublicKeyRecord(principal=b"\xed\x01" + b"\x01" * 32))
            db.commit()

        with db_session(session_factory) as db:
            assert db.execute(select(PublicKeyRecord)).scalars().one() is not None

    def test_no_commit_doesnt_persist(self, session_factory):
        with db_session(session_factory) as db:
            db.add(PublicKeyRecord(principal=b"\xed\x01" + b"\x02" * 32))
            db.flush()

        with db_session(session_factory) as db:
            assert db.execute(select(PublicKeyRecord)).scalars().all() == []

    def test_exception_triggers_rollback(self, session_factory):
        with pytest.raises(ValueError):
            with db_session(session_factory) as db:
                db.add(PublicKeyRecord(principal=b"\xed\x01" + b"\x03" * 32))
                db.flush()
                raise ValueError("Test exception")

        with db_session(session_factory) as db:
            assert db.execute(select(PublicKeyRecord)).scalars().all() == []

    def test_multiple_sessions_independent(self, session_factory):
        with db_session(session_factory) as db1:
            with db_session(session_factory) as db2:
                assert db1 is not db2


class TestPrincipalIndex:
    """Insert-if-absent principal lookup."""

    def test_ensure_is_idempotent(self, session_factory):
        principal = b"\xed\x01" + b"\x04" * 32

        with db_session(session_factory) as db:
            index = PrincipalIndex(db)
            first = index.ensure(principal)
            second = index.ensure(principal)

            assert first == second
            assert index.lookup(principal) == first
            assert index.principal_of(first) == principal

    def test_unknown_principal(self, session_factory):
        with db_session(session_factory) as db:
            index = PrincipalIndex(db)

            assert index.lookup(b"\x00") is None
            assert index.principal_of(999) is None
