"""Unit tests for auth/store.py token stores.

Every behaviour is checked against both MemoryTokenStore and SqlTokenStore
(in-memory SQLite), since the engine treats them interchangeably.

Covers:
- add / get round trip, copies not live references
- transaction save and delete
- tokens stored under their HMAC digest, never in the clear
- deleting an expired token through the engine is committed on SQL stores
- build_token_store selection
"""

import pytest
from sqlalchemy import select

from auth.errors import TokenExpired
from auth.models import TokenRecord
from auth.store import MemoryTokenStore, SqlTokenStore, _tokens, build_token_store, token_digest
from conftest import TEST_SECRET, FakeClock, make_engine

TOKEN = "ab" * 16


def _record(token: str = TOKEN, issued_at: int = 1000) -> TokenRecord:
    return TokenRecord(
        token=token,
        username="alice",
        roles=("admin", "editor"),
        issued_at=issued_at,
        expires_at=issued_at + 600,
    )


@pytest.fixture(params=["memory", "sql"])
def store(request):
    if request.param == "memory":
        s = MemoryTokenStore(TEST_SECRET)
    else:
        s = SqlTokenStore(TEST_SECRET, "sqlite://")
    yield s
    s.close()


class TestTokenStore:
    def test_get_unknown_returns_none(self, store) -> None:
        assert store.get(TOKEN) is None

    def test_add_then_get(self, store) -> None:
        store.add(_record())
        assert store.get(TOKEN) == _record()
        assert len(store) == 1

    def test_get_returns_copy(self, store) -> None:
        store.add(_record())
        fetched = store.get(TOKEN)
        fetched.expires_at = 0
        assert store.get(TOKEN).expires_at == 1600

    def test_transaction_save(self, store) -> None:
        store.add(_record())
        with store.transaction(TOKEN) as handle:
            assert handle.record == _record()
            handle.save(_record(issued_at=5000))
        assert store.get(TOKEN) == _record(issued_at=5000)

    def test_transaction_delete(self, store) -> None:
        store.add(_record())
        with store.transaction(TOKEN) as handle:
            handle.delete()
            assert handle.record is None
        assert store.get(TOKEN) is None
        assert len(store) == 0

    def test_transaction_unknown_token(self, store) -> None:
        with store.transaction(TOKEN) as handle:
            assert handle.record is None

    def test_unsaved_changes_are_discarded(self, store) -> None:
        store.add(_record())
        with store.transaction(TOKEN) as handle:
            handle.record.expires_at = 0
        assert store.get(TOKEN).expires_at == 1600

    def test_expired_delete_survives_raised_error(self, store) -> None:
        """The engine raises TokenExpired after deleting; the delete must stick."""
        clock = FakeClock()
        engine = make_engine(clock, tokens=store)
        token = engine.login("alice", "password1").token
        clock.advance(1801)
        with pytest.raises(TokenExpired):
            engine.validate(f"Bearer {token}")
        assert store.get(token) is None


class TestDigestKeys:
    def test_digest_is_keyed(self) -> None:
        assert token_digest(TEST_SECRET, TOKEN) != token_digest(TEST_SECRET + "x", TOKEN)
        assert len(token_digest(TEST_SECRET, TOKEN)) == 64

    def test_memory_store_keys_by_digest(self) -> None:
        s = MemoryTokenStore(TEST_SECRET)
        s.add(_record())
        assert list(s._records) == [token_digest(TEST_SECRET, TOKEN)]
        assert all(TOKEN not in repr(r) for r in s._records.values())

    def test_sql_store_keys_by_digest(self) -> None:
        s = SqlTokenStore(TEST_SECRET, "sqlite://")
        s.add(_record())
        with s.engine.connect() as conn:
            digests = conn.execute(select(_tokens.c.digest)).scalars().all()
        assert digests == [token_digest(TEST_SECRET, TOKEN)]
        s.close()


class TestBuildTokenStore:
    def test_empty_url_gives_memory_store(self) -> None:
        assert isinstance(build_token_store(TEST_SECRET, ""), MemoryTokenStore)

    def test_url_gives_sql_store(self) -> None:
        s = build_token_store(TEST_SECRET, "sqlite://")
        assert isinstance(s, SqlTokenStore)
        s.close()
