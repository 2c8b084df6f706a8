"""
auth/store.py -- Token store: the only mutable state in TokenGate.

Pattern: Repository. Two interchangeable implementations share one surface:

  MemoryTokenStore -- dict guarded by a threading.Lock. Correct for one
      process with any number of threads. State is lost on restart and is NOT
      shared between worker processes.

  SqlTokenStore -- SQLAlchemy Core table. Each transaction() runs inside one
      DB transaction with SELECT ... FOR UPDATE, so several workers pointed at
      the same database serialise renewals and deletions per token. SQLite
      ignores FOR UPDATE but serialises writers on its own.

Surface:
  add(record)            -- insert a freshly minted token
  get(token)             -- read-only lookup (copy), None if absent
  transaction(token)     -- context manager yielding a TokenHandle; the
                            handle's save()/delete() are the only way to
                            mutate an existing record
  close()

Tokens are never stored in the clear. The key is HMAC-SHA256(SECRET_KEY,
token), deterministic so lookup stays O(1), and useless to anyone who reads
the store without the key.

No proactive eviction: an expired token stays until it is presented again and
the engine deletes it.

Layer rule: no imports from api/ or client/.
"""

from __future__ import annotations

import dataclasses
import hashlib
import hmac
import json
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    delete,
    event,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.pool import StaticPool

from auth.models import TokenRecord

logger = logging.getLogger("tokengate.store")


def token_digest(secret_key: str, token: str) -> str:
    """Return HMAC-SHA256(secret_key, token) as a hex string."""
    return hmac.new(secret_key.encode(), token.encode(), hashlib.sha256).hexdigest()


# ---------------------------------------------------------------------------
# Handles
# ---------------------------------------------------------------------------


class TokenHandle:
    """A token's record, checked out for the duration of one transaction.

    record is a private copy (None when the token is unknown). Changes only
    reach the store through save() or delete().
    """

    def __init__(self, token: str, record: TokenRecord | None) -> None:
        self.token = token
        self.record = record

    def save(self, record: TokenRecord) -> None:
        raise NotImplementedError

    def delete(self) -> None:
        raise NotImplementedError


class _MemoryHandle(TokenHandle):
    def __init__(self, store: MemoryTokenStore, key: str, token: str) -> None:
        found = store._records.get(key)
        super().__init__(token, dataclasses.replace(found, token=token) if found else None)
        self._store = store
        self._key = key

    def save(self, record: TokenRecord) -> None:
        self._store._records[self._key] = dataclasses.replace(record, token="")
        self.record = record

    def delete(self) -> None:
        self._store._records.pop(self._key, None)
        self.record = None


class _SqlHandle(TokenHandle):
    def __init__(self, conn: Connection, key: str, token: str, record: TokenRecord | None) -> None:
        super().__init__(token, record)
        self._conn = conn
        self._key = key

    def save(self, record: TokenRecord) -> None:
        self._conn.execute(
            update(_tokens)
            .where(_tokens.c.digest == self._key)
            .values(issued_at=record.issued_at, expires_at=record.expires_at)
        )
        self.record = record

    def delete(self) -> None:
        self._conn.execute(delete(_tokens).where(_tokens.c.digest == self._key))
        self.record = None


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


class MemoryTokenStore:
    """Lock-guarded in-process token map.

    Usage:
        store = MemoryTokenStore(secret_key)
        store.add(record)
        with store.transaction(token) as handle:
            handle.save(renewed_record)
    """

    def __init__(self, secret_key: str) -> None:
        self._secret_key = secret_key
        self._records: dict[str, TokenRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def add(self, record: TokenRecord) -> None:
        key = token_digest(self._secret_key, record.token)
        with self._lock:
            self._records[key] = dataclasses.replace(record, token="")

    def get(self, token: str) -> TokenRecord | None:
        key = token_digest(self._secret_key, token)
        with self._lock:
            found = self._records.get(key)
            return dataclasses.replace(found, token=token) if found else None

    @contextmanager
    def transaction(self, token: str) -> Iterator[TokenHandle]:
        key = token_digest(self._secret_key, token)
        with self._lock:
            yield _MemoryHandle(self, key, token)

    def close(self) -> None:
        with self._lock:
            self._records.clear()


# ---------------------------------------------------------------------------
# SQL store
# ---------------------------------------------------------------------------

_metadata = MetaData()

_tokens = Table(
    "tokens",
    _metadata,
    Column("digest", String(64), primary_key=True),  # HMAC-SHA256 hex of the token
    Column("username", String(255), nullable=False),
    Column("roles", Text, nullable=False),  # JSON array, snapshot at issuance
    Column("issued_at", Integer, nullable=False),
    Column("expires_at", Integer, nullable=False),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block on a renewing writer.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _row_to_record(token: str, row) -> TokenRecord:
    return TokenRecord(
        token=token,
        username=row.username,
        roles=tuple(json.loads(row.roles)),
        issued_at=row.issued_at,
        expires_at=row.expires_at,
    )


class SqlTokenStore:
    """SQLAlchemy Core token table, shareable across worker processes.

    Usage:
        store = SqlTokenStore(secret_key, "postgresql+psycopg://...")
        store.add(record)
        with store.transaction(token) as handle:
            handle.delete()
        store.close()
    """

    def __init__(self, secret_key: str, db_url: str) -> None:
        self._secret_key = secret_key
        kwargs: dict = {}
        if db_url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if db_url in ("sqlite://", "sqlite:///:memory:"):
                # One connection, or every pool checkout sees a blank database.
                kwargs["poolclass"] = StaticPool
        self.engine: Engine = create_engine(db_url, **kwargs)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def __len__(self) -> int:
        with self.engine.connect() as conn:
            return len(conn.execute(select(_tokens.c.digest)).all())

    def add(self, record: TokenRecord) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                insert(_tokens).values(
                    digest=token_digest(self._secret_key, record.token),
                    username=record.username,
                    roles=json.dumps(list(record.roles)),
                    issued_at=record.issued_at,
                    expires_at=record.expires_at,
                )
            )

    def get(self, token: str) -> TokenRecord | None:
        key = token_digest(self._secret_key, token)
        with self.engine.connect() as conn:
            row = conn.execute(select(_tokens).where(_tokens.c.digest == key)).first()
        return _row_to_record(token, row) if row else None

    @contextmanager
    def transaction(self, token: str) -> Iterator[TokenHandle]:
        key = token_digest(self._secret_key, token)
        with self.engine.begin() as conn:
            row = conn.execute(select(_tokens).where(_tokens.c.digest == key).with_for_update()).first()
            record = _row_to_record(token, row) if row else None
            yield _SqlHandle(conn, key, token, record)

    def close(self) -> None:
        self.engine.dispose()


TokenStore = MemoryTokenStore | SqlTokenStore


def build_token_store(secret_key: str, db_url: str = "") -> TokenStore:
    """Return a SqlTokenStore when db_url is set, else a MemoryTokenStore."""
    if db_url:
        logger.info("Using SQL token store")
        return SqlTokenStore(secret_key, db_url)
    logger.info("Using in-memory token store (not shared between worker processes)")
    return MemoryTokenStore(secret_key)
