"""
core/database.py -- SQLAlchemy engine factory shared by UserStore and ProjectStore.

Both repositories used to build their engines inline with identical
SQLite special-casing. This module owns that logic so the timeout policy lives
in one place:

  SQLite: check_same_thread=False (FastAPI runs sync handlers in a threadpool)
          and a busy timeout of STORE_TIMEOUT_SECONDS, so a locked database
          fails fast instead of blocking the request indefinitely.
  Others: pool_timeout=STORE_TIMEOUT_SECONDS bounds the wait for a pooled
          connection.

In-memory SQLite URLs get SingletonThreadPool explicitly. It rejects pool_timeout, so
the pool arguments are only passed for non-SQLite URLs.

is_store_unavailable() classifies SQLAlchemy errors that mean "the store did
not answer in time" -- api/main.py maps those to 503.
"""

from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.pool import SingletonThreadPool

from core.config import get_settings

_UNAVAILABLE_MARKERS = ("database is locked", "timeout", "timed out", "could not connect")


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode on every new SQLite connection.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _is_memory_url(db_url: str) -> bool:
    return db_url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in db_url


def make_engine(db_url: str, timeout: float | None = None) -> Engine:
    """Create an Engine for db_url with a bounded wait on every store call."""
    if timeout is None:
        timeout = get_settings().store_timeout_seconds
    if db_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": timeout}
        if _is_memory_url(db_url):
            # One connection per thread keeps a shared-cache memory DB alive.
            engine = create_engine(db_url, connect_args=connect_args, poolclass=SingletonThreadPool)
        else:
            engine = create_engine(db_url, connect_args=connect_args)
        event.listen(engine, "connect", _set_wal_mode)
        return engine
    return create_engine(db_url, pool_timeout=timeout, pool_pre_ping=True)


def is_store_unavailable(exc: Exception) -> bool:
    """Return True if exc means the store timed out or could not be reached."""
    if isinstance(exc, PoolTimeoutError):
        return True
    if isinstance(exc, OperationalError):
        if exc.connection_invalidated:
            return True
        message = str(exc.orig if exc.orig is not None else exc).lower()
        return any(marker in message for marker in _UNAVAILABLE_MARKERS)
    return False
