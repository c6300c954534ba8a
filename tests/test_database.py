"""
tests/test_database.py -- Unit tests for core/database.py.

Covers:
  - memory URLs get SingletonThreadPool explicitly, without deprecation warnings
  - file URLs keep the default pool
  - is_store_unavailable() classification
"""

from __future__ import annotations

import uuid
import warnings

from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.pool import SingletonThreadPool

from core.database import is_store_unavailable, make_engine


class TestMakeEngine:
    def test_memory_url_uses_singleton_pool_quietly(self) -> None:
        url = f"sqlite:///file:db_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            engine = make_engine(url, timeout=1.0)
        assert isinstance(engine.pool, SingletonThreadPool)
        engine.dispose()

    def test_file_url_keeps_default_pool(self, tmp_path) -> None:
        engine = make_engine(f"sqlite:///{tmp_path / 'hub.db'}", timeout=1.0)
        assert not isinstance(engine.pool, SingletonThreadPool)
        engine.dispose()


class TestStoreUnavailable:
    def test_lock_is_unavailable(self) -> None:
        assert is_store_unavailable(OperationalError("SELECT 1", {}, Exception("database is locked"))) is True

    def test_pool_timeout_is_unavailable(self) -> None:
        assert is_store_unavailable(PoolTimeoutError("QueuePool limit reached")) is True

    def test_other_errors_are_not(self) -> None:
        assert is_store_unavailable(OperationalError("SELECT 1", {}, Exception("no such table: x"))) is False
        assert is_store_unavailable(ValueError("nope")) is False
