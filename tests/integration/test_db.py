"""Tests for the bounded connection pool."""

import pytest
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from telemetry_ingest.config import Config
from telemetry_ingest.db import Database
from telemetry_ingest.errors import ConfigError


class TestDatabase:
    """Tests for Database construction and pool limits."""

    @pytest.mark.parametrize("url", [None, "", "not a url", "nosuchdialect://host/db"])
    def test_invalid_connection_string(self, url):
        with pytest.raises(ConfigError):
            Database(url)

    def test_unreachable_store_fails_check(self, tmp_path):
        database = Database(f"sqlite:///{tmp_path / 'missing' / 'dir' / 'x.db'}")
        try:
            with pytest.raises(ConfigError):
                database.check_connection()
        finally:
            database.dispose()

    def test_check_connection(self, database):
        database.check_connection()

    def test_from_config(self, monkeypatch, db_url):
        monkeypatch.setenv("DATABASE_URL", db_url)
        monkeypatch.setenv("DB_POOL_SIZE", "2")
        monkeypatch.setenv("DB_POOL_TIMEOUT", "0.5")

        database = Database.from_config(Config())
        try:
            assert database.pool_size == 2
            assert database.pool_timeout == 0.5
            assert database.engine.pool.size() == 2
        finally:
            database.dispose()

    def test_from_config_without_url(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        with pytest.raises(ConfigError):
            Database.from_config(Config())

    def test_pool_is_bounded(self, make_database):
        """Checking out more than pool_size connections times out instead of waiting forever."""
        database = make_database(pool_size=2, pool_timeout=0.2)
        first = database.engine.connect()
        second = database.engine.connect()
        try:
            with pytest.raises(PoolTimeoutError):
                database.engine.connect()
        finally:
            first.close()
            second.close()

        with database.engine.connect():
            pass

    def test_session_is_closed(self, database):
        with database.session() as db:
            db.connection()
            assert database.engine.pool.checkedout() == 1
        assert database.engine.pool.checkedout() == 0
