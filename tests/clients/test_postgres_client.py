"""Tests for PostgresClient - pooled connections and scoped transactions."""

import pytest
from unittest.mock import MagicMock, patch
from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient, get_database_url


@pytest.fixture
def fake_pool():
    """Patch the psycopg2 pool so no server is needed."""
    pool = MagicMock()
    conn = MagicMock()
    pool.getconn.return_value = conn
    cursor = conn.cursor.return_value.__enter__.return_value
    cursor.description = [("num",)]
    cursor.fetchall.return_value = [{"num": 1}]
    cursor.fetchone.return_value = (1,)

    with patch("clients.postgres_client.psycopg2.pool.ThreadedConnectionPool", return_value=pool), \
            patch("clients.postgres_client.psycopg2.extras.register_default_jsonb"):
        client = PostgresClient(f"postgresql://fake/{uuid4().hex}")
        yield client, pool, conn, cursor
        client.close()


class TestGetDatabaseUrl:
    """DATABASE_URL lookup."""

    def test_reads_env(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/ledger")
        assert get_database_url() == "postgresql://localhost/ledger"

    def test_missing_raises(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        with pytest.raises(ValueError, match="DATABASE_URL"):
            get_database_url()


class TestConnectionHandling:
    """Statement-level commits and transaction scoping, against a fake pool."""

    def test_execute_commits_and_returns_connection(self, fake_pool):
        client, pool, conn, _ = fake_pool

        assert client.execute("SELECT 1 AS num") == [{"num": 1}]

        conn.commit.assert_called_once()
        pool.putconn.assert_called_once_with(conn)

    def test_execute_converts_uuid_params(self, fake_pool):
        client, _, _, cursor = fake_pool
        doc_id = UUID("00000000-0000-0000-0000-00000000000a")

        client.execute("SELECT %s", (doc_id, [doc_id]))

        cursor.execute.assert_called_once_with("SELECT %s", (str(doc_id), [str(doc_id)]))

    def test_execute_error_rolls_back(self, fake_pool):
        client, _, conn, cursor = fake_pool
        cursor.execute.side_effect = RuntimeError("boom")

        with pytest.raises(RuntimeError):
            client.execute("SELECT 1")

        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()

    def test_transaction_commits_once(self, fake_pool):
        client, pool, conn, _ = fake_pool

        with client.transaction():
            assert client.in_transaction
            client.execute("INSERT 1")
            client.execute("INSERT 2")
            conn.commit.assert_not_called()

        conn.commit.assert_called_once()
        assert pool.getconn.call_count == 1
        assert not client.in_transaction

    def test_transaction_rolls_back_on_error(self, fake_pool):
        client, _, conn, _ = fake_pool

        with pytest.raises(ValueError):
            with client.transaction():
                client.execute("INSERT 1")
                raise ValueError("abort")

        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()

    def test_nested_transaction_joins_outer(self, fake_pool):
        client, pool, conn, _ = fake_pool

        with client.transaction() as outer:
            with client.transaction() as inner:
                assert inner is outer
                client.execute("INSERT 1")

        conn.commit.assert_called_once()
        assert pool.getconn.call_count == 1

    def test_execute_scalar(self, fake_pool):
        client, _, _, _ = fake_pool
        assert client.execute_scalar("SELECT 1") == 1


class TestAgainstDatabase:
    """Query execution against a live server."""

    def test_execute_returns_list_of_dicts(self, db):
        assert db.execute("SELECT 1 as num, 'hello' as word") == [{"num": 1, "word": "hello"}]

    def test_execute_empty_returns_empty_list(self, db):
        assert db.execute("SELECT 1 WHERE false") == []

    def test_execute_single(self, db):
        assert db.execute_single("SELECT 42 as answer") == {"answer": 42}
        assert db.execute_single("SELECT 1 WHERE false") is None

    def test_execute_scalar(self, db):
        assert db.execute_scalar("SELECT 'test'") == "test"
        assert db.execute_scalar("SELECT 1 WHERE false") is None
