from __future__ import annotations

from datetime import datetime

import psycopg2
import pytest

from event_importer.db.upload_insert import (
    INSERT_UPLOAD_SQL,
    InsertError,
    PostgresUploadGateway,
    insert_upload,
)
from event_importer.models.upload import UploadEntity


class DummyCursor:
    def __init__(self, fetched=(7,), error: Exception | None = None) -> None:
        self.queries: list[tuple[str, tuple]] = []
        self.fetched = fetched
        self.error = error

    def execute(self, sql, params=None):
        if self.error is not None:
            raise self.error
        self.queries.append((sql, params))

    def fetchone(self):
        return self.fetched

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class DummyConnection:
    def __init__(self, cursor: DummyCursor) -> None:
        self._cursor = cursor
        self.commits = 0
        self.rollbacks = 0

    def cursor(self):
        return self._cursor

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1


def _entity() -> UploadEntity:
    return UploadEntity(
        event_datetime=datetime(2023, 5, 1, 10, 0, 0),
        event_action="PURCHASE",
        call_ref=123,
        event_value=9.99,
        event_currency_code="USD",
    )


def test_insert_upload_returns_generated_id():
    cur = DummyCursor(fetched=(42,))
    new_id = insert_upload(cur, _entity())

    assert new_id == 42
    sql, params = cur.queries[0]
    assert sql == INSERT_UPLOAD_SQL
    assert "RETURNING id" in sql
    assert params == (datetime(2023, 5, 1, 10, 0, 0), "PURCHASE", 123, 9.99, "USD")


def test_insert_upload_wraps_driver_error():
    cur = DummyCursor(error=psycopg2.DataError("value too long for type character varying(3)"))
    with pytest.raises(InsertError, match="value too long"):
        insert_upload(cur, _entity())


def test_insert_upload_without_returned_row():
    with pytest.raises(InsertError):
        insert_upload(DummyCursor(fetched=None), _entity())


def test_gateway_commits_each_insert_and_sets_id():
    conn = DummyConnection(DummyCursor(fetched=(5,)))
    gateway = PostgresUploadGateway(conn)
    entity = _entity()

    assert gateway.insert(entity) == 5
    assert entity.id == 5
    assert conn.commits == 1
    assert conn.rollbacks == 0


def test_gateway_rolls_back_failed_insert():
    conn = DummyConnection(DummyCursor(error=psycopg2.IntegrityError("duplicate key")))
    gateway = PostgresUploadGateway(conn)
    entity = _entity()

    with pytest.raises(InsertError):
        gateway.insert(entity)
    assert entity.id is None
    assert conn.commits == 0
    assert conn.rollbacks == 1


class ClosedConnection:
    """Connection whose server went away: every call fails."""

    def __init__(self) -> None:
        self.rollback_attempts = 0

    def cursor(self):
        return DummyCursor(error=psycopg2.OperationalError("server closed the connection unexpectedly"))

    def commit(self):
        raise psycopg2.InterfaceError("connection already closed")

    def rollback(self):
        self.rollback_attempts += 1
        raise psycopg2.InterfaceError("connection already closed")


def test_gateway_reports_insert_error_when_rollback_fails():
    conn = ClosedConnection()
    gateway = PostgresUploadGateway(conn)
    entity = _entity()

    with pytest.raises(InsertError, match="server closed the connection"):
        gateway.insert(entity)
    assert conn.rollback_attempts == 1
    assert entity.id is None


def test_gateway_reports_insert_error_when_commit_and_rollback_fail():
    class CommitFails(ClosedConnection):
        def cursor(self):
            return DummyCursor(fetched=(9,))

    conn = CommitFails()
    with pytest.raises(InsertError, match="connection already closed"):
        PostgresUploadGateway(conn).insert(_entity())
    assert conn.rollback_attempts == 1
