from __future__ import annotations

import logging
from typing import Any, Protocol

import psycopg2

from ..models.upload import UploadEntity

"""Single-row INSERT into ``uploads``.

Each accepted entity is inserted and committed on its own: a failed insert
is rolled back and reported without affecting entities already stored.
"""

__all__ = [
    "INSERT_UPLOAD_SQL",
    "InsertError",
    "PostgresUploadGateway",
    "UploadGateway",
    "insert_upload",
]

logger = logging.getLogger(__name__)

INSERT_UPLOAD_SQL = (
    'INSERT INTO uploads ("eventDatetime", "eventAction", "callRef", "eventValue", "eventCurrencyCode") '
    "VALUES (%s, %s, %s, %s, %s) RETURNING id"
)


class InsertError(Exception):
    pass


class UploadGateway(Protocol):
    def insert(self, entity: UploadEntity) -> int: ...


def insert_upload(cursor: Any, entity: UploadEntity) -> int:
    """Execute the INSERT and return the generated id."""
    try:
        cursor.execute(INSERT_UPLOAD_SQL, entity.as_db_params())
        row = cursor.fetchone()
    except psycopg2.Error as e:
        raise InsertError(str(e).strip()) from e
    if not row:
        raise InsertError("INSERT returned no id")
    return int(row[0])


class PostgresUploadGateway:
    """UploadGateway backed by a psycopg2 connection (commit per entity)."""

    def __init__(self, conn: Any) -> None:
        self._conn = conn

    def insert(self, entity: UploadEntity) -> int:
        try:
            with self._conn.cursor() as cur:
                new_id = insert_upload(cur, entity)
            self._conn.commit()
        except InsertError:
            self._rollback()
            raise
        except psycopg2.Error as e:
            # commit 失敗 / 接続断
            self._rollback()
            raise InsertError(str(e).strip()) from e
        entity.id = new_id
        return new_id

    def _rollback(self) -> None:
        # 接続が切れていると rollback 自体も失敗する
        try:
            self._conn.rollback()
        except psycopg2.Error as e:
            logger.warning("rollback failed: %s", str(e).strip())
