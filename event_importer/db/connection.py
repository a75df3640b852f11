from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from psycopg2 import sql
from psycopg2.extensions import make_dsn

from ..config.loader import ImportConfig

"""PostgreSQL connection lifecycle: DSN resolution, create-if-absent, migration.

接続情報の解決優先順位:
    1. DATABASE_URL / PGDSN (DSN 全体)
    2. 個別 PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
    3. config/import.yml の database セクション (不足分のフォールバック)
"""

__all__ = [
    "MIGRATION_PATH",
    "DatabaseSetupError",
    "build_dsn",
    "ensure_database",
    "migrate",
    "open_connection",
]

logger = logging.getLogger(__name__)

MIGRATION_PATH = Path(__file__).parent / "migrations" / "create_uploads_table.up.sql"
MAINTENANCE_DATABASE = "postgres"


class DatabaseSetupError(Exception):
    """Connection, database creation or migration failed (fatal for the run)."""


def _resolved_params(cfg: ImportConfig) -> dict[str, str]:
    db_cfg = cfg.database
    return {
        "host": os.getenv("PGHOST", db_cfg.host or "localhost"),
        "port": os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432"),
        "user": os.getenv("PGUSER", db_cfg.user or "postgres"),
        "password": os.getenv("PGPASSWORD", db_cfg.password or ""),
        "dbname": os.getenv("PGDATABASE", db_cfg.database or "postgres"),
    }


def _format_dsn(params: dict[str, str]) -> str:
    # libpq のクォートは make_dsn に任せる (空パスワードは省略)
    ordered = {k: v for k, v in params.items() if k != "password"}
    ordered["password"] = params.get("password") or None
    return make_dsn(**ordered)


def build_dsn(cfg: ImportConfig, dbname: str | None = None) -> str:
    """Resolve the libpq DSN for the configured database.

    ``dbname`` overrides the target database (used to reach the maintenance
    database); it is ignored when a full DSN comes from the environment.
    """
    dsn_env = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or cfg.database.dsn
    if dsn_env:
        return dsn_env
    params = _resolved_params(cfg)
    if dbname is not None:
        params["dbname"] = dbname
    return _format_dsn(params)


def target_database(cfg: ImportConfig) -> str:
    return _resolved_params(cfg)["dbname"]


def ensure_database(cfg: ImportConfig) -> bool:
    """Create the target database when it does not exist yet.

    Skipped when a full DSN is configured (the DSN names its own database).

    Returns:
        True if the database was created
    """
    if os.getenv("DATABASE_URL") or os.getenv("PGDSN") or cfg.database.dsn:
        return False
    name = target_database(cfg)
    if name == MAINTENANCE_DATABASE:
        return False
    try:
        conn = psycopg2.connect(build_dsn(cfg, dbname=MAINTENANCE_DATABASE))
    except psycopg2.Error as e:
        raise DatabaseSetupError(f"cannot connect to maintenance database: {e}") from e
    try:
        # CREATE DATABASE はトランザクション外で実行する必要がある
        conn.autocommit = True
        with conn.cursor() as cur:
            cur.execute("SELECT 1 FROM pg_database WHERE datname = %s", (name,))
            if cur.fetchone() is not None:
                return False
            cur.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(name)))
            logger.info("created database %s", name)
            return True
    except psycopg2.Error as e:
        raise DatabaseSetupError(f"cannot create database {name}: {e}") from e
    finally:
        conn.close()


@contextmanager
def open_connection(cfg: ImportConfig) -> Iterator[Any]:
    """Yield a psycopg2 connection (autocommit off) and close it on exit."""
    try:
        conn = psycopg2.connect(build_dsn(cfg))
    except psycopg2.Error as e:
        raise DatabaseSetupError(f"cannot connect to database: {e}") from e
    try:
        conn.autocommit = False
        yield conn
    finally:
        conn.close()


def migrate(conn: Any, migration_path: Path = MIGRATION_PATH) -> None:
    """Execute the bundled migration script and commit."""
    try:
        query = migration_path.read_text(encoding="utf-8")
    except OSError as e:
        raise DatabaseSetupError(f"cannot read migration {migration_path.name}: {e}") from e
    try:
        with conn.cursor() as cur:
            cur.execute(query)
        conn.commit()
    except psycopg2.Error as e:
        conn.rollback()
        raise DatabaseSetupError(f"migration {migration_path.name} failed: {e}") from e
