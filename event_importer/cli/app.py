from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from event_importer.config.loader import DEFAULT_CONFIG_PATH, ConfigError, ImportConfig, load_config
from event_importer.csvio.reader import RowSourceError, read_raw_rows
from event_importer.db.connection import DatabaseSetupError, ensure_database, migrate, open_connection
from event_importer.db.upload_insert import PostgresUploadGateway
from event_importer.logging.init import log_summary, set_debug, setup_logging
from event_importer.models.processing_result import ProcessingResult
from event_importer.services.file_lock import LockError, single_instance_lock
from event_importer.services.orchestrator import ProcessingError, process_all, scan_upload_files
from event_importer.services.reconstruct import reconstruct
from event_importer.services.summary import render_summary_line

"""CLI entrypoint.

Flow:
- Load .env (overrides existing environment) and config/import.yml
- Acquire the single-instance lock
- Create the database if absent, connect, run the uploads migration
- Process every file in source_directory, move them to processed_directory
- Print the SUMMARY line

Exit code is 0 whenever the batch ran to completion, whatever the number of
rejected rows; 1 on any setup failure.
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="CSV -> PostgreSQL event upload importer")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Path to import.yml")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument(
        "--inspect-data",
        action="store_true",
        help="Print reconstructed records per file then exit (no DB, files not moved)",
    )
    return p.parse_args(argv)


def _inspect_data(cfg: ImportConfig) -> int:
    try:
        files = scan_upload_files(Path(cfg.source_directory))
    except ProcessingError as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    if not files:
        print("inspect: no files")
        return EXIT_SUCCESS
    for f in files:
        print(f"FILE: {f.name}")
        try:
            rows = read_raw_rows(f)
        except RowSourceError as e:
            print(f"  read_error: {e}")
            continue
        result = reconstruct(rows, f.name)
        print(f"  records={len(result.records)} dropped_rows={len(result.dropped_rows)}")
        for record in result.records:
            print(f"  HEADER line={record.header_line} cols={list(record.header)}")
            for row in record.values[:3]:
                print(f"    line={row.line_number} values={list(row.fields)}")
    return EXIT_SUCCESS


def _run(cfg: ImportConfig, logger: logging.Logger) -> ProcessingResult:
    # DB 接続を完全に無効化したい場合 DISABLE_DB_CONNECT=1 (mock mode)
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> mock mode")
        return process_all(cfg, gateway=None, logger=logger)

    ensure_database(cfg)
    with open_connection(cfg) as conn:
        migrate(conn)
        return process_all(cfg, gateway=PostgresUploadGateway(conn), logger=logger)


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None のときのみシステム引数を読む (テストで main([]) を呼ぶため)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)

    if args.debug:
        set_debug(logger)
        logger.debug("debug mode enabled")

    load_dotenv(dotenv_path=Path(".env"), override=True)

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.inspect_data:
        return _inspect_data(cfg)

    logger.info(f"Processing files from: {cfg.source_directory}")

    try:
        with single_instance_lock(Path(cfg.lock_file)):
            result = _run(cfg, logger)
    except LockError as e:
        logger.error(f"lock: {e}")
        return EXIT_FATAL
    except DatabaseSetupError as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL
    except ProcessingError as e:
        logger.error(f"processing: {e}")
        return EXIT_FATAL

    total_files = result.success_files + result.failed_files
    summary_line = render_summary_line(total_files, result)
    # log_summary が "SUMMARY " を付与する
    log_summary(summary_line.removeprefix("SUMMARY "))
    return EXIT_SUCCESS

