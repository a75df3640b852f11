from __future__ import annotations

import logging
import shutil
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from ..config.loader import ImportConfig
from ..csvio.reader import RowSourceError, read_raw_rows
from ..db.upload_insert import InsertError, UploadGateway
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..models.processing_result import EntityOutcome, FileStat, OutcomeStatus, ProcessingResult
from ..models.raw_row import RawRow
from .coercion import CoercionResult, coerce_record
from .progress import ProgressTracker
from .reconstruct import reconstruct
from .validation import validate

"""Batch orchestration for the CSV upload importer.

process_all() runs one batch, strictly sequentially:

    scan directory -> per file: read rows -> reconstruct records
        -> per value row: coerce -> validate -> insert
    -> relocate every discovered file -> flush error log

Only setup failures (source directory missing/unreadable) raise. Everything
per file, per row and per insert is logged, recorded in the error log and
skipped. There is no rollback across entities: every successful insert is
committed independently.
"""

__all__ = [
    "ProcessingError",
    "process_all",
    "relocate_files",
    "scan_upload_files",
]

_module_logger = logging.getLogger(__name__)


class ProcessingError(Exception):
    """Fatal setup error that prevents the batch from running."""


@dataclass
class _FileOutcome:
    stat: FileStat
    outcomes: list[EntityOutcome] = field(default_factory=list)


def scan_upload_files(directory: Path) -> list[Path]:
    """List regular files in ``directory`` (non-recursive), sorted by name.

    Raises:
        ProcessingError: If directory doesn't exist or can't be read
    """
    if not directory.exists():
        raise ProcessingError(f"Directory not found: {directory}")

    if not directory.is_dir():
        raise ProcessingError(f"Path is not a directory: {directory}")

    try:
        return sorted((p for p in directory.iterdir() if p.is_file()), key=lambda p: p.name)
    except OSError as e:
        raise ProcessingError(f"Error reading directory {directory}: {e}") from e


def process_all(
    config: ImportConfig,
    gateway: UploadGateway | None = None,
    *,
    error_log: ErrorLogBuffer | None = None,
    logger: logging.Logger | None = None,
) -> ProcessingResult:
    """Process every file in the configured source directory.

    Args:
        config: Import configuration (source / processed directories)
        gateway: Persistence gateway (None = mock mode, nothing is written)
        error_log: Error log buffer; a fresh one is created when omitted
        logger: Logger for diagnostics; defaults to this module's logger

    Returns:
        ProcessingResult with per-file stats and per-entity outcomes

    Raises:
        ProcessingError: If the source directory cannot be listed
    """
    log = logger or _module_logger
    errors = error_log if error_log is not None else ErrorLogBuffer()
    start_time = datetime.now(UTC)

    file_paths = scan_upload_files(Path(config.source_directory))
    if gateway is None:
        log.debug("no upload gateway -> mock mode (nothing is written)")

    file_stats: list[FileStat] = []
    outcomes: list[EntityOutcome] = []
    try:
        with ProgressTracker(len(file_paths), description="Processing files") as progress:
            for file_path in file_paths:
                progress.start_file(file_path)
                file_result = _process_single_file(file_path, gateway, errors, log)
                file_stats.append(file_result.stat)
                outcomes.extend(file_result.outcomes)
                progress.set_postfix(
                    rows=sum(s.inserted_rows for s in file_stats),
                    rejected=sum(s.rejected_rows for s in file_stats),
                )
                progress.finish_file()
    finally:
        # 成否に関わらず全ファイルを移動
        relocated = relocate_files(
            file_paths, Path(config.processed_directory), error_log=errors, logger=log
        )
        _flush_error_log(errors, log)

    end_time = datetime.now(UTC)
    elapsed_seconds = (end_time - start_time).total_seconds()
    total_rows = sum(s.inserted_rows for s in file_stats)
    throughput_rps = total_rows / elapsed_seconds if elapsed_seconds > 0 else 0.0

    return ProcessingResult(
        success_files=sum(1 for s in file_stats if s.status == "success"),
        failed_files=sum(1 for s in file_stats if s.status == "failed"),
        total_inserted_rows=total_rows,
        rejected_rows=sum(s.rejected_rows for s in file_stats),
        failed_inserts=sum(s.failed_inserts for s in file_stats),
        dropped_rows=sum(s.dropped_rows for s in file_stats),
        relocated_files=relocated,
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=elapsed_seconds,
        throughput_rows_per_sec=throughput_rps,
        file_stats=file_stats,
        outcomes=outcomes,
    )


def _flush_error_log(errors: ErrorLogBuffer, log: logging.Logger) -> None:
    try:
        log_path = errors.flush()
    except OSError as e:
        log.warning("could not write error log: %s", e)
        return
    if log_path is not None:
        log.info("error log: %s", log_path)


def _process_single_file(
    file_path: Path,
    gateway: UploadGateway | None,
    error_log: ErrorLogBuffer,
    log: logging.Logger,
) -> _FileOutcome:
    """Read, reconstruct, coerce, validate and insert one CSV file."""
    file_start = datetime.now(UTC)
    file_name = file_path.name

    try:
        raw_rows = read_raw_rows(file_path)
    except RowSourceError as e:
        log.error("file=%s could not be read: %s", file_name, e)
        error_log.append(
            ErrorRecord.create(file=file_name, row=-1, error_type="FILE_READ_ERROR", message=str(e))
        )
        return _FileOutcome(
            stat=FileStat(
                file_name=file_name,
                status="failed",
                inserted_rows=0,
                rejected_rows=0,
                failed_inserts=0,
                dropped_rows=0,
                elapsed_seconds=(datetime.now(UTC) - file_start).total_seconds(),
            )
        )

    reconstruction = reconstruct(raw_rows, file_name, error_log=error_log, logger=log)
    log.debug(
        "file=%s rows=%d records=%d value_rows=%d dropped=%d",
        file_name,
        len(raw_rows),
        len(reconstruction.records),
        reconstruction.value_row_count,
        len(reconstruction.dropped_rows),
    )

    outcomes: list[EntityOutcome] = []
    for record in reconstruction.records:
        for row, coerced in coerce_record(record):
            outcomes.append(_handle_entity(file_name, row, coerced, gateway, error_log, log))

    return _FileOutcome(
        stat=FileStat(
            file_name=file_name,
            status="success",
            inserted_rows=_count(outcomes, OutcomeStatus.INSERTED),
            rejected_rows=_count(outcomes, OutcomeStatus.REJECTED),
            failed_inserts=_count(outcomes, OutcomeStatus.INSERT_FAILED),
            dropped_rows=len(reconstruction.dropped_rows),
            elapsed_seconds=(datetime.now(UTC) - file_start).total_seconds(),
        ),
        outcomes=outcomes,
    )


def _handle_entity(
    file_name: str,
    row: RawRow,
    coerced: CoercionResult,
    gateway: UploadGateway | None,
    error_log: ErrorLogBuffer,
    log: logging.Logger,
) -> EntityOutcome:
    # 変換エラーは検証エラーとは別カテゴリで記録 (エンティティは検証へ進める)
    for err in coerced.errors:
        log.error(
            "coercion: file=%s row=%d field=%s value=%r %s",
            file_name,
            row.line_number,
            err.field,
            err.value,
            err.message,
        )
        error_log.append(
            ErrorRecord.create(
                file=file_name,
                row=row.line_number,
                error_type="COERCION_ERROR",
                message=err.message,
                field=err.field,
                value=err.value,
            )
        )

    verdict = validate(coerced.entity)
    if not verdict.accepted:
        reason = "; ".join(verdict.reasons)
        log.error("validation: file=%s row=%d %s", file_name, row.line_number, reason)
        error_log.append(
            ErrorRecord.create(
                file=file_name,
                row=row.line_number,
                error_type="VALIDATION_ERROR",
                message=reason,
            )
        )
        return EntityOutcome(
            file_name=file_name,
            row_number=row.line_number,
            status=OutcomeStatus.REJECTED,
            reason=reason,
        )

    if gateway is None:
        return EntityOutcome(file_name=file_name, row_number=row.line_number, status=OutcomeStatus.INSERTED)

    try:
        upload_id = gateway.insert(coerced.entity)
    except InsertError as e:
        log.error("insert: file=%s row=%d %s", file_name, row.line_number, e)
        error_log.append(
            ErrorRecord.create(
                file=file_name,
                row=row.line_number,
                error_type="DATABASE_INSERT_ERROR",
                message=str(e),
            )
        )
        return EntityOutcome(
            file_name=file_name,
            row_number=row.line_number,
            status=OutcomeStatus.INSERT_FAILED,
            reason=str(e),
        )

    log.debug("file=%s row=%d inserted id=%s", file_name, row.line_number, upload_id)
    return EntityOutcome(
        file_name=file_name,
        row_number=row.line_number,
        status=OutcomeStatus.INSERTED,
        upload_id=upload_id,
    )


def _count(outcomes: Sequence[EntityOutcome], status: OutcomeStatus) -> int:
    return sum(1 for o in outcomes if o.status is status)


def relocate_files(
    file_paths: Sequence[Path],
    destination: Path,
    error_log: ErrorLogBuffer | None = None,
    logger: logging.Logger | None = None,
) -> int:
    """Move files into ``destination``; a failed move does not stop the rest.

    Returns:
        Number of files moved
    """
    log = logger or _module_logger
    try:
        destination.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        log.error("cannot create processed directory %s: %s", destination, e)

    moved = 0
    for path in file_paths:
        try:
            shutil.move(str(path), str(destination / path.name))
        except OSError as e:
            log.error("file=%s could not be moved to %s: %s", path.name, destination, e)
            if error_log is not None:
                error_log.append(
                    ErrorRecord.create(
                        file=path.name, row=-1, error_type="RELOCATE_ERROR", message=str(e)
                    )
                )
            continue
        moved += 1
    return moved
