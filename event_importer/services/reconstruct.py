from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..models.raw_row import LogicalRecord, RawRow

"""Record reconstruction: raw CSV rows -> header-delimited logical records.

A file may contain several header + rows blocks. Header lines are treated as
repeatable delimiters: every header starts a new LogicalRecord and each
following value row belongs to the nearest preceding header.

Value rows that appear before the first header of a file have no record to
attach to. They are dropped one by one (WARN + ORPHAN_VALUE_ROW error record)
and the rest of the file is processed normally.
"""

__all__ = [
    "EXPECTED_COLUMN_COUNT",
    "KNOWN_COLUMNS",
    "ReconstructionResult",
    "filter_column_count",
    "group_records",
    "is_header",
    "reconstruct",
]

KNOWN_COLUMNS: tuple[str, ...] = (
    "eventDatetime",
    "eventAction",
    "callRef",
    "eventValue",
    "eventCurrencyCode",
)
_KNOWN_COLUMN_SET = frozenset(KNOWN_COLUMNS)

EXPECTED_COLUMN_COUNT = len(KNOWN_COLUMNS)

_module_logger = logging.getLogger(__name__)


@dataclass
class ReconstructionResult:
    records: list[LogicalRecord] = field(default_factory=list)
    dropped_rows: list[RawRow] = field(default_factory=list)  # 列数不一致 + 孤立行

    @property
    def value_row_count(self) -> int:
        return sum(len(r.values) for r in self.records)


def is_header(fields: Sequence[str]) -> bool:
    """True when every field is one of the known column names."""
    return all(f in _KNOWN_COLUMN_SET for f in fields)


def filter_column_count(
    rows: Iterable[RawRow],
    file_name: str,
    error_log: ErrorLogBuffer | None = None,
    logger: logging.Logger | None = None,
) -> tuple[list[RawRow], list[RawRow]]:
    """Split rows into (kept, dropped) by the expected column count."""
    log = logger or _module_logger
    kept: list[RawRow] = []
    dropped: list[RawRow] = []
    for row in rows:
        if len(row) == EXPECTED_COLUMN_COUNT:
            kept.append(row)
            continue
        dropped.append(row)
        message = f"expected {EXPECTED_COLUMN_COUNT} columns, got {len(row)}"
        log.warning("file=%s row=%d %s - row skipped", file_name, row.line_number, message)
        if error_log is not None:
            error_log.append(
                ErrorRecord.create(
                    file=file_name,
                    row=row.line_number,
                    error_type="COLUMN_COUNT_MISMATCH",
                    message=message,
                    value=",".join(row.fields),
                )
            )
    return kept, dropped


def group_records(
    rows: Iterable[RawRow],
    file_name: str,
    error_log: ErrorLogBuffer | None = None,
    logger: logging.Logger | None = None,
) -> ReconstructionResult:
    """Fold rows into LogicalRecords, tracking the current header."""
    log = logger or _module_logger
    result = ReconstructionResult()
    current: LogicalRecord | None = None
    for row in rows:
        if is_header(row.fields):
            current = LogicalRecord(header=row.fields, header_line=row.line_number)
            result.records.append(current)
            continue
        if current is None:
            # ヘッダ前の値行: 紐付け先なし -> 行単位で破棄
            result.dropped_rows.append(row)
            log.warning(
                "file=%s row=%d value row before any header - row skipped",
                file_name,
                row.line_number,
            )
            if error_log is not None:
                error_log.append(
                    ErrorRecord.create(
                        file=file_name,
                        row=row.line_number,
                        error_type="ORPHAN_VALUE_ROW",
                        message="value row appears before any header row",
                        value=",".join(row.fields),
                    )
                )
            continue
        current.values.append(row)
    return result


def reconstruct(
    rows: Iterable[RawRow],
    file_name: str,
    error_log: ErrorLogBuffer | None = None,
    logger: logging.Logger | None = None,
) -> ReconstructionResult:
    """Column-count filter followed by header grouping for one file."""
    kept, dropped = filter_column_count(rows, file_name, error_log=error_log, logger=logger)
    result = group_records(kept, file_name, error_log=error_log, logger=logger)
    result.dropped_rows = dropped + result.dropped_rows
    return result
