from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

"""Processing result models for the CSV upload importer.

EntityOutcome is recorded for every value row that reaches the validator, so
partial failure can be inspected from the returned ProcessingResult rather
than only from log output.
"""


class OutcomeStatus(Enum):
    """Final state of a single coerced entity.

    - INSERTED: passed validation and was stored (or counted, in mock mode)
    - REJECTED: failed validation, never sent to the database
    - INSERT_FAILED: passed validation but the database refused the insert
    """
    INSERTED = "inserted"
    REJECTED = "rejected"
    INSERT_FAILED = "insert_failed"


@dataclass(frozen=True)
class EntityOutcome:
    file_name: str
    row_number: int  # CSV 行番号
    status: OutcomeStatus
    upload_id: int | None = None  # INSERTED 時の採番 ID (mock mode では None)
    reason: str | None = None  # REJECTED / INSERT_FAILED の理由


@dataclass(frozen=True)
class FileStat:
    """Per-file processing statistics."""
    file_name: str
    status: str  # success/failed (failed = ファイル読込不可)
    inserted_rows: int
    rejected_rows: int
    failed_inserts: int
    dropped_rows: int  # 列数不一致 / ヘッダ前の孤立行
    elapsed_seconds: float


@dataclass(frozen=True)
class ProcessingResult:
    """Aggregated results for one importer run."""
    success_files: int
    failed_files: int
    total_inserted_rows: int
    rejected_rows: int
    failed_inserts: int
    dropped_rows: int
    relocated_files: int
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    throughput_rows_per_sec: float
    file_stats: list[FileStat] = field(default_factory=list)
    outcomes: list[EntityOutcome] = field(default_factory=list)

    def outcomes_for(self, file_name: str) -> list[EntityOutcome]:
        return [o for o in self.outcomes if o.file_name == file_name]
