"""Domain models for the CSV -> PostgreSQL upload importer."""

from .error_record import ErrorRecord
from .processing_result import EntityOutcome, FileStat, OutcomeStatus, ProcessingResult
from .raw_row import LogicalRecord, RawRow
from .upload import ZERO_DATETIME, UploadEntity

__all__ = [
    # Input models
    "RawRow",
    "LogicalRecord",
    # Domain model
    "UploadEntity",
    "ZERO_DATETIME",
    # Result models
    "EntityOutcome",
    "ErrorRecord",
    "FileStat",
    "OutcomeStatus",
    "ProcessingResult",
]
