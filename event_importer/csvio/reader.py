from __future__ import annotations

import csv
from pathlib import Path

from event_importer.models.raw_row import RawRow

"""CSV raw row source.

Rows are returned exactly as the csv module splits them: no header detection,
no column-count enforcement, no type conversion. Grouping into records is the
job of services.reconstruct.
"""

__all__ = [
    "RowSourceError",
    "read_raw_rows",
]


class RowSourceError(Exception):
    """Raised when a single CSV file cannot be read."""


def read_raw_rows(path: Path) -> list[RawRow]:
    """Read every non-blank line of a CSV file.

    utf-8-sig で BOM 付きファイルも受け付ける。空行はスキップ。
    """
    rows: list[RawRow] = []
    try:
        with path.open("r", encoding="utf-8-sig", newline="") as f:
            reader = csv.reader(f)
            for fields in reader:
                if not fields:
                    continue
                rows.append(RawRow(line_number=reader.line_num, fields=tuple(fields)))
    except (OSError, csv.Error, UnicodeDecodeError) as e:
        raise RowSourceError(f"cannot read {path.name}: {e}") from e
    return rows
