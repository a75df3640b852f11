from __future__ import annotations

from dataclasses import dataclass, field

"""RawRow / LogicalRecord models.

RawRow is one parsed CSV line. LogicalRecord is a header row plus the value
rows that followed it before the next header (or end of file).
"""

__all__ = [
    "RawRow",
    "LogicalRecord",
]


@dataclass(frozen=True)
class RawRow:
    line_number: int  # CSV 物理行番号 (1 始まり)
    fields: tuple[str, ...]

    def __len__(self) -> int:
        return len(self.fields)


@dataclass
class LogicalRecord:
    """Header-delimited block of rows within one file."""
    header: tuple[str, ...]
    header_line: int
    values: list[RawRow] = field(default_factory=list)
