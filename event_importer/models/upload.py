from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

"""UploadEntity domain model.

One UploadEntity is built per CSV value row by the coercion service, checked by
the validator and, when accepted, written to the ``uploads`` table.
Fields that failed coercion keep their zero value so validation rejects them.
"""

__all__ = [
    "UploadEntity",
    "ZERO_DATETIME",
]

# 変換失敗時の日時ゼロ値
ZERO_DATETIME = datetime.min


@dataclass
class UploadEntity:
    """Typed record destined for the ``uploads`` table."""
    event_datetime: datetime = ZERO_DATETIME
    event_action: str = ""
    call_ref: int = 0  # 64-bit
    event_value: float = 0.0  # binary32 precision
    event_currency_code: str = ""
    id: int | None = None  # DB 採番 (insert 前は None)

    def as_db_params(self) -> tuple[Any, ...]:
        """Insert parameters in ``uploads`` column order."""
        return (
            self.event_datetime,
            self.event_action,
            self.call_ref,
            self.event_value,
            self.event_currency_code,
        )
