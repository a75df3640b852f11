from __future__ import annotations

import math
import re
import struct
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from ..models.raw_row import LogicalRecord, RawRow
from ..models.upload import UploadEntity

"""Field coercion: header-mapped text values -> typed UploadEntity.

The header of a LogicalRecord fixes which entity field each positional value
is written to. A failed conversion leaves the field at its zero value and is
reported as a CoercionError; the entity still goes on to validation, which
rejects the zero value.

| column            | type          | on failure          |
|-------------------|---------------|---------------------|
| eventDatetime     | datetime      | ZERO_DATETIME       |
| eventAction       | str           | (passthrough)       |
| callRef           | int (64-bit)  | 0                   |
| eventValue        | float (32bit) | 0.0 (empty = 0.0)   |
| eventCurrencyCode | str           | (passthrough)       |
"""

__all__ = [
    "DATETIME_FORMAT",
    "CoercionError",
    "CoercionResult",
    "UnknownColumnError",
    "coerce_record",
    "coerce_row",
]

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

# strptime は1桁の月日や余分な空白も受け付けるため、先に固定書式を確認する
_DATETIME_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2} [0-9]{2}:[0-9]{2}:[0-9]{2}")
_INT_RE = re.compile(r"[+-]?[0-9]+")
_DECIMAL_RE = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")


class UnknownColumnError(Exception):
    """A header column outside the known set reached the coercer.

    Header classification guarantees this cannot happen, so it is not
    recovered anywhere.
    """


class _FieldParseError(ValueError):
    pass


@dataclass(frozen=True)
class CoercionError:
    field: str  # 列名 (ヘッダ表記)
    value: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}={self.value!r}: {self.message}"


@dataclass
class CoercionResult:
    entity: UploadEntity
    errors: list[CoercionError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _parse_datetime(value: str) -> datetime:
    if not _DATETIME_RE.fullmatch(value):
        raise _FieldParseError("expected format YYYY-MM-DD HH:MM:SS")
    try:
        return datetime.strptime(value, DATETIME_FORMAT)
    except ValueError as e:
        raise _FieldParseError(f"expected format YYYY-MM-DD HH:MM:SS ({e})") from e


def _parse_int64(value: str) -> int:
    if not _INT_RE.fullmatch(value):
        raise _FieldParseError("not a base-10 integer")
    parsed = int(value, 10)
    if not _INT64_MIN <= parsed <= _INT64_MAX:
        raise _FieldParseError("value out of 64-bit integer range")
    return parsed


def _parse_float32(value: str) -> float:
    if value == "":
        return 0.0
    if not _DECIMAL_RE.fullmatch(value):
        raise _FieldParseError("not a decimal number")
    parsed = float(value)
    if math.isinf(parsed):
        raise _FieldParseError("value out of 32-bit float range")
    try:
        # binary32 へ丸める
        rounded = struct.unpack("f", struct.pack("f", parsed))[0]
    except OverflowError as e:
        raise _FieldParseError("value out of 32-bit float range") from e
    # 版によっては pack が例外を出さず inf になる
    if math.isinf(rounded):
        raise _FieldParseError("value out of 32-bit float range")
    return rounded


def _set_event_datetime(entity: UploadEntity, value: str) -> None:
    entity.event_datetime = _parse_datetime(value)


def _set_event_action(entity: UploadEntity, value: str) -> None:
    entity.event_action = value


def _set_call_ref(entity: UploadEntity, value: str) -> None:
    entity.call_ref = _parse_int64(value)


def _set_event_value(entity: UploadEntity, value: str) -> None:
    entity.event_value = _parse_float32(value)


def _set_event_currency_code(entity: UploadEntity, value: str) -> None:
    entity.event_currency_code = value


_SETTERS: dict[str, Callable[[UploadEntity, str], None]] = {
    "eventDatetime": _set_event_datetime,
    "eventAction": _set_event_action,
    "callRef": _set_call_ref,
    "eventValue": _set_event_value,
    "eventCurrencyCode": _set_event_currency_code,
}


def coerce_row(header: Sequence[str], row: RawRow | Sequence[str]) -> CoercionResult:
    """Build one UploadEntity from a value row using ``header`` as the mapping.

    Raises:
        UnknownColumnError: if a header column is not a known column name
    """
    values = row.fields if isinstance(row, RawRow) else tuple(row)
    entity = UploadEntity()
    result = CoercionResult(entity=entity)
    for column, value in zip(header, values, strict=True):
        setter = _SETTERS.get(column)
        if setter is None:
            raise UnknownColumnError(f"unknown column in header: {column!r}")
        try:
            setter(entity, value)
        except _FieldParseError as e:
            result.errors.append(CoercionError(field=column, value=value, message=str(e)))
    return result


def coerce_record(record: LogicalRecord) -> list[tuple[RawRow, CoercionResult]]:
    """Coerce every value row of a record (one entity per row)."""
    return [(row, coerce_row(record.header, row)) for row in record.values]
