from __future__ import annotations

from dataclasses import dataclass

from ..models.upload import ZERO_DATETIME, UploadEntity
from .currency import is_valid_currency

"""Business rule validation for UploadEntity.

Pure functions, no I/O. All rules are evaluated and every failure is
reported in rule order; ``ValidationResult.reason`` is the first one.

Currency rules: a non-zero eventValue needs a 3 character ISO 4217 code.
When eventValue is zero the code may be empty, but a non-empty code must
still be a valid ISO 4217 code.
"""

__all__ = [
    "EVENT_ACTION_MAX_LENGTH",
    "EVENT_ACTION_MIN_LENGTH",
    "ValidationResult",
    "validate",
]

EVENT_ACTION_MIN_LENGTH = 1
EVENT_ACTION_MAX_LENGTH = 20
CURRENCY_CODE_LENGTH = 3


@dataclass(frozen=True)
class ValidationResult:
    accepted: bool
    reasons: tuple[str, ...] = ()

    @property
    def reason(self) -> str | None:
        return self.reasons[0] if self.reasons else None

    def __bool__(self) -> bool:
        return self.accepted


def validate(entity: UploadEntity) -> ValidationResult:
    reasons: list[str] = []

    if entity.event_datetime == ZERO_DATETIME:
        reasons.append("eventDateTime field is required")

    # len(str) は code point 数
    action_length = len(entity.event_action)
    if not EVENT_ACTION_MIN_LENGTH <= action_length <= EVENT_ACTION_MAX_LENGTH:
        reasons.append(
            f"eventAction field must have between {EVENT_ACTION_MIN_LENGTH}-"
            f"{EVENT_ACTION_MAX_LENGTH} characters, {action_length} given"
        )

    if entity.call_ref == 0:
        reasons.append("callRef field is required, 0 given")

    code = entity.event_currency_code
    if entity.event_value != 0 and len(code) != CURRENCY_CODE_LENGTH:
        reasons.append(
            f"eventValue {entity.event_value} requires a {CURRENCY_CODE_LENGTH} character "
            f"eventCurrencyCode, {code!r} given"
        )
    elif code and not is_valid_currency(code):
        reasons.append(f"eventCurrencyCode {code!r} is not a valid ISO 4217 code")

    return ValidationResult(accepted=not reasons, reasons=tuple(reasons))
