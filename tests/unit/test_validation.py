from __future__ import annotations

from datetime import datetime

import pytest

from event_importer.models.upload import ZERO_DATETIME, UploadEntity
from event_importer.services.coercion import coerce_row
from event_importer.services.reconstruct import KNOWN_COLUMNS
from event_importer.services.validation import validate

"""Unit tests for business rule validation."""


def _entity(**overrides) -> UploadEntity:
    base = dict(
        event_datetime=datetime(2023, 5, 1, 10, 0, 0),
        event_action="PURCHASE",
        call_ref=123,
        event_value=9.99,
        event_currency_code="USD",
    )
    base.update(overrides)
    return UploadEntity(**base)


def test_valid_entity_is_accepted():
    result = validate(_entity())
    assert result.accepted
    assert result.reason is None
    assert bool(result) is True


def test_coerced_purchase_row_is_accepted():
    coerced = coerce_row(KNOWN_COLUMNS, ("2023-05-01 10:00:00", "PURCHASE", "123", "9.99", "USD"))
    assert coerced.ok
    assert validate(coerced.entity).accepted


def test_zero_datetime_rejected():
    result = validate(_entity(event_datetime=ZERO_DATETIME))
    assert not result.accepted
    assert "eventDateTime" in result.reason


def test_event_action_boundaries_in_code_points():
    assert validate(_entity(event_action="x" * 20)).accepted
    assert not validate(_entity(event_action="x" * 21)).accepted
    assert not validate(_entity(event_action="")).accepted
    # マルチバイト文字もコードポイント単位で数える
    assert validate(_entity(event_action="é" * 20)).accepted
    assert validate(_entity(event_action="日本語")).accepted


@pytest.mark.parametrize("value, code", [(0.0, ""), (9.99, "USD"), (0.0, "EUR")])
def test_call_ref_zero_always_rejected(value, code):
    result = validate(_entity(call_ref=0, event_value=value, event_currency_code=code))
    assert not result.accepted
    assert any("callRef" in r for r in result.reasons)


def test_value_with_empty_currency_rejected():
    result = validate(_entity(event_value=5.0, event_currency_code=""))
    assert not result.accepted
    assert "eventCurrencyCode" in result.reason


def test_zero_value_with_empty_currency_accepted():
    assert validate(_entity(event_value=0.0, event_currency_code="")).accepted


def test_value_with_wrong_length_currency_rejected():
    assert not validate(_entity(event_value=1.0, event_currency_code="US")).accepted
    assert not validate(_entity(event_value=1.0, event_currency_code="USDX")).accepted


def test_unknown_currency_rejected_even_without_value():
    assert not validate(_entity(event_value=1.0, event_currency_code="ABC")).accepted
    assert not validate(_entity(event_value=0.0, event_currency_code="ZZZ")).accepted
    assert not validate(_entity(event_value=0.0, event_currency_code="US")).accepted


def test_lowercase_currency_accepted():
    assert validate(_entity(event_currency_code="usd")).accepted


def test_all_failing_rules_reported_in_order():
    result = validate(
        UploadEntity(event_action="", call_ref=0, event_value=2.0, event_currency_code="")
    )
    assert not result.accepted
    assert len(result.reasons) == 4
    assert "eventDateTime" in result.reasons[0]
    assert "eventAction" in result.reasons[1]
    assert "callRef" in result.reasons[2]
    assert "eventCurrencyCode" in result.reasons[3]
