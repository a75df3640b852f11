from __future__ import annotations

import json
from pathlib import Path

import jsonschema
import pytest

from event_importer.config.loader import load_config
from event_importer.services.orchestrator import process_all

"""Error log JSON Lines contract: fixed keys, one object per line."""

ERROR_LOG_SCHEMA = {
    "type": "object",
    "additionalProperties": False,
    "required": ["timestamp", "file", "row", "field", "value", "error_type", "message"],
    "properties": {
        "timestamp": {"type": "string", "pattern": "Z$"},
        "file": {"type": "string"},
        "row": {"type": "integer", "minimum": -1},
        "field": {"type": ["string", "null"]},
        "value": {"type": ["string", "null"]},
        "error_type": {"type": "string", "pattern": "^[A-Z_]+$"},
        "message": {"type": "string"},
    },
}

HEADER = "eventDatetime,eventAction,callRef,eventValue,eventCurrencyCode"


def test_every_error_line_matches_contract(write_config, write_upload, temp_workdir: Path):
    write_upload(
        "bad.csv",
        "2023-05-01 10:00:00,ORPHAN,1,0,",
        HEADER,
        "a,b,c",
        "2023-05-01 10:00:00,A,x,1,XYZ",
    )
    process_all(load_config(write_config), gateway=None)

    lines = next((temp_workdir / "logs").glob("errors-*.log")).read_text(encoding="utf-8").splitlines()
    assert len(lines) == 4
    types = []
    for line in lines:
        obj = json.loads(line)
        jsonschema.validate(obj, ERROR_LOG_SCHEMA)
        types.append(obj["error_type"])
    assert types == ["COLUMN_COUNT_MISMATCH", "ORPHAN_VALUE_ROW", "COERCION_ERROR", "VALIDATION_ERROR"]


def test_contract_rejects_extra_key():
    record = {
        "timestamp": "2025-09-26T10:12:33Z",
        "file": "a.csv",
        "row": 2,
        "field": None,
        "value": None,
        "error_type": "VALIDATION_ERROR",
        "message": "callRef field is required, 0 given",
        "extra": "not allowed",
    }
    with pytest.raises(jsonschema.exceptions.ValidationError):
        jsonschema.validate(record, ERROR_LOG_SCHEMA)
