from __future__ import annotations

import re
from datetime import datetime, timezone

from event_importer.models.processing_result import ProcessingResult
from event_importer.services.summary import render_summary_line

SUMMARY_PATTERN = re.compile(
    r"^SUMMARY\s+files=([0-9]+)/(\1)\s+success=([0-9]+)\s+failed=([0-9]+)\s+"
    r"rows=([0-9]+)\s+rejected=([0-9]+)\s+insert_failed=([0-9]+)\s+dropped=([0-9]+)\s+"
    r"elapsed_sec=([0-9]+\.?[0-9]*)\s+throughput_rps=([0-9]+\.?[0-9]*)$"
)


def _result(elapsed: float, throughput: float) -> ProcessingResult:
    start = datetime(2023, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
    return ProcessingResult(
        success_files=2,
        failed_files=1,
        total_inserted_rows=1000,
        rejected_rows=3,
        failed_inserts=1,
        dropped_rows=4,
        relocated_files=3,
        start_time=start,
        end_time=start,
        elapsed_seconds=elapsed,
        throughput_rows_per_sec=throughput,
    )


def test_render_summary_line_counts():
    line = render_summary_line(3, _result(2.0, 500.0))
    assert line == (
        "SUMMARY files=3/3 success=2 failed=1 rows=1000 rejected=3 "
        "insert_failed=1 dropped=4 elapsed_sec=2 throughput_rps=500"
    )
    assert SUMMARY_PATTERN.match(line)


def test_render_summary_line_small_elapsed_without_exponent():
    line = render_summary_line(3, _result(0.000123, 0.0))
    assert "elapsed_sec=0.000123" in line
    assert "throughput_rps=0" in line
    assert SUMMARY_PATTERN.match(line)


def test_render_summary_line_fractional_values():
    line = render_summary_line(3, _result(1.25, 800.5))
    assert "elapsed_sec=1.25" in line
    assert "throughput_rps=800.5" in line
