from __future__ import annotations

import re

from payroll_ingest.models.upload_result import UploadResult
from payroll_ingest.services.summary import render_summary_line

SUMMARY_PATTERN = re.compile(
    r"^SUMMARY\s+batch=(\S+)\s+rows=([0-9]+)\s+valid=([0-9]+)\s+invalid=([0-9]+)\s+"
    r"success=([0-9]+)\s+failed=([0-9]+)$"
)


def test_render_summary_line():
    result = UploadResult(
        success=True, batch_id="batch_1700000000000_abc123xyz", total_rows=10, valid_rows=8,
        invalid_rows=2, success_count=7, failed_count=3, errors=[],
    )
    line = render_summary_line(result)
    m = SUMMARY_PATTERN.match(line)
    assert m
    assert m.groups() == ("batch_1700000000000_abc123xyz", "10", "8", "2", "7", "3")
