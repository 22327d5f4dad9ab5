from __future__ import annotations

from ..models.upload_result import UploadResult

"""SUMMARY line rendering for upload runs."""


def render_summary_line(result: UploadResult) -> str:
    """Render the one-line upload summary.

    Examples:
        >>> r = UploadResult(success=True, batch_id="batch_1_abc", total_rows=3, valid_rows=2,
        ...                  invalid_rows=1, success_count=2, failed_count=1, errors=[])
        >>> render_summary_line(r)
        'SUMMARY batch=batch_1_abc rows=3 valid=2 invalid=1 success=2 failed=1'
    """
    return (
        f"SUMMARY batch={result.batch_id} "
        f"rows={result.total_rows} "
        f"valid={result.valid_rows} "
        f"invalid={result.invalid_rows} "
        f"success={result.success_count} "
        f"failed={result.failed_count}"
    )
