"""CSV export of deactivation candidates for test-run review."""

from __future__ import annotations

import csv
import io
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from userlifecycle.services.candidates import DeactivationCandidate

logger = logging.getLogger(__name__)

REPORT_HEADER = ("UserID", "FirstName", "LastName", "Reason")
REPORT_ENCODING = "utf-8"


class ReportError(Exception):
    """Raised when the report cannot be built."""


def build_deactivation_report(candidates: Iterable[DeactivationCandidate]) -> bytes:
    """Render candidates as CSV, one row per candidate in the given order.

    Args:
        candidates: Candidates to list; duplicates are kept as given.

    Returns:
        UTF-8 encoded CSV with a header row and `\\n` line endings.

    Raises:
        ReportError: If a row cannot be written.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(REPORT_HEADER)

    rows = 0
    try:
        for candidate in candidates:
            writer.writerow(
                (
                    candidate.user_id,
                    candidate.first_name,
                    candidate.last_name,
                    candidate.reason.value,
                )
            )
            rows += 1
    except csv.Error as e:
        msg = f"Failed to write deactivation report: {e}"
        raise ReportError(msg) from e

    logger.debug("Deactivation report built: rows=%d", rows)
    return buffer.getvalue().encode(REPORT_ENCODING)
