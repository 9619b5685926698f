"""Flat record export.

One row per booking with human-readable dates, for spreadsheets and
downstream tools.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

import pandas as pd

from booking_core.classification.attendance import classify_cancel_timing
from booking_core.types import HistoryRecord
from booking_core.utils import format_date, format_datetime, neutralize

logger = logging.getLogger(__name__)

# Shown instead of a visit label for records that are not attended visits
NO_VISIT_LABEL = "-"

FLAT_COLUMNS = [
    "key",
    "booking_id",
    "customer_id",
    "display_name",
    "service_date",
    "submitted_at",
    "booking_status",
    "attendance_status",
    "detail_status",
    "cancel_timing",
    "is_attended",
    "visit_sequence",
    "visit_label",
    "staff",
    "raw_staff_text",
    "was_unassigned_pool",
    "course",
    "is_excluded",
    "manual_attendance",
    "merge_group_id",
]

_TEXT_COLUMNS = ["display_name", "detail_status", "staff", "raw_staff_text", "course"]


def to_flat_frame(records: Iterable[HistoryRecord]) -> pd.DataFrame:
    """Flatten records into a DataFrame, newest service date first.

    Dates are ``YYYY-MM-DD`` strings, submission timestamps
    ``YYYY-MM-DD HH:MM``. ``visit_label`` is ``"-"`` for records without a
    visit sequence.
    """
    ordered = sorted(records, key=lambda r: (r.service_date, r.key), reverse=True)
    rows = []
    for r in ordered:
        rows.append(
            {
                "key": r.key,
                "booking_id": r.booking_id or "",
                "customer_id": r.customer_id,
                "display_name": r.display_name,
                "service_date": format_date(r.service_date),
                "submitted_at": format_datetime(r.submitted_at),
                "booking_status": r.booking_status.value,
                "attendance_status": r.attendance_status.value,
                "detail_status": r.detail_status or "",
                "cancel_timing": classify_cancel_timing(r.service_date, r.submitted_at, r.booking_status).value,
                "is_attended": r.is_attended,
                "visit_sequence": r.visit_sequence,
                "visit_label": r.visit_label.value if r.visit_label is not None else NO_VISIT_LABEL,
                "staff": r.resolved_staff or "",
                "raw_staff_text": r.raw_staff_text or "",
                "was_unassigned_pool": r.was_unassigned_pool,
                "course": r.course or "",
                "is_excluded": r.is_excluded,
                "manual_attendance": r.manual_attendance,
                "merge_group_id": r.merge_group_id or "",
            }
        )
    df = pd.DataFrame(rows, columns=FLAT_COLUMNS)
    df["visit_sequence"] = df["visit_sequence"].astype("Int64")
    return df


def write_flat_csv(df: pd.DataFrame, out_path: str | Path) -> Path:
    """Write a flat frame as UTF-8 CSV with BOM, neutralizing formula-like text.

    Args:
        df: Output of ``to_flat_frame``.
        out_path: Destination CSV path. Parent directories are created.

    Returns:
        The written path.
    """
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    safe = df.copy()
    for col in _TEXT_COLUMNS:
        if col in safe.columns:
            safe[col] = safe[col].map(neutralize)

    safe.to_csv(out_path, index=False, encoding="utf-8-sig")
    logger.info("Wrote %s (%d rows, %d cols)", out_path, len(safe), len(safe.columns))
    return out_path
