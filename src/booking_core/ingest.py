"""Import layer: map reservation exports to input records.

Exports come with Japanese or English headers and localized status
labels. This module renames the columns to internal names, validates the
required ones, and turns every usable row into an ``InputRecord``. Rows
with blank required fields are skipped with a warning so they never reach
the merge engine.

Examples:
    >>> df = read_export_csv("data/imports/reservations_2024-12.csv")
    >>> result = records_from_frame(df)
    >>> len(result.records), len(result.warnings)
    (118, 2)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import pandas as pd

from booking_core.exceptions import DataQualityError
from booking_core.types import (
    PREVIOUS_DAY_CANCEL,
    SAME_DAY_CANCEL,
    AttendanceStatus,
    BookingStatus,
    InputRecord,
)
from booking_core.utils import strip_invisibles, to_datetime

logger = logging.getLogger(__name__)

# Export header variants -> internal column name
COLUMN_ALIASES: dict[str, str] = {
    # identity
    "予約ID": "booking_id",
    "booking_id": "booking_id",
    "booking id": "booking_id",
    "reservation_id": "booking_id",
    "友だちID": "customer_id",
    "customer_id": "customer_id",
    "customer id": "customer_id",
    "friend_id": "customer_id",
    # customer name
    "名前": "display_name",
    "お客さま": "display_name",
    "お客様": "display_name",
    "name": "display_name",
    "display_name": "display_name",
    # dates
    "予約日": "service_date",
    "日付": "service_date",
    "service_date": "service_date",
    "service date": "service_date",
    "date": "service_date",
    "申込日時": "submitted_at",
    "申し込み日時": "submitted_at",
    "submitted_at": "submitted_at",
    "submitted at": "submitted_at",
    "applied_at": "submitted_at",
    # statuses
    "ステータス": "booking_status",
    "status": "booking_status",
    "booking_status": "booking_status",
    "来店/来場": "attendance_status",
    "attendance": "attendance_status",
    "attendance_status": "attendance_status",
    "visit": "attendance_status",
    "詳細ステータス": "detail_status",
    "detail_status": "detail_status",
    # staff and course
    "予約枠": "raw_staff_text",
    "予約枠（担当者名）": "raw_staff_text",
    "slot": "raw_staff_text",
    "raw_staff_text": "raw_staff_text",
    "担当者": "staff",
    "staff": "staff",
    "コース": "course",
    "course": "course",
}

REQUIRED_COLUMNS = [
    "customer_id",
    "service_date",
    "booking_status",
    "attendance_status",
    "display_name",
    "submitted_at",
]

BOOKING_STATUS_LABELS: dict[str, BookingStatus] = {
    "予約済み": BookingStatus.BOOKED,
    "キャンセル済み": BookingStatus.CANCELLED,
    "booked": BookingStatus.BOOKED,
    "reserved": BookingStatus.BOOKED,
    "cancelled": BookingStatus.CANCELLED,
    "canceled": BookingStatus.CANCELLED,
}

ATTENDANCE_LABELS: dict[str, AttendanceStatus] = {
    "済み": AttendanceStatus.ATTENDED,
    "なし": AttendanceStatus.NOT_ATTENDED,
    "attended": AttendanceStatus.ATTENDED,
    "yes": AttendanceStatus.ATTENDED,
    "not_attended": AttendanceStatus.NOT_ATTENDED,
    "not attended": AttendanceStatus.NOT_ATTENDED,
    "no": AttendanceStatus.NOT_ATTENDED,
    "no-show": AttendanceStatus.NOT_ATTENDED,
}

DETAIL_STATUS_LABELS: dict[str, str] = {
    "前日キャンセル": PREVIOUS_DAY_CANCEL,
    "当日キャンセル": SAME_DAY_CANCEL,
    "previous-day-cancel": PREVIOUS_DAY_CANCEL,
    "previous day cancel": PREVIOUS_DAY_CANCEL,
    "same-day-cancel": SAME_DAY_CANCEL,
    "same day cancel": SAME_DAY_CANCEL,
}


@dataclass
class IngestResult:
    """Result of mapping an export to input records.

    Attributes:
        records: Rows that passed validation, in export order.
        warnings: Human-readable messages, one per skipped row or
            defaulted value. Row numbers count the header as row 1.
        skipped_rows: Number of rows dropped.
    """

    records: list[InputRecord] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    skipped_rows: int = 0


def normalize_header(name: Any) -> str:
    """Clean a header and map it to its internal name when known."""
    cleaned = strip_invisibles(name) or ""
    return COLUMN_ALIASES.get(cleaned, COLUMN_ALIASES.get(cleaned.lower(), cleaned))


def normalize_detail_status(value: Any) -> Optional[str]:
    """Clean a detail status and map late-cancel labels to their tokens.

    Other text is kept as free text; blank values become None.

    Examples:
        >>> normalize_detail_status("前日キャンセル")
        'previous-day-cancel'
        >>> normalize_detail_status("called ahead")
        'called ahead'
    """
    detail = strip_invisibles(value) or None
    if detail is None:
        return None
    return DETAIL_STATUS_LABELS.get(detail, DETAIL_STATUS_LABELS.get(detail.lower(), detail))


def _label(value: Optional[str], labels: dict, default, row_no: int, column: str, warnings: list[str]):
    if value in labels:
        return labels[value]
    if value is not None and value.lower() in labels:
        return labels[value.lower()]
    warnings.append(f"Row {row_no}: unknown {column} '{value}', using '{default.value}'")
    return default


def records_from_frame(df: pd.DataFrame) -> IngestResult:
    """Map an export DataFrame to input records.

    Unknown booking statuses default to booked and unknown attendance
    statuses to not attended, each with a warning. Detail statuses that are
    not late-cancel labels are kept as free text.

    Args:
        df: Raw export, one row per booking event.

    Returns:
        IngestResult.

    Raises:
        DataQualityError: If required columns are missing.
    """
    df = df.rename(columns={c: normalize_header(c) for c in df.columns})
    missing_cols = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing_cols:
        raise DataQualityError(
            f"Missing required columns in export: {missing_cols}. Required: {REQUIRED_COLUMNS}"
        )

    result = IngestResult()
    for i, row in enumerate(df.to_dict("records")):
        row_no = i + 2
        values = {k: strip_invisibles(v) or None for k, v in row.items()}

        blank = [col for col in REQUIRED_COLUMNS if values.get(col) is None]
        if blank:
            result.warnings.append(f"Row {row_no}: blank required fields: {', '.join(blank)}")
            result.skipped_rows += 1
            continue

        service_date = to_datetime(values["service_date"])
        submitted_at = to_datetime(values["submitted_at"])
        if service_date is None or submitted_at is None:
            result.warnings.append(f"Row {row_no}: unparseable date, row skipped")
            result.skipped_rows += 1
            continue

        booking_status = _label(
            values["booking_status"],
            BOOKING_STATUS_LABELS,
            BookingStatus.BOOKED,
            row_no,
            "booking status",
            result.warnings,
        )
        attendance_status = _label(
            values["attendance_status"],
            ATTENDANCE_LABELS,
            AttendanceStatus.NOT_ATTENDED,
            row_no,
            "attendance status",
            result.warnings,
        )
        detail = normalize_detail_status(values.get("detail_status"))

        result.records.append(
            InputRecord(
                booking_id=values.get("booking_id"),
                customer_id=values["customer_id"],
                display_name=values["display_name"],
                service_date=service_date,
                submitted_at=submitted_at,
                submitted_raw=values["submitted_at"],
                booking_status=booking_status,
                attendance_status=attendance_status,
                detail_status=detail,
                raw_staff_text=values.get("raw_staff_text"),
                staff=values.get("staff"),
                course=values.get("course"),
            )
        )

    for message in result.warnings:
        logger.warning(message)
    logger.info("Ingested %d rows (%d skipped)", len(result.records), result.skipped_rows)
    return result


def read_export_csv(path: str | Path) -> pd.DataFrame:
    """Read a reservation export as strings, tolerating a UTF-8 BOM.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Export not found: {path}")
    logger.info("Reading %s", path)
    return pd.read_csv(path, dtype=str, keep_default_na=False, encoding="utf-8-sig")
