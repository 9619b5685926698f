"""Tests for mapping reservation exports to input records."""

from datetime import datetime

import pandas as pd
import pytest

from booking_core.exceptions import DataQualityError
from booking_core.ingest import normalize_detail_status, normalize_header, read_export_csv, records_from_frame
from booking_core.types import AttendanceStatus, BookingStatus


def japanese_export(rows: list) -> pd.DataFrame:
    columns = ["予約ID", "友だちID", "名前", "予約日", "申込日時", "ステータス", "来店/来場", "詳細ステータス", "予約枠"]
    return pd.DataFrame(rows, columns=columns)


def test_japanese_headers_and_labels() -> None:
    """Localized headers and status labels map to internal values."""
    df = japanese_export(
        [
            ["R-1", "F1", "山田", "2024/12/05 10:00", "2024/11/20 12:00", "予約済み", "済み", "", "Jane Doe"],
            ["R-2", "F2", "佐藤", "2024/12/06", "2024/12/05 21:00", "キャンセル済み", "なし", "前日キャンセル", ""],
        ]
    )
    result = records_from_frame(df)

    assert result.warnings == []
    assert len(result.records) == 2
    first, second = result.records
    assert first.booking_id == "R-1"
    assert first.service_date == datetime(2024, 12, 5, 10, 0)
    assert first.booking_status == BookingStatus.BOOKED
    assert first.attendance_status == AttendanceStatus.ATTENDED
    assert first.raw_staff_text == "Jane Doe"
    assert first.submitted_raw == "2024/11/20 12:00"
    assert second.booking_status == BookingStatus.CANCELLED
    assert second.detail_status == "previous-day-cancel"
    assert second.raw_staff_text is None


def test_english_headers() -> None:
    df = pd.DataFrame(
        [["F1", "Jane", "2024-12-05", "2024-11-20 12:00", "Cancelled", "no", "Same day cancel", "Yoga"]],
        columns=["Customer ID", "Name", "Service Date", "Submitted At", "Status", "Attendance", "Detail_Status", "Course"],
    )
    record = records_from_frame(df).records[0]

    assert record.customer_id == "F1"
    assert record.booking_id is None
    assert record.booking_status == BookingStatus.CANCELLED
    assert record.attendance_status == AttendanceStatus.NOT_ATTENDED
    assert record.detail_status == "same-day-cancel"
    assert record.course == "Yoga"


def test_missing_required_columns() -> None:
    df = pd.DataFrame([["F1", "2024-12-05"]], columns=["友だちID", "予約日"])
    with pytest.raises(DataQualityError, match="Missing required columns"):
        records_from_frame(df)


def test_blank_rows_are_skipped() -> None:
    """Rows missing required values never become records."""
    df = japanese_export(
        [
            ["R-1", "", "山田", "2024/12/05", "2024/11/20 12:00", "予約済み", "済み", "", ""],
            ["R-2", "F2", "佐藤", "not a date", "2024/11/20 12:00", "予約済み", "済み", "", ""],
            ["R-3", "F3", "鈴木", "2024/12/05", "2024/11/20 12:00", "予約済み", "済み", "", ""],
        ]
    )
    result = records_from_frame(df)

    assert [r.booking_id for r in result.records] == ["R-3"]
    assert result.skipped_rows == 2
    assert result.warnings[0].startswith("Row 2: blank required fields: customer_id")
    assert result.warnings[1] == "Row 3: unparseable date, row skipped"


def test_unknown_labels_default_with_warning() -> None:
    df = japanese_export(
        [["R-1", "F1", "山田", "2024/12/05", "2024/11/20 12:00", "保留", "不明", "要確認", ""]],
    )
    result = records_from_frame(df)
    record = result.records[0]

    assert record.booking_status == BookingStatus.BOOKED
    assert record.attendance_status == AttendanceStatus.NOT_ATTENDED
    assert record.detail_status == "要確認"
    assert len(result.warnings) == 2
    assert "unknown booking status '保留'" in result.warnings[0]


def test_normalize_header() -> None:
    assert normalize_header("\ufeff予約ID") == "booking_id"
    assert normalize_header(" Booking ID ") == "booking_id"
    assert normalize_header("memo") == "memo"


def test_normalize_detail_status() -> None:
    assert normalize_detail_status("当日キャンセル") == "same-day-cancel"
    assert normalize_detail_status(" Same day cancel ") == "same-day-cancel"
    assert normalize_detail_status("called ahead") == "called ahead"
    assert normalize_detail_status("  ") is None
    assert normalize_detail_status(None) is None


def test_read_export_csv_with_bom(tmp_path) -> None:
    """CSV exports with a UTF-8 BOM read as plain strings."""
    path = tmp_path / "export.csv"
    path.write_text(
        "予約ID,友だちID,名前,予約日,申込日時,ステータス,来店/来場\n"
        "0012,F1,山田,2024/12/05,2024/11/20 12:00,予約済み,済み\n",
        encoding="utf-8-sig",
    )
    df = read_export_csv(path)

    assert list(df.columns)[0] == "予約ID"
    assert df.loc[0, "予約ID"] == "0012"
    assert records_from_frame(df).records[0].booking_id == "0012"


def test_read_export_csv_missing(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        read_export_csv(tmp_path / "missing.csv")
