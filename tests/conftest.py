"""Shared fixtures for booking_core tests.

The factories take dates as ``YYYY-MM-DD`` or ``YYYY-MM-DD HH:MM`` strings
so scenarios read like the exports they stand in for.
"""

from datetime import datetime
from typing import Callable, Optional

import pytest

from booking_core.classification.attendance import is_attended
from booking_core.types import (
    AttendanceStatus,
    BookingStatus,
    HistoryRecord,
    InputRecord,
)
from booking_core.utils import to_datetime

NOW = datetime(2025, 1, 10, 9, 0)


@pytest.fixture
def now() -> datetime:
    """Fixed merge timestamp."""
    return NOW


@pytest.fixture
def make_input() -> Callable[..., InputRecord]:
    """Factory for input records."""

    def _make(
        booking_id: Optional[str] = "R-1",
        customer_id: str = "F1",
        service_date: str = "2024-12-01 10:00",
        booked: bool = True,
        attended: bool = True,
        submitted_at: str = "2024-11-20 12:00",
        detail_status: Optional[str] = None,
        raw_staff_text: Optional[str] = None,
        staff: Optional[str] = None,
        course: Optional[str] = None,
        display_name: str = "Customer",
    ) -> InputRecord:
        return InputRecord(
            booking_id=booking_id,
            customer_id=customer_id,
            display_name=display_name,
            service_date=to_datetime(service_date),
            submitted_at=to_datetime(submitted_at),
            submitted_raw=submitted_at,
            booking_status=BookingStatus.BOOKED if booked else BookingStatus.CANCELLED,
            attendance_status=AttendanceStatus.ATTENDED if attended else AttendanceStatus.NOT_ATTENDED,
            detail_status=detail_status,
            raw_staff_text=raw_staff_text,
            staff=staff,
            course=course,
        )

    return _make


@pytest.fixture
def make_record() -> Callable[..., HistoryRecord]:
    """Factory for canonical history records."""

    def _make(
        key: str = "R-1",
        customer_id: str = "F1",
        service_date: str = "2024-12-01 10:00",
        booked: bool = True,
        attended: bool = True,
        submitted_at: Optional[str] = "2024-11-20 12:00",
        detail_status: Optional[str] = None,
        visit_sequence: Optional[int] = None,
        **overrides,
    ) -> HistoryRecord:
        booking_status = BookingStatus.BOOKED if booked else BookingStatus.CANCELLED
        attendance_status = AttendanceStatus.ATTENDED if attended else AttendanceStatus.NOT_ATTENDED
        fields = dict(
            key=key,
            booking_id=key,
            customer_id=customer_id,
            display_name=f"Customer {customer_id}",
            service_date=to_datetime(service_date),
            submitted_at=to_datetime(submitted_at) if submitted_at else None,
            booking_status=booking_status,
            attendance_status=attendance_status,
            is_attended=is_attended(booking_status, attendance_status, detail_status),
            detail_status=detail_status,
            visit_sequence=visit_sequence,
            created_at=NOW,
            updated_at=NOW,
        )
        fields.update(overrides)
        return HistoryRecord(**fields)

    return _make
