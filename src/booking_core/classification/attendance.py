"""Attendance, cancellation-timing and visit-label classification.

All functions here are total: unexpected input falls through to a
documented default instead of raising.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from booking_core.types import (
    LATE_CANCEL_STATUSES,
    AttendanceRule,
    AttendanceStatus,
    BookingStatus,
    CancelTiming,
    HistoryRecord,
    VisitLabel,
)
from booking_core.utils import start_of_day, strip_invisibles


def is_late_cancel(detail_status: Optional[str]) -> bool:
    """True when the detail status marks a previous-day or same-day cancellation."""
    return strip_invisibles(detail_status) in LATE_CANCEL_STATUSES


def is_attended(
    booking_status: BookingStatus,
    attendance_status: AttendanceStatus,
    detail_status: Optional[str] = None,
) -> bool:
    """Field-derived attendance of a booking.

    A late cancellation counts as a completed visit. Otherwise the booking
    must still be booked and marked attended.

    Examples:
        >>> is_attended(BookingStatus.BOOKED, AttendanceStatus.ATTENDED)
        True
        >>> is_attended(BookingStatus.CANCELLED, AttendanceStatus.NOT_ATTENDED, "same-day-cancel")
        True
    """
    if is_late_cancel(detail_status):
        return True
    return booking_status == BookingStatus.BOOKED and attendance_status == AttendanceStatus.ATTENDED


def effective_attendance(record: HistoryRecord) -> bool:
    """Attendance used for visit sequencing.

    A manual override wins; otherwise the field-derived value. Exclusion
    from aggregates does not affect sequencing.
    """
    if record.manual_attendance is not None:
        return record.manual_attendance
    return record.is_attended


def should_count_as_attended(record: HistoryRecord, rule: AttendanceRule) -> bool:
    """Whether a record counts as an attended visit in the aggregates.

    Precedence, first match wins:

    1. Excluded records never count.
    2. A manual override is taken as is.
    3. Late cancellations count only under ``INCLUDE_LATE_CANCEL``.
    4. Otherwise the field-derived attendance.
    """
    if record.is_excluded:
        return False
    if record.manual_attendance is not None:
        return record.manual_attendance
    if is_late_cancel(record.detail_status):
        return rule == AttendanceRule.INCLUDE_LATE_CANCEL
    return is_attended(record.booking_status, record.attendance_status, record.detail_status)


def classify_cancel_timing(
    service_date: Optional[datetime],
    submitted_at: Optional[datetime],
    booking_status: BookingStatus,
) -> CancelTiming:
    """Classify how late a cancellation was submitted.

    Both dates are truncated to midnight before the day difference is
    taken. A submission after the service date counts as early, as does a
    cancellation without one of the two dates.

    Examples:
        >>> svc = datetime(2024, 12, 5, 10, 0)
        >>> classify_cancel_timing(svc, datetime(2024, 12, 4, 22, 0), BookingStatus.CANCELLED)
        <CancelTiming.PREVIOUS_DAY: 'previous-day'>
    """
    if booking_status != BookingStatus.CANCELLED:
        return CancelTiming.NONE
    if service_date is None or submitted_at is None:
        return CancelTiming.EARLY

    day_diff = (start_of_day(service_date) - start_of_day(submitted_at)).days
    if day_diff == 0:
        return CancelTiming.SAME_DAY
    if day_diff == 1:
        return CancelTiming.PREVIOUS_DAY
    return CancelTiming.EARLY


def visit_label_of(sequence: int) -> VisitLabel:
    """Map a visit sequence number to its label."""
    if sequence == 1:
        return VisitLabel.FIRST
    if sequence == 2:
        return VisitLabel.SECOND
    return VisitLabel.THIRD_OR_MORE
