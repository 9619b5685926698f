"""Per-record counting flags and the overall summary.

``record_flags`` is the single predicate every aggregate is built from,
the grouped marts included, so totals always agree across views.

Counting rules:
- total: every record not excluded from aggregates
- attended: records counted by ``should_count_as_attended``
- cancelled: cancelled records that are not counted as attended
- first / repeat: attended records with sequence 1 / greater than 1
- attendance rate: attended / total
- first-visit rate: first / attended

Rates are percentages rounded half-up to one decimal.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass, fields

from booking_core.classification.attendance import should_count_as_attended
from booking_core.types import (
    PREVIOUS_DAY_CANCEL,
    SAME_DAY_CANCEL,
    AttendanceRule,
    BookingStatus,
    HistoryRecord,
)
from booking_core.utils import percent


@dataclass(frozen=True)
class RecordFlags:
    """0/1 counters contributed by one record."""

    total: int = 0
    attended: int = 0
    cancelled: int = 0
    first_visit: int = 0
    second_visit: int = 0
    third_plus_visit: int = 0
    repeat_visit: int = 0
    previous_day_cancel: int = 0
    same_day_cancel: int = 0
    pool_assigned: int = 0
    grouped: int = 0


FLAG_COLUMNS = tuple(f.name for f in fields(RecordFlags))

_EXCLUDED = RecordFlags()


def record_flags(record: HistoryRecord, rule: AttendanceRule) -> RecordFlags:
    """Counting flags of one record under the given attendance rule."""
    if record.is_excluded:
        return _EXCLUDED

    attended = should_count_as_attended(record, rule)
    seq = record.visit_sequence or 0
    return RecordFlags(
        total=1,
        attended=int(attended),
        cancelled=int(not attended and record.booking_status == BookingStatus.CANCELLED),
        first_visit=int(attended and seq == 1),
        second_visit=int(attended and seq == 2),
        third_plus_visit=int(attended and seq >= 3),
        repeat_visit=int(attended and seq > 1),
        previous_day_cancel=int(record.detail_status == PREVIOUS_DAY_CANCEL),
        same_day_cancel=int(record.detail_status == SAME_DAY_CANCEL),
        pool_assigned=int(record.was_unassigned_pool and record.resolved_staff is not None),
        grouped=int(record.merge_group_id is not None),
    )


@dataclass(frozen=True)
class AggregationSummary:
    """Counts and rates over a set of records.

    Attributes:
        total: Records not excluded from aggregates.
        attended: Records counted as attended visits.
        cancelled: Cancelled records not counted as attended.
        first_visit: Attended first visits.
        repeat_visit: Attended visits after the first.
        attendance_rate: attended / total, in percent.
        first_visit_rate: first_visit / attended, in percent.
        second_visit: Attended second visits.
        third_plus_visit: Attended third-or-later visits.
        previous_day_cancel: Previous-day cancellations.
        same_day_cancel: Same-day cancellations.
    """

    total: int = 0
    attended: int = 0
    cancelled: int = 0
    first_visit: int = 0
    repeat_visit: int = 0
    attendance_rate: float = 0.0
    first_visit_rate: float = 0.0
    second_visit: int = 0
    third_plus_visit: int = 0
    previous_day_cancel: int = 0
    same_day_cancel: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def summarize(
    records: Iterable[HistoryRecord],
    rule: AttendanceRule = AttendanceRule.INCLUDE_LATE_CANCEL,
) -> AggregationSummary:
    """Count and rate a set of records.

    Args:
        records: Records to summarize, typically already period-filtered.
        rule: How late cancellations are counted.

    Returns:
        AggregationSummary.

    Examples:
        >>> s = summarize(history.values(), AttendanceRule.STRICT)
        >>> s.attendance_rate
        66.7
    """
    totals = dict.fromkeys(FLAG_COLUMNS, 0)
    for record in records:
        flags = record_flags(record, rule)
        for name in FLAG_COLUMNS:
            totals[name] += getattr(flags, name)

    return AggregationSummary(
        total=totals["total"],
        attended=totals["attended"],
        cancelled=totals["cancelled"],
        first_visit=totals["first_visit"],
        repeat_visit=totals["repeat_visit"],
        attendance_rate=percent(totals["attended"], totals["total"]),
        first_visit_rate=percent(totals["first_visit"], totals["attended"]),
        second_visit=totals["second_visit"],
        third_plus_visit=totals["third_plus_visit"],
        previous_day_cancel=totals["previous_day_cancel"],
        same_day_cancel=totals["same_day_cancel"],
    )
