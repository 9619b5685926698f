"""Shared record types for the booking history engine.

Records are frozen dataclasses: the engine never mutates a record in place,
it builds a new one with ``dataclasses.replace`` and returns new dicts. The
caller owns the current snapshot and persists what the engine returns.

Status enums inherit from ``str`` so they serialize to JSON and CSV as their
plain values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class BookingStatus(str, Enum):
    """Whether the booking is still on the books."""

    BOOKED = "booked"
    CANCELLED = "cancelled"


class AttendanceStatus(str, Enum):
    """Whether the customer showed up for the booked service."""

    ATTENDED = "attended"
    NOT_ATTENDED = "not_attended"


class CancelTiming(str, Enum):
    """How close to the service date a cancellation was submitted."""

    NONE = "none"
    SAME_DAY = "same-day"
    PREVIOUS_DAY = "previous-day"
    EARLY = "early"


class VisitLabel(str, Enum):
    """Human label for a visit sequence number."""

    FIRST = "first"
    SECOND = "second"
    THIRD_OR_MORE = "third_or_more"


class AttendanceRule(str, Enum):
    """How late cancellations are counted by the aggregates.

    - ``STRICT``: late cancellations are never attended visits.
    - ``INCLUDE_LATE_CANCEL``: late cancellations count as attended visits.
    """

    STRICT = "strict"
    INCLUDE_LATE_CANCEL = "include_late_cancel"

    @classmethod
    def parse(cls, value: str | AttendanceRule) -> AttendanceRule:
        """Resolve a rule from its name.

        Raises:
            ValueError: If the name is not a known rule.

        Examples:
            >>> AttendanceRule.parse("strict")
            <AttendanceRule.STRICT: 'strict'>
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(f"'{r.value}'" for r in cls)
            raise ValueError(f"Invalid attendance rule '{value}'. Must be one of {valid}.") from None


class DateAxis(str, Enum):
    """Which record date a period filter is applied to."""

    SUBMITTED_AT = "submitted_at"
    SERVICE_DATE = "service_date"


# Detail-status values that mark a late cancellation
PREVIOUS_DAY_CANCEL = "previous-day-cancel"
SAME_DAY_CANCEL = "same-day-cancel"
LATE_CANCEL_STATUSES = frozenset({PREVIOUS_DAY_CANCEL, SAME_DAY_CANCEL})

# Reason tag for batch records that cannot be keyed
MISSING_IDENTITY = "missing-identity"


@dataclass(frozen=True)
class InputRecord:
    """One parsed row of an import batch, as handed over by the ingest layer.

    Attributes:
        customer_id: Customer the booking belongs to.
        display_name: Customer display name.
        service_date: When the service takes (or took) place.
        booking_status: Booked or cancelled.
        attendance_status: Attended or not attended.
        submitted_at: When the booking or cancellation request was made.
        booking_id: Stable booking identifier; blank when the export has none.
        submitted_raw: Submission timestamp exactly as exported, used by the
            fallback identity key.
        detail_status: Free-text detail status, e.g. ``"same-day-cancel"``.
        raw_staff_text: Free-text slot description from the export.
        staff: Explicit staff name, when the export already resolved one.
        course: Course label.
    """

    customer_id: str
    display_name: str
    service_date: Optional[datetime]
    booking_status: BookingStatus
    attendance_status: AttendanceStatus
    submitted_at: Optional[datetime] = None
    booking_id: Optional[str] = None
    submitted_raw: Optional[str] = None
    detail_status: Optional[str] = None
    raw_staff_text: Optional[str] = None
    staff: Optional[str] = None
    course: Optional[str] = None


@dataclass(frozen=True)
class HistoryRecord:
    """Canonical state of one booking event.

    The engine owns ``is_attended``, ``visit_sequence`` and ``visit_label``.
    ``is_excluded``, ``manual_attendance`` and ``merge_group_id`` belong to
    the editing layer and survive re-imports. Everything else is refreshed
    from the latest import.

    ``manual_attendance`` is tri-state: None keeps the automatic value,
    True or False forces it.
    """

    key: str
    customer_id: str
    display_name: str
    service_date: datetime
    submitted_at: Optional[datetime]
    booking_status: BookingStatus
    attendance_status: AttendanceStatus
    is_attended: bool
    created_at: datetime
    updated_at: datetime
    booking_id: Optional[str] = None
    visit_sequence: Optional[int] = None
    visit_label: Optional[VisitLabel] = None
    detail_status: Optional[str] = None
    raw_staff_text: Optional[str] = None
    resolved_staff: Optional[str] = None
    was_unassigned_pool: bool = False
    course: Optional[str] = None
    is_excluded: bool = False
    manual_attendance: Optional[bool] = None
    merge_group_id: Optional[str] = None


@dataclass(frozen=True)
class CustomerVisitCounter:
    """Cached attended-visit count for one customer.

    ``attended_count`` equals the highest sequence handed out. Counters are
    never deleted; zero is a valid resting state.
    """

    customer_id: str
    attended_count: int = 0
    last_service_date: Optional[datetime] = None


@dataclass(frozen=True)
class CampaignPeriod:
    """Inclusive date window used to filter records.

    ``period_to`` covers the whole day, up to 23:59:59.999999.
    """

    period_from: datetime
    period_to: datetime
    date_axis: DateAxis = DateAxis.SUBMITTED_AT
    name: Optional[str] = None


@dataclass(frozen=True)
class SkippedRecord:
    """A batch record the merge engine could not key."""

    record: InputRecord
    reason: str = MISSING_IDENTITY


@dataclass
class MergeResult:
    """Result of merging one batch into the canonical history.

    Attributes:
        history: New map from identity key to record.
        counters: New map from customer id to visit counter.
        skipped: Batch records rejected for missing identity.
    """

    history: dict[str, HistoryRecord]
    counters: dict[str, CustomerVisitCounter]
    skipped: list[SkippedRecord] = field(default_factory=list)


@dataclass
class RecomputeResult:
    """Result of a full sequence rebuild."""

    history: dict[str, HistoryRecord]
    counters: dict[str, CustomerVisitCounter]
