"""Manual edits to the canonical history, with an audit trail.

Each edit is a pure function: it takes the current history and counter
maps and returns an EditResult with new maps and the audit entries for
what changed. Edits that change sequencing attendance rerun
``recompute_all`` so the returned maps are always consistent.

Edits that leave a value unchanged return copies of the inputs and no
audit entries.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Optional

from booking_core.classification.attendance import effective_attendance, is_attended
from booking_core.classification.staff import is_unassigned_pool_text
from booking_core.exceptions import EditError, RecordNotFoundError
from booking_core.history.recompute import recompute_all
from booking_core.ingest import normalize_detail_status
from booking_core.types import (
    AttendanceStatus,
    BookingStatus,
    CustomerVisitCounter,
    HistoryRecord,
)
from booking_core.utils import format_date, strip_invisibles

logger = logging.getLogger(__name__)

DEFAULT_EDITOR = "user"


@dataclass(frozen=True)
class AuditEntry:
    """One field change made by an edit.

    Attributes:
        entry_id: Unique id of the entry.
        key: Identity key of the edited record.
        field: Name of the changed ``HistoryRecord`` field.
        old_value: Value before the edit.
        new_value: Value after the edit.
        changed_at: When the edit was made.
        changed_by: Who made the edit.
    """

    entry_id: str
    key: str
    field: str
    old_value: Any
    new_value: Any
    changed_at: datetime
    changed_by: str = DEFAULT_EDITOR


@dataclass
class EditResult:
    """New history and counter maps plus the audit entries of an edit."""

    history: dict[str, HistoryRecord]
    counters: dict[str, CustomerVisitCounter]
    audit: list[AuditEntry] = field(default_factory=list)


def _get(history: Mapping[str, HistoryRecord], key: str) -> HistoryRecord:
    try:
        return history[key]
    except KeyError:
        raise RecordNotFoundError(f"No booking with identity key '{key}'") from None


def _audit(key: str, field_name: str, old: Any, new: Any, now: datetime, changed_by: str) -> AuditEntry:
    return AuditEntry(
        entry_id=uuid.uuid4().hex,
        key=key,
        field=field_name,
        old_value=old,
        new_value=new,
        changed_at=now,
        changed_by=changed_by,
    )


def _unchanged(
    history: Mapping[str, HistoryRecord],
    counters: Mapping[str, CustomerVisitCounter],
) -> EditResult:
    return EditResult(history=dict(history), counters=dict(counters))


def _apply(
    history: Mapping[str, HistoryRecord],
    counters: Mapping[str, CustomerVisitCounter],
    updated: Sequence[HistoryRecord],
    audit: list[AuditEntry],
) -> EditResult:
    """Write updated records and recompute if sequencing attendance moved."""
    new_history = dict(history)
    resequence = False
    for record in updated:
        if effective_attendance(record) != effective_attendance(history[record.key]):
            resequence = True
        new_history[record.key] = record

    if resequence:
        result = recompute_all(new_history, counters)
        return EditResult(history=result.history, counters=result.counters, audit=audit)
    return EditResult(history=new_history, counters=dict(counters), audit=audit)


def set_excluded(
    history: Mapping[str, HistoryRecord],
    counters: Mapping[str, CustomerVisitCounter],
    key: str,
    excluded: bool,
    *,
    changed_by: str = DEFAULT_EDITOR,
    now: Optional[datetime] = None,
) -> EditResult:
    """Exclude a booking from (or restore it to) every aggregate.

    Exclusion does not change visit sequencing.

    Raises:
        RecordNotFoundError: If the key is not in the history.
    """
    record = _get(history, key)
    if record.is_excluded == excluded:
        return _unchanged(history, counters)

    now = now or datetime.now()
    logger.info("Set excluded=%s on %s", excluded, key)
    audit = [_audit(key, "is_excluded", record.is_excluded, excluded, now, changed_by)]
    updated = replace(record, is_excluded=excluded, updated_at=now)
    return _apply(history, counters, [updated], audit)


def set_manual_attendance(
    history: Mapping[str, HistoryRecord],
    counters: Mapping[str, CustomerVisitCounter],
    key: str,
    value: Optional[bool],
    *,
    changed_by: str = DEFAULT_EDITOR,
    now: Optional[datetime] = None,
) -> EditResult:
    """Force a booking's attendance, or pass None to restore the automatic value.

    Raises:
        RecordNotFoundError: If the key is not in the history.
    """
    record = _get(history, key)
    if record.manual_attendance is value:
        return _unchanged(history, counters)

    now = now or datetime.now()
    logger.info("Set manual attendance=%s on %s", value, key)
    audit = [_audit(key, "manual_attendance", record.manual_attendance, value, now, changed_by)]
    updated = replace(record, manual_attendance=value, updated_at=now)
    return _apply(history, counters, [updated], audit)


def update_detail_status(
    history: Mapping[str, HistoryRecord],
    counters: Mapping[str, CustomerVisitCounter],
    key: str,
    detail_status: Optional[str],
    *,
    changed_by: str = DEFAULT_EDITOR,
    now: Optional[datetime] = None,
) -> EditResult:
    """Change a booking's detail status and re-derive its attendance.

    Setting ``"previous-day-cancel"`` or ``"same-day-cancel"`` turns the
    booking into a late cancellation, which counts as attended.

    Raises:
        RecordNotFoundError: If the key is not in the history.
    """
    record = _get(history, key)
    detail_status = normalize_detail_status(detail_status)
    if record.detail_status == detail_status:
        return _unchanged(history, counters)

    now = now or datetime.now()
    attended = is_attended(record.booking_status, record.attendance_status, detail_status)
    audit = [_audit(key, "detail_status", record.detail_status, detail_status, now, changed_by)]
    if attended != record.is_attended:
        audit.append(_audit(key, "is_attended", record.is_attended, attended, now, changed_by))
    updated = replace(record, detail_status=detail_status, is_attended=attended, updated_at=now)
    return _apply(history, counters, [updated], audit)


def toggle_attendance(
    history: Mapping[str, HistoryRecord],
    counters: Mapping[str, CustomerVisitCounter],
    key: str,
    *,
    changed_by: str = DEFAULT_EDITOR,
    now: Optional[datetime] = None,
) -> EditResult:
    """Flip a booking between attended and cancelled.

    An attended booking, late cancellations included, becomes cancelled and
    not attended with its detail status cleared, so it no longer counts
    under any attendance rule. Anything else becomes booked and attended,
    also with the detail status cleared.

    Raises:
        RecordNotFoundError: If the key is not in the history.
    """
    record = _get(history, key)
    now = now or datetime.now()
    attended = not record.is_attended

    if attended:
        updated = replace(
            record,
            booking_status=BookingStatus.BOOKED,
            attendance_status=AttendanceStatus.ATTENDED,
            detail_status=None,
            is_attended=True,
            updated_at=now,
        )
    else:
        updated = replace(
            record,
            booking_status=BookingStatus.CANCELLED,
            attendance_status=AttendanceStatus.NOT_ATTENDED,
            detail_status=None,
            is_attended=False,
            updated_at=now,
        )

    logger.info("Toggled attendance on %s to %s", key, updated.is_attended)
    audit = [_audit(key, "is_attended", record.is_attended, updated.is_attended, now, changed_by)]
    if record.detail_status is not None:
        audit.append(_audit(key, "detail_status", record.detail_status, None, now, changed_by))
    return _apply(history, counters, [updated], audit)


def assign_staff(
    history: Mapping[str, HistoryRecord],
    counters: Mapping[str, CustomerVisitCounter],
    key: str,
    staff_name: str,
    *,
    roster: Sequence[str] = (),
    changed_by: str = DEFAULT_EDITOR,
    now: Optional[datetime] = None,
) -> EditResult:
    """Assign a staff member to a booking from the unassigned pool.

    A booking counts as pooled when it was flagged at merge time or its raw
    staff text is an unassigned-pool marker such as "おまかせ".

    Args:
        key: Identity key of the booking.
        staff_name: Staff display name.
        roster: When given, the name must be one of these.

    Raises:
        RecordNotFoundError: If the key is not in the history.
        EditError: If the booking was not left for later assignment, or the
            name is not on the roster.
    """
    record = _get(history, key)
    if not (record.was_unassigned_pool or is_unassigned_pool_text(record.raw_staff_text)):
        raise EditError(f"Booking '{key}' was not left for later assignment")
    staff_name = strip_invisibles(staff_name) or ""
    if not staff_name:
        raise EditError("Staff name must not be blank")
    if roster and staff_name not in roster:
        raise EditError(f"'{staff_name}' is not on the staff roster")
    if record.resolved_staff == staff_name:
        return _unchanged(history, counters)

    now = now or datetime.now()
    logger.info("Assigned %s to pooled booking %s", staff_name, key)
    audit = [_audit(key, "resolved_staff", record.resolved_staff, staff_name, now, changed_by)]
    updated = replace(record, resolved_staff=staff_name, was_unassigned_pool=True, updated_at=now)
    return _apply(history, counters, [updated], audit)


def same_day_group_id(record: HistoryRecord) -> str:
    """Group id shared by one customer's bookings on one day."""
    return f"{record.customer_id}_{format_date(record.service_date)}"


def group_same_day(
    history: Mapping[str, HistoryRecord],
    counters: Mapping[str, CustomerVisitCounter],
    keys: Sequence[str],
    primary_key: str,
    *,
    changed_by: str = DEFAULT_EDITOR,
    now: Optional[datetime] = None,
) -> EditResult:
    """Group one customer's same-day bookings, keeping one in the aggregates.

    Every booking gets the shared group id; all but ``primary_key`` are
    excluded from aggregates.

    Raises:
        RecordNotFoundError: If a key is not in the history.
        EditError: If fewer than two bookings are given, the primary is not
            among them, or they span customers or days.
    """
    unique_keys = list(dict.fromkeys(keys))
    if len(unique_keys) < 2:
        raise EditError("At least two bookings are needed to group")
    if primary_key not in unique_keys:
        raise EditError(f"Primary booking '{primary_key}' is not among the grouped bookings")

    records = [_get(history, k) for k in unique_keys]
    group_ids = {same_day_group_id(r) for r in records}
    if len(group_ids) != 1:
        raise EditError("Only bookings of the same customer on the same day can be grouped")

    now = now or datetime.now()
    group_id = group_ids.pop()
    audit: list[AuditEntry] = []
    updated: list[HistoryRecord] = []
    for record in records:
        excluded = record.key != primary_key
        if record.merge_group_id != group_id:
            audit.append(_audit(record.key, "merge_group_id", record.merge_group_id, group_id, now, changed_by))
        if record.is_excluded != excluded:
            audit.append(_audit(record.key, "is_excluded", record.is_excluded, excluded, now, changed_by))
        updated.append(replace(record, merge_group_id=group_id, is_excluded=excluded, updated_at=now))

    if not audit:
        return _unchanged(history, counters)

    logger.info("Grouped %d bookings as %s (primary %s)", len(records), group_id, primary_key)
    return _apply(history, counters, updated, audit)


def ungroup_same_day(
    history: Mapping[str, HistoryRecord],
    counters: Mapping[str, CustomerVisitCounter],
    key: str,
    *,
    changed_by: str = DEFAULT_EDITOR,
    now: Optional[datetime] = None,
) -> EditResult:
    """Dissolve the group a booking belongs to.

    Every member loses the group id and is restored to the aggregates.

    Raises:
        RecordNotFoundError: If the key is not in the history.
    """
    record = _get(history, key)
    group_id = record.merge_group_id
    if group_id is None:
        return _unchanged(history, counters)

    now = now or datetime.now()
    audit: list[AuditEntry] = []
    updated: list[HistoryRecord] = []
    for member in history.values():
        if member.merge_group_id != group_id:
            continue
        audit.append(_audit(member.key, "merge_group_id", group_id, None, now, changed_by))
        if member.is_excluded:
            audit.append(_audit(member.key, "is_excluded", True, False, now, changed_by))
        updated.append(replace(member, merge_group_id=None, is_excluded=False, updated_at=now))

    logger.info("Ungrouped %d bookings from %s", len(updated), group_id)
    return _apply(history, counters, updated, audit)
