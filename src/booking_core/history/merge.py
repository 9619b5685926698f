"""Incremental merge of an import batch into the canonical history.

The merge is an upsert keyed by identity (see ``history.identity``). It is
pure: the input maps are copied, never mutated, and the caller persists the
returned maps. Re-submitting the same batch with the same ``now`` yields an
identical result.

Counter maintenance per record, comparing attendance before and after:

- newly attended: increment the customer's count and take it as sequence
- still attended: keep the existing sequence
- no longer attended: decrement the count (floor 0) and clear the sequence
- never attended: nothing to do

Demotions do not renumber the customer's other sequences, so a gap (or a
repeated number on a later promotion) can remain until ``recompute_all``
runs. A promotion that lands at or before the customer's latest attended
service date renumbers that customer's attended records in service-date
order, so importing older batches after newer ones gives the same numbers
as importing them in date order.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import replace
from datetime import datetime
from typing import Optional

from booking_core.classification.attendance import effective_attendance, is_attended, visit_label_of
from booking_core.classification.staff import classify_staff_text
from booking_core.history.identity import identity_key
from booking_core.history.recompute import assign_sequences
from booking_core.types import (
    CustomerVisitCounter,
    HistoryRecord,
    InputRecord,
    MergeResult,
    SkippedRecord,
)
from booking_core.utils import strip_invisibles

logger = logging.getLogger(__name__)


def build_record(
    record: InputRecord,
    key: str,
    prior: Optional[HistoryRecord],
    roster: Sequence[str],
    now: datetime,
) -> HistoryRecord:
    """Build the canonical record for one input row.

    Import-owned fields come from the input. Edit-owned fields
    (exclusion, manual attendance, merge group, creation time) are carried
    over from ``prior``. Sequence fields are left unset for the caller.
    """
    staff = classify_staff_text(record.raw_staff_text, roster)
    resolved_staff = strip_invisibles(record.staff) or staff.resolved_staff
    if (
        resolved_staff is None
        and staff.was_unassigned_pool
        and prior is not None
        and prior.was_unassigned_pool
    ):
        # Staff assigned by hand to a pooled booking survives re-imports
        resolved_staff = prior.resolved_staff

    return HistoryRecord(
        key=key,
        booking_id=strip_invisibles(record.booking_id) or None,
        customer_id=strip_invisibles(record.customer_id),
        display_name=strip_invisibles(record.display_name) or "",
        service_date=record.service_date,
        submitted_at=record.submitted_at,
        booking_status=record.booking_status,
        attendance_status=record.attendance_status,
        is_attended=is_attended(record.booking_status, record.attendance_status, record.detail_status),
        detail_status=strip_invisibles(record.detail_status) or None,
        raw_staff_text=strip_invisibles(record.raw_staff_text) or None,
        resolved_staff=resolved_staff,
        was_unassigned_pool=staff.was_unassigned_pool,
        course=strip_invisibles(record.course) or None,
        is_excluded=prior.is_excluded if prior else False,
        manual_attendance=prior.manual_attendance if prior else None,
        merge_group_id=prior.merge_group_id if prior else None,
        created_at=prior.created_at if prior else now,
        updated_at=now,
    )


def _promote(counter: CustomerVisitCounter, service_date: datetime) -> CustomerVisitCounter:
    last = counter.last_service_date
    return replace(
        counter,
        attended_count=counter.attended_count + 1,
        last_service_date=service_date if last is None else max(last, service_date),
    )


def _demote(counter: CustomerVisitCounter) -> CustomerVisitCounter:
    return replace(counter, attended_count=max(0, counter.attended_count - 1))


def merge(
    history: Mapping[str, HistoryRecord],
    counters: Mapping[str, CustomerVisitCounter],
    batch: Iterable[InputRecord],
    *,
    roster: Sequence[str] = (),
    now: Optional[datetime] = None,
) -> MergeResult:
    """Merge a batch of input records into the canonical history.

    The batch is processed in ascending service-date order; records with
    the same service date keep their input order.

    Args:
        history: Current map from identity key to record.
        counters: Current map from customer id to visit counter.
        batch: Parsed input records.
        roster: Staff names used to resolve slot text.
        now: Merge timestamp; defaults to the current time.

    Returns:
        MergeResult with the new maps and the records skipped for missing
        identity.

    Examples:
        >>> result = merge({}, {}, batch, roster=config.roster)
        >>> result.counters["F1"].attended_count
        1
    """
    if now is None:
        now = datetime.now()

    new_history: dict[str, HistoryRecord] = dict(history)
    new_counters: dict[str, CustomerVisitCounter] = dict(counters)
    skipped: list[SkippedRecord] = []
    reorder: set[str] = set()
    stats = {"inserted": 0, "updated": 0, "promoted": 0, "demoted": 0}

    ordered = sorted(batch, key=lambda r: r.service_date or datetime.min)

    for incoming in ordered:
        key = identity_key(incoming)
        if key is None or incoming.service_date is None or not strip_invisibles(incoming.customer_id):
            logger.warning(
                "Skipping record without identity (customer=%r, service_date=%s)",
                incoming.customer_id,
                incoming.service_date,
            )
            skipped.append(SkippedRecord(record=incoming))
            continue

        prior = new_history.get(key)
        record = build_record(incoming, key, prior, roster, now)
        customer_id = record.customer_id
        was_attended = prior is not None and effective_attendance(prior)

        if prior is not None and was_attended and prior.customer_id != customer_id:
            # Booking moved to another customer: release the old customer's visit
            old = new_counters.get(prior.customer_id)
            if old is not None:
                new_counters[prior.customer_id] = _demote(old)
            stats["demoted"] += 1
            was_attended = False

        counter = new_counters.get(customer_id) or CustomerVisitCounter(customer_id=customer_id)
        attended_now = effective_attendance(record)

        if attended_now and not was_attended:
            last = counter.last_service_date
            if counter.attended_count > 0 and last is not None and record.service_date <= last:
                reorder.add(customer_id)
            counter = _promote(counter, record.service_date)
            seq = counter.attended_count
            record = replace(record, visit_sequence=seq, visit_label=visit_label_of(seq))
            stats["promoted"] += 1
        elif attended_now and was_attended:
            record = replace(record, visit_sequence=prior.visit_sequence, visit_label=prior.visit_label)
        elif was_attended:
            counter = _demote(counter)
            stats["demoted"] += 1
            logger.debug("Record %s no longer attended; sequence %s released", key, prior.visit_sequence)

        new_counters[customer_id] = counter
        new_history[key] = record
        stats["inserted" if prior is None else "updated"] += 1

    for customer_id in sorted(reorder):
        _renumber_customer(new_history, new_counters, customer_id)

    logger.info(
        "Merged batch: %d inserted, %d updated, %d promoted, %d demoted, %d skipped",
        stats["inserted"],
        stats["updated"],
        stats["promoted"],
        stats["demoted"],
        len(skipped),
    )
    if reorder:
        logger.info("Renumbered %d customer(s) after out-of-order promotions", len(reorder))

    return MergeResult(history=new_history, counters=new_counters, skipped=skipped)


def _renumber_customer(
    history: dict[str, HistoryRecord],
    counters: dict[str, CustomerVisitCounter],
    customer_id: str,
) -> None:
    """Renumber one customer's attended records in service-date order, in place."""
    renumbered = assign_sequences(r for r in history.values() if r.customer_id == customer_id)
    history.update(renumbered)

    attended = [r for r in renumbered.values() if r.visit_sequence is not None]
    counters[customer_id] = replace(
        counters[customer_id],
        attended_count=len(attended),
        last_service_date=max((r.service_date for r in attended), default=None),
    )
