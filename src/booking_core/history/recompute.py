"""Full rebuild of visit sequences and customer counters.

``recompute_all`` is the reference for what the incremental merge should
produce. It is deterministic for any input order and always safe to
re-run, which makes it the repair path after demotions leave gaps in a
customer's sequence.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import replace
from datetime import datetime
from typing import Optional

from booking_core.classification.attendance import effective_attendance, visit_label_of
from booking_core.types import CustomerVisitCounter, HistoryRecord, RecomputeResult

logger = logging.getLogger(__name__)


def sequence_order(record: HistoryRecord) -> tuple[datetime, str]:
    """Sort key for sequencing: service date, then identity key."""
    return (record.service_date, record.key)


def assign_sequences(records: Iterable[HistoryRecord]) -> dict[str, HistoryRecord]:
    """Number the attended records of each customer 1..N in service-date order.

    Non-attended records get their sequence and label cleared. Records whose
    numbering is already right are returned unchanged (same object).

    Args:
        records: Any records, in any order, possibly of several customers.

    Returns:
        Map from identity key to the renumbered record.
    """
    running: dict[str, int] = {}
    out: dict[str, HistoryRecord] = {}
    for record in sorted(records, key=sequence_order):
        if effective_attendance(record):
            seq = running.get(record.customer_id, 0) + 1
            running[record.customer_id] = seq
            label = visit_label_of(seq)
        else:
            seq = None
            label = None
        if record.visit_sequence != seq or record.visit_label != label:
            record = replace(record, visit_sequence=seq, visit_label=label)
        out[record.key] = record
    return out


def recompute_all(
    history: Mapping[str, HistoryRecord],
    counters: Optional[Mapping[str, CustomerVisitCounter]] = None,
) -> RecomputeResult:
    """Rebuild every visit sequence and counter from the current field values.

    Attendance is the manual override when one is set, otherwise the
    field-derived value. Exclusion from aggregates does not affect
    sequencing.

    Args:
        history: Map from identity key to record.
        counters: Previous counters. Customers that only appear here are
            kept with a zero count, since counters are never deleted.

    Returns:
        RecomputeResult with new history and counter maps.

    Examples:
        >>> result = recompute_all(history)
        >>> result.counters["F1"].attended_count
        2
    """
    new_history = assign_sequences(history.values())

    new_counters: dict[str, CustomerVisitCounter] = {}
    for customer_id in (counters or {}):
        new_counters[customer_id] = CustomerVisitCounter(customer_id=customer_id)

    for record in sorted(new_history.values(), key=sequence_order):
        counter = new_counters.get(record.customer_id)
        if counter is None:
            counter = CustomerVisitCounter(customer_id=record.customer_id)
        if record.visit_sequence is not None:
            counter = replace(
                counter,
                attended_count=record.visit_sequence,
                last_service_date=record.service_date,
            )
        new_counters[record.customer_id] = counter

    changed = sum(1 for key, record in new_history.items() if record is not history[key])
    logger.info(
        "Recomputed %d records for %d customers (%d sequence changes)",
        len(new_history),
        len(new_counters),
        changed,
    )
    return RecomputeResult(history=new_history, counters=new_counters)
