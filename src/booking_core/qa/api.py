"""Public API for booking history QA.

This module runs review checks on the canonical history in memory,
without reading or writing any files. It flags records a person should
look at and sequence damage that only ``recompute_all`` can repair.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import numpy as np
import pandas as pd

from booking_core.classification.attendance import effective_attendance
from booking_core.marts.export import to_flat_frame
from booking_core.types import AttendanceStatus, BookingStatus, CustomerVisitCounter, HistoryRecord
from booking_core.utils import start_of_day

logger = logging.getLogger(__name__)


@dataclass
class HistoryQAResult:
    """Result of the history QA checks.

    Attributes:
        summary: Dictionary with summary statistics and counts.
        inconsistent: Cancelled bookings marked attended, or None if none found.
        unrecorded: Past bookings still booked but not attended, or None if
            none found.
        sequence_gaps: Customers whose attended sequences are not exactly
            1..N, or None if none found.
        same_day_duplicates: Customer/day pairs with several ungrouped
            bookings, or None if none found.
    """

    summary: dict
    inconsistent: pd.DataFrame | None
    unrecorded: pd.DataFrame | None
    sequence_gaps: pd.DataFrame | None
    same_day_duplicates: pd.DataFrame | None


def _frame_or_none(records: list[HistoryRecord]) -> Optional[pd.DataFrame]:
    if not records:
        return None
    return to_flat_frame(records)


def detect_sequence_gaps(
    history: Mapping[str, HistoryRecord],
    counters: Optional[Mapping[str, CustomerVisitCounter]] = None,
) -> Optional[pd.DataFrame]:
    """Find customers whose attended sequences are not a contiguous 1..N run.

    Also flags customers whose cached counter disagrees with the number of
    attended records.
    """
    by_customer: dict[str, list[Optional[int]]] = {}
    for record in history.values():
        if effective_attendance(record):
            by_customer.setdefault(record.customer_id, []).append(record.visit_sequence)

    rows = []
    for customer_id in sorted(set(by_customer) | set(counters or {})):
        seqs = by_customer.get(customer_id, [])
        values = np.sort(np.array([s if s is not None else 0 for s in seqs], dtype=int))
        expected = np.arange(1, len(values) + 1)
        counter = (counters or {}).get(customer_id)
        cached = counter.attended_count if counter is not None else None
        contiguous = np.array_equal(values, expected)
        if contiguous and (cached is None or cached == len(values)):
            continue
        rows.append(
            {
                "customer_id": customer_id,
                "attended_records": len(values),
                "sequences": ",".join(str(v) for v in values.tolist()),
                "missing": ",".join(str(v) for v in np.setdiff1d(expected, values).tolist()),
                "duplicated": ",".join(
                    str(v) for v in np.unique(values[np.where(np.diff(values) == 0)[0]]).tolist()
                ),
                "counter_attended_count": cached,
            }
        )

    if not rows:
        return None
    logger.warning("%d customer(s) need a recompute to repair visit sequences", len(rows))
    return pd.DataFrame(rows)


def detect_same_day_duplicates(history: Mapping[str, HistoryRecord]) -> Optional[pd.DataFrame]:
    """Customer/day pairs with more than one booking and no merge group."""
    df = pd.DataFrame(
        [
            {
                "customer_id": r.customer_id,
                "display_name": r.display_name,
                "service_day": r.service_date.strftime("%Y-%m-%d"),
                "key": r.key,
            }
            for r in history.values()
            if r.merge_group_id is None
        ],
        columns=["customer_id", "display_name", "service_day", "key"],
    )
    if df.empty:
        return None

    grouped = (
        df.groupby(["customer_id", "service_day"])
        .agg(
            display_name=("display_name", "last"),
            bookings=("key", "count"),
            keys=("key", lambda s: ",".join(sorted(s))),
        )
        .reset_index()
    )
    dupes = grouped[grouped["bookings"] > 1].reset_index(drop=True)
    return None if dupes.empty else dupes


def run_history_qa(
    history: Mapping[str, HistoryRecord],
    counters: Optional[Mapping[str, CustomerVisitCounter]] = None,
    as_of: Optional[datetime] = None,
) -> HistoryQAResult:
    """Run the review checks on the canonical history.

    This function:
    - does NOT read or write any files,
    - does NOT print (logging only).

    Args:
        history: Map from identity key to record.
        counters: Optional counters, checked against the attended records.
        as_of: Reference time for "past" bookings; defaults to now. Bookings
            serviced before the start of this day count as past.

    Returns:
        HistoryQAResult containing:
        - summary: dictionary with counts and flags
        - inconsistent: cancelled but attended bookings, or None
        - unrecorded: past bookings with no attendance recorded, or None
        - sequence_gaps: customers needing a recompute, or None
        - same_day_duplicates: ungrouped same-day bookings, or None
    """
    as_of = as_of or datetime.now()
    cutoff = start_of_day(as_of)
    records = list(history.values())
    logger.info("Running history QA for %d records", len(records))

    inconsistent = [
        r
        for r in records
        if r.booking_status == BookingStatus.CANCELLED and r.attendance_status == AttendanceStatus.ATTENDED
    ]
    unrecorded = [
        r
        for r in records
        if r.booking_status == BookingStatus.BOOKED
        and r.attendance_status == AttendanceStatus.NOT_ATTENDED
        and r.manual_attendance is None
        and not r.is_excluded
        and r.service_date < cutoff
    ]

    inconsistent_df = _frame_or_none(inconsistent)
    unrecorded_df = _frame_or_none(unrecorded)
    gaps_df = detect_sequence_gaps(history, counters)
    dupes_df = detect_same_day_duplicates(history)

    summary = {
        "total_records": len(records),
        "total_customers": len({r.customer_id for r in records}),
        "min_service_date": min(r.service_date for r in records).isoformat() if records else None,
        "max_service_date": max(r.service_date for r in records).isoformat() if records else None,
        "inconsistent_count": len(inconsistent),
        "unrecorded_count": len(unrecorded),
        "sequence_gap_customers": len(gaps_df) if gaps_df is not None else 0,
        "same_day_duplicate_count": len(dupes_df) if dupes_df is not None else 0,
        "needs_recompute": gaps_df is not None,
    }

    logger.info(
        "QA complete: %d inconsistent, %d unrecorded, %d sequence gaps, %d same-day duplicates",
        summary["inconsistent_count"],
        summary["unrecorded_count"],
        summary["sequence_gap_customers"],
        summary["same_day_duplicate_count"],
    )

    return HistoryQAResult(
        summary=summary,
        inconsistent=inconsistent_df,
        unrecorded=unrecorded_df,
        sequence_gaps=gaps_df,
        same_day_duplicates=dupes_df,
    )
