"""Read-time collapse of same-day bookings by one customer.

Customers sometimes hold several bookings for the same day (rebookings,
double submissions). For reporting, each customer/day can be reduced to a
single representative. The canonical history is left untouched.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, datetime

from booking_core.classification.attendance import effective_attendance
from booking_core.types import HistoryRecord

logger = logging.getLogger(__name__)


def _representative_rank(record: HistoryRecord) -> tuple[int, datetime, str]:
    # Attended first, then earliest submission; key keeps the choice stable
    return (
        0 if effective_attendance(record) else 1,
        record.submitted_at or datetime.max,
        record.key,
    )


def collapse_same_day(records: Iterable[HistoryRecord], enabled: bool) -> list[HistoryRecord]:
    """Collapse multiple bookings of one customer on one service day.

    Args:
        records: Records to collapse.
        enabled: When False, the records are returned unchanged.

    Returns:
        List with one record per (customer, service day). Groups keep the
        position of their first record in the input.

    Examples:
        >>> [r.key for r in collapse_same_day([early_cancelled, later_attended], True)]
        ['R-later']
    """
    records = list(records)
    if not enabled:
        return records

    groups: dict[tuple[str, date], list[HistoryRecord]] = {}
    for record in records:
        groups.setdefault((record.customer_id, record.service_date.date()), []).append(record)

    out = [min(group, key=_representative_rank) for group in groups.values()]
    dropped = len(records) - len(out)
    if dropped:
        logger.debug("Same-day collapse dropped %d of %d records", dropped, len(records))
    return out
