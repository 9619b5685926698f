"""Identity keys for upserting booking records across imports."""

from __future__ import annotations

from typing import Optional

from booking_core.types import InputRecord
from booking_core.utils import format_date, strip_invisibles

# Prefix of keys built from fallback components
FALLBACK_PREFIX = "fb:"


def fallback_key(customer_id: Optional[str], service_date, submitted_raw: Optional[str]) -> Optional[str]:
    """Build the fallback identity key, or None if a component is missing.

    The key is ``fb:{customer_id}_{YYYY-MM-DD}_{submitted_raw}``. The raw
    submission text is used as exported so re-exports of the same row map
    to the same key.

    Examples:
        >>> from datetime import datetime
        >>> fallback_key("F1", datetime(2024, 12, 5, 10), "2024/11/30 09:12")
        'fb:F1_2024-12-05_2024/11/30 09:12'
    """
    customer = strip_invisibles(customer_id)
    raw = strip_invisibles(submitted_raw)
    if not customer or not raw or service_date is None:
        return None
    return f"{FALLBACK_PREFIX}{customer}_{format_date(service_date)}_{raw}"


def identity_key(record: InputRecord) -> Optional[str]:
    """Identity key of an input record.

    The booking id when it is non-blank, otherwise the fallback key.
    Returns None when neither can be built.
    """
    booking_id = strip_invisibles(record.booking_id)
    if booking_id:
        return booking_id
    return fallback_key(record.customer_id, record.service_date, record.submitted_raw)
