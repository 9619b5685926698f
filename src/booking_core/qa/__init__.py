"""Quality assurance for the canonical booking history.

This module provides the public API for running review checks on the
history (inconsistent statuses, unrecorded attendance, sequence gaps,
ungrouped same-day bookings).
"""

from booking_core.qa.api import (
    HistoryQAResult,
    detect_same_day_duplicates,
    detect_sequence_gaps,
    run_history_qa,
)

__all__ = [
    "HistoryQAResult",
    "detect_same_day_duplicates",
    "detect_sequence_gaps",
    "run_history_qa",
]
