"""Canonical booking history: merge, recompute, same-day collapse, edits.

- merge: incremental upsert of an import batch with counter maintenance
- recompute: deterministic full rebuild of sequences and counters
- collapse: read-time reduction of same-day bookings to one per customer
- edits: manual overrides with an audit trail
"""

from booking_core.history.collapse import collapse_same_day
from booking_core.history.edits import (
    AuditEntry,
    EditResult,
    assign_staff,
    group_same_day,
    set_excluded,
    set_manual_attendance,
    toggle_attendance,
    ungroup_same_day,
    update_detail_status,
)
from booking_core.history.identity import fallback_key, identity_key
from booking_core.history.merge import merge
from booking_core.history.recompute import recompute_all

__all__ = [
    "AuditEntry",
    "EditResult",
    "assign_staff",
    "collapse_same_day",
    "fallback_key",
    "group_same_day",
    "identity_key",
    "merge",
    "recompute_all",
    "set_excluded",
    "set_manual_attendance",
    "toggle_attendance",
    "ungroup_same_day",
    "update_detail_status",
]
