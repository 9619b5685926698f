"""Classification primitives.

Pure, total functions with no dependency on engine state:

- attendance: attendance predicate, aggregate counting rule, cancellation
  timing, visit labels
- staff: slot-text attribution to a roster name or the unassigned pool
"""

from booking_core.classification.attendance import (
    classify_cancel_timing,
    effective_attendance,
    is_attended,
    is_late_cancel,
    should_count_as_attended,
    visit_label_of,
)
from booking_core.classification.staff import (
    REMARK_PATTERNS,
    UNASSIGNED_POOL_PATTERNS,
    StaffClassification,
    StaffPattern,
    classify_staff_text,
    is_unassigned_pool_text,
    normalize_staff_name,
)

__all__ = [
    "REMARK_PATTERNS",
    "UNASSIGNED_POOL_PATTERNS",
    "StaffClassification",
    "StaffPattern",
    "classify_cancel_timing",
    "classify_staff_text",
    "effective_attendance",
    "is_attended",
    "is_late_cancel",
    "normalize_staff_name",
    "should_count_as_attended",
    "visit_label_of",
]
