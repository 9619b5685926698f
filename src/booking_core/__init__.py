"""Booking Core - reservation history merge, visit sequencing and attendance marts.

This package keeps one canonical record per booking across repeated,
overlapping reservation exports, numbers each customer's attended visits,
and derives attendance aggregates from that history:

- **Import**: map exports to input records (Japanese or English headers)
- **History**: idempotent merge, full recompute, manual edits with audit
- **Marts**: period filters, summaries and grouped tables

Module Structure:
    booking_core.classification: Attendance, cancel timing, staff attribution
    booking_core.history: merge, recompute_all, collapse_same_day, edits
    booking_core.marts: Filters, summarize, grouped marts, flat export
    booking_core.ingest: Export column mapping and validation
    booking_core.qa: Review checks on the history
    booking_core.snapshot: JSON snapshots of history and counters
    booking_core.config: DataPaths and EngineConfig

Quick Start:
    >>> from booking_core import EngineConfig, merge, recompute_all
    >>> from booking_core.ingest import read_export_csv, records_from_frame
    >>> from booking_core.marts import get_breakdown, get_summary
    >>>
    >>> config = EngineConfig.from_json("data/config.json")
    >>> batch = records_from_frame(read_export_csv("data/imports/2024-12.csv")).records
    >>>
    >>> # Merge into an empty history
    >>> result = merge({}, {}, batch, roster=config.roster)
    >>>
    >>> # Overall and per-staff aggregates
    >>> summary = get_summary(result.history, config)
    >>> by_staff = get_breakdown(result.history, config, grain="staff")
"""

__version__ = "0.1.0"

from booking_core.config import DataPaths, EngineConfig
from booking_core.exceptions import (
    BookingAPIError,
    ConfigError,
    DataQualityError,
    EditError,
    RecordNotFoundError,
)
from booking_core.history import collapse_same_day, merge, recompute_all
from booking_core.types import (
    AttendanceRule,
    AttendanceStatus,
    BookingStatus,
    CampaignPeriod,
    CancelTiming,
    CustomerVisitCounter,
    DateAxis,
    HistoryRecord,
    InputRecord,
    MergeResult,
    RecomputeResult,
    SkippedRecord,
    VisitLabel,
)

__all__ = [
    "AttendanceRule",
    "AttendanceStatus",
    "BookingAPIError",
    "BookingStatus",
    "CampaignPeriod",
    "CancelTiming",
    "ConfigError",
    "CustomerVisitCounter",
    "DataPaths",
    "DataQualityError",
    "DateAxis",
    "EditError",
    "EngineConfig",
    "HistoryRecord",
    "InputRecord",
    "MergeResult",
    "RecomputeResult",
    "RecordNotFoundError",
    "SkippedRecord",
    "VisitLabel",
    "__version__",
    "collapse_same_day",
    "merge",
    "recompute_all",
]
