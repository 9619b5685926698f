"""Aggregation layer: period filters, summaries, grouped marts and exports."""

from booking_core.marts.api import GRAINS, get_breakdown, get_summary
from booking_core.marts.export import to_flat_frame, write_flat_csv
from booking_core.marts.filters import (
    available_months,
    filter_by_campaign,
    filter_by_month,
    filter_by_period,
    month_period,
)
from booking_core.marts.grouped import (
    summarize_by_course,
    summarize_by_customer,
    summarize_by_day,
    summarize_by_month,
    summarize_by_staff,
)
from booking_core.marts.summary import AggregationSummary, RecordFlags, record_flags, summarize

__all__ = [
    "GRAINS",
    "AggregationSummary",
    "RecordFlags",
    "available_months",
    "filter_by_campaign",
    "filter_by_month",
    "filter_by_period",
    "get_breakdown",
    "get_summary",
    "month_period",
    "record_flags",
    "summarize",
    "summarize_by_course",
    "summarize_by_customer",
    "summarize_by_day",
    "summarize_by_month",
    "summarize_by_staff",
    "to_flat_frame",
    "write_flat_csv",
]
