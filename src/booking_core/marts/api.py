"""Public API for booking aggregates.

This module composes the read path: period filter, optional same-day
collapse, then the overall summary or a grouped mart.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Optional

import pandas as pd

from booking_core.history.collapse import collapse_same_day
from booking_core.marts.filters import filter_by_period
from booking_core.marts.grouped import (
    summarize_by_course,
    summarize_by_customer,
    summarize_by_day,
    summarize_by_month,
    summarize_by_staff,
)
from booking_core.marts.summary import AggregationSummary, summarize
from booking_core.types import CampaignPeriod, HistoryRecord

if TYPE_CHECKING:
    from booking_core.config import EngineConfig

logger = logging.getLogger(__name__)

GRAINS = ("day", "month", "staff", "course", "customer")


def _select(
    history: Mapping[str, HistoryRecord],
    config: EngineConfig,
    period: Optional[CampaignPeriod],
) -> list[HistoryRecord]:
    records = list(history.values())
    if period is not None:
        records = filter_by_period(records, period)
    return collapse_same_day(records, config.same_day_collapse)


def get_summary(
    history: Mapping[str, HistoryRecord],
    config: EngineConfig,
    period: Optional[CampaignPeriod] = None,
) -> AggregationSummary:
    """Overall counts and rates for the history, optionally within a period.

    Args:
        history: Map from identity key to record.
        config: Engine configuration (attendance rule, same-day collapse).
        period: Optional period filter.

    Returns:
        AggregationSummary.

    Examples:
        >>> from booking_core import EngineConfig
        >>> summary = get_summary(history, EngineConfig())
        >>> summary.attended
        42
    """
    records = _select(history, config, period)
    summary = summarize(records, config.attendance_rule)
    logger.info(
        "Summary over %d records: %d attended, %d cancelled (%.1f%%)",
        len(records),
        summary.attended,
        summary.cancelled,
        summary.attendance_rate,
    )
    return summary


def get_breakdown(
    history: Mapping[str, HistoryRecord],
    config: EngineConfig,
    grain: str = "day",
    period: Optional[CampaignPeriod] = None,
) -> pd.DataFrame:
    """Grouped mart at the requested grain.

    Args:
        history: Map from identity key to record.
        config: Engine configuration (attendance rule, same-day collapse,
            course order).
        grain: Grouping to return:
            - "day": one row per service day
            - "month": one row per service month
            - "staff": one row per resolved staff member
            - "course": one row per course, official courses first
            - "customer": one row per customer
        period: Optional period filter.

    Returns:
        DataFrame at the requested grain.

    Raises:
        ValueError: If grain is not one of ``GRAINS``.

    Examples:
        >>> df = get_breakdown(history, config, grain="staff")
    """
    if grain not in GRAINS:
        raise ValueError(f"Invalid grain '{grain}'. Must be one of {', '.join(GRAINS)}.")

    records = _select(history, config, period)
    rule = config.attendance_rule

    if grain == "day":
        return summarize_by_day(records, rule)
    elif grain == "month":
        return summarize_by_month(records, rule)
    elif grain == "staff":
        return summarize_by_staff(records, rule)
    elif grain == "course":
        return summarize_by_course(records, rule, config.courses)
    else:  # customer
        return summarize_by_customer(records, rule)
