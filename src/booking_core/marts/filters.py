"""Date filters applied before aggregation.

Filters only look at dates. Exclusion and attendance overrides are
handled by the summary functions, never here.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Optional

from booking_core.types import CampaignPeriod, DateAxis, HistoryRecord
from booking_core.utils import end_of_day, start_of_day


def _axis_value(record: HistoryRecord, axis: DateAxis) -> Optional[datetime]:
    if axis == DateAxis.SERVICE_DATE:
        return record.service_date
    return record.submitted_at


def filter_by_period(records: Iterable[HistoryRecord], period: CampaignPeriod) -> list[HistoryRecord]:
    """Keep records whose date on ``period.date_axis`` falls in the period.

    The window is ``[period_from, end_of_day(period_to)]``. Records with no
    value on the axis are dropped.

    Examples:
        >>> period = CampaignPeriod(datetime(2024, 12, 1), datetime(2024, 12, 31), DateAxis.SERVICE_DATE)
        >>> len(filter_by_period(history.values(), period))
        12
    """
    start = period.period_from
    end = end_of_day(period.period_to)
    out = []
    for record in records:
        value = _axis_value(record, DateAxis(period.date_axis))
        if value is not None and start <= value <= end:
            out.append(record)
    return out


def filter_by_campaign(
    records: Iterable[HistoryRecord],
    campaigns: Iterable[CampaignPeriod],
    name: str,
) -> list[HistoryRecord]:
    """Filter by the campaign with the given name.

    Raises:
        ValueError: If no campaign has that name.
    """
    for campaign in campaigns:
        if campaign.name == name:
            return filter_by_period(records, campaign)
    raise ValueError(f"Unknown campaign '{name}'")


def month_period(month: str, axis: DateAxis = DateAxis.SERVICE_DATE) -> CampaignPeriod:
    """Period covering one calendar month given as ``YYYY-MM``.

    Raises:
        ValueError: If the month is not in ``YYYY-MM`` format.
    """
    try:
        first = datetime.strptime(month, "%Y-%m")
    except ValueError as e:
        raise ValueError(f"Invalid month '{month}'. Must be YYYY-MM.") from e
    if first.month == 12:
        next_first = first.replace(year=first.year + 1, month=1)
    else:
        next_first = first.replace(month=first.month + 1)
    last = start_of_day(datetime.fromordinal(next_first.toordinal() - 1))
    return CampaignPeriod(period_from=first, period_to=last, date_axis=axis, name=month)


def filter_by_month(
    records: Iterable[HistoryRecord],
    month: str,
    axis: DateAxis = DateAxis.SERVICE_DATE,
) -> list[HistoryRecord]:
    """Keep records of one calendar month (``YYYY-MM``) on the given axis."""
    return filter_by_period(records, month_period(month, axis))


def available_months(
    records: Iterable[HistoryRecord],
    axis: DateAxis = DateAxis.SERVICE_DATE,
) -> list[str]:
    """Months (``YYYY-MM``) present on the given axis, newest first."""
    months = set()
    for record in records:
        value = _axis_value(record, axis)
        if value is not None:
            months.add(value.strftime("%Y-%m"))
    return sorted(months, reverse=True)
