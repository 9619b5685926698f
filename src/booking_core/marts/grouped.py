"""Grouped marts: summaries by day, month, staff, course and customer.

Every mart is built from the same per-record flags as ``summarize``
(``record_flags``), laid out as a flags frame and aggregated with a pandas
groupby. Excluded records are dropped before grouping, so a group that
only holds excluded records does not appear.

Output columns shared by all marts:
    total, attended, cancelled, first_visit, second_visit, third_plus_visit,
    repeat_visit, previous_day_cancel, same_day_cancel, pool_assigned,
    grouped, unique_customers, attendance_rate, first_visit_rate,
    first_to_second_rate

Rates are percentages (floats) rounded half-up to one decimal.
``first_to_second_rate`` is the share of customers with a first visit in
the group who also have a second visit in the group.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import asdict

import pandas as pd

from booking_core.marts.summary import FLAG_COLUMNS, record_flags
from booking_core.types import AttendanceRule, DateAxis, HistoryRecord
from booking_core.utils import format_date, percent

logger = logging.getLogger(__name__)

# Group labels for records without staff or course
UNASSIGNED_STAFF = "(unassigned)"
NO_COURSE = "(no course)"

KEY_COLUMNS = [
    "key",
    "customer_id",
    "display_name",
    "service_date",
    "submitted_at",
    "day",
    "month",
    "staff",
    "course",
]
RATE_COLUMNS = ["attendance_rate", "first_visit_rate", "first_to_second_rate"]


def flags_frame(
    records: Iterable[HistoryRecord],
    rule: AttendanceRule = AttendanceRule.INCLUDE_LATE_CANCEL,
    date_axis: DateAxis = DateAxis.SERVICE_DATE,
) -> pd.DataFrame:
    """One row per record with its grouping keys and counting flags.

    ``day`` and ``month`` are taken from ``date_axis``; records with no
    value on that axis get empty strings.
    """
    rows = []
    for record in records:
        when = record.service_date if date_axis == DateAxis.SERVICE_DATE else record.submitted_at
        row = {
            "key": record.key,
            "customer_id": record.customer_id,
            "display_name": record.display_name,
            "service_date": record.service_date,
            "submitted_at": record.submitted_at,
            "day": format_date(when),
            "month": when.strftime("%Y-%m") if when is not None else "",
            "staff": record.resolved_staff or UNASSIGNED_STAFF,
            "course": record.course or NO_COURSE,
        }
        row.update(asdict(record_flags(record, rule)))
        rows.append(row)
    return pd.DataFrame(rows, columns=KEY_COLUMNS + list(FLAG_COLUMNS))


def _empty(by: str, extra: Sequence[str] = ()) -> pd.DataFrame:
    return pd.DataFrame(columns=[by, *extra, *FLAG_COLUMNS, "unique_customers", *RATE_COLUMNS])


def _aggregate(df: pd.DataFrame, by: str) -> pd.DataFrame:
    """Sum flags per group and derive customer counts and rates."""
    active = df[df["total"] == 1]
    if active.empty:
        return _empty(by)

    out = active.groupby(by, sort=False)[list(FLAG_COLUMNS)].sum()
    out["unique_customers"] = active.groupby(by, sort=False)["customer_id"].nunique()

    first_users = active[active["first_visit"] == 1].groupby(by)["customer_id"].nunique()
    second_users = active[active["second_visit"] == 1].groupby(by)["customer_id"].nunique()
    first_users = first_users.reindex(out.index, fill_value=0)
    second_users = second_users.reindex(out.index, fill_value=0)

    out["attendance_rate"] = [percent(a, t) for a, t in zip(out["attended"], out["total"])]
    out["first_visit_rate"] = [percent(f, a) for f, a in zip(out["first_visit"], out["attended"])]
    out["first_to_second_rate"] = [percent(s, f) for s, f in zip(second_users, first_users)]

    return out.reset_index()


def summarize_by_day(
    records: Iterable[HistoryRecord],
    rule: AttendanceRule = AttendanceRule.INCLUDE_LATE_CANCEL,
    date_axis: DateAxis = DateAxis.SERVICE_DATE,
) -> pd.DataFrame:
    """Mart with one row per calendar day (``YYYY-MM-DD``), ascending."""
    out = _aggregate(flags_frame(records, rule, date_axis), "day")
    return out.sort_values("day", kind="stable").reset_index(drop=True)


def summarize_by_month(
    records: Iterable[HistoryRecord],
    rule: AttendanceRule = AttendanceRule.INCLUDE_LATE_CANCEL,
    date_axis: DateAxis = DateAxis.SERVICE_DATE,
) -> pd.DataFrame:
    """Mart with one row per calendar month (``YYYY-MM``), ascending."""
    out = _aggregate(flags_frame(records, rule, date_axis), "month")
    return out.sort_values("month", kind="stable").reset_index(drop=True)


def summarize_by_staff(
    records: Iterable[HistoryRecord],
    rule: AttendanceRule = AttendanceRule.INCLUDE_LATE_CANCEL,
) -> pd.DataFrame:
    """Mart with one row per resolved staff member.

    Records without staff are grouped under ``UNASSIGNED_STAFF``. Rows are
    ordered by attended visits, most first, then by name.
    """
    out = _aggregate(flags_frame(records, rule), "staff")
    return out.sort_values(["attended", "staff"], ascending=[False, True], kind="stable").reset_index(drop=True)


def summarize_by_course(
    records: Iterable[HistoryRecord],
    rule: AttendanceRule = AttendanceRule.INCLUDE_LATE_CANCEL,
    courses: Sequence[str] = (),
) -> pd.DataFrame:
    """Mart with one row per course.

    Official ``courses`` come first, in the given order, with zero rows for
    courses that had no bookings. Other course labels follow, most
    attended first. Records without a course are grouped under
    ``NO_COURSE``.
    """
    out = _aggregate(flags_frame(records, rule), "course")

    present = set(out["course"])
    missing = [c for c in courses if c not in present]
    if missing:
        zero_row = {**dict.fromkeys(out.columns, 0), **dict.fromkeys(RATE_COLUMNS, 0.0)}
        zeros = pd.DataFrame([{**zero_row, "course": name} for name in missing], columns=out.columns)
        out = pd.concat([out, zeros], ignore_index=True) if not out.empty else zeros

    order = {name: i for i, name in enumerate(courses)}
    out["_official"] = out["course"].map(lambda c: order.get(c, len(order)))
    out = out.sort_values(["_official", "attended", "course"], ascending=[True, False, True], kind="stable")
    return out.drop(columns="_official").reset_index(drop=True)


def summarize_by_customer(
    records: Iterable[HistoryRecord],
    rule: AttendanceRule = AttendanceRule.INCLUDE_LATE_CANCEL,
) -> pd.DataFrame:
    """Mart with one row per customer.

    Adds ``display_name`` (latest seen), ``first_service_date`` and
    ``last_service_date``. Rows are ordered by attended visits, most first,
    then by customer id.
    """
    df = flags_frame(records, rule)
    out = _aggregate(df, "customer_id")
    if out.empty:
        return _empty("customer_id", ["display_name", "first_service_date", "last_service_date"])

    active = df[df["total"] == 1].sort_values("service_date", kind="stable")
    info = active.groupby("customer_id").agg(
        display_name=("display_name", "last"),
        first_service_date=("service_date", "min"),
        last_service_date=("service_date", "max"),
    )
    out = out.merge(info, left_on="customer_id", right_index=True, how="left")
    front = ["customer_id", "display_name", "first_service_date", "last_service_date"]
    out = out[front + [c for c in out.columns if c not in front]]

    logger.debug("Customer mart: %d customers", len(out))
    return out.sort_values(["attended", "customer_id"], ascending=[False, True], kind="stable").reset_index(
        drop=True
    )
