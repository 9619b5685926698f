"""Shared helpers for text cleaning, date handling and rates.

Key utilities:
- Text: strip invisible characters, blank detection, formula-injection guard
- Dates: multi-format parsing, day boundaries, export formatting
- Rates: percentages rounded half-up to one decimal

Examples:
    >>> to_datetime("2024/12/05 10:30")
    datetime.datetime(2024, 12, 5, 10, 30)
    >>> percent(1, 3)
    33.3
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

import numpy as np
import pandas as pd

# Unicode characters that should be stripped from text
NBSP = "\u00a0"  # Non-breaking space
NNBSP = "\u202f"  # Narrow non-breaking space
ZW = "".join(chr(c) for c in (0x200B, 0x200C, 0x200D, 0xFEFF))  # Zero-width characters

# Prefixes that could trigger formula injection in spreadsheets
DANGEROUS_PREFIXES = ("=", "+", "@", "-", "\t", "\r")

# Formats seen in reservation exports, tried in order before pandas inference
DATETIME_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d",
    "%Y年%m月%d日 %H:%M",
    "%Y年%m月%d日",
)

_ONE_DECIMAL = Decimal("0.1")


def strip_invisibles(x: Any) -> Optional[str]:
    """Remove invisible and problematic whitespace characters from text.

    Args:
        x: Value to clean (string, number, or None).

    Returns:
        Cleaned string or None if input is None/NaN.

    Examples:
        >>> strip_invisibles("  Jane Doe  ")
        'Jane Doe'
    """
    if x is None or (isinstance(x, float) and pd.isna(x)):
        return None
    s = str(x)
    s = s.replace("\r", "").replace("\t", " ").replace(NBSP, " ").replace(NNBSP, " ")
    s = re.sub(r"[%s]" % re.escape(ZW), "", s)
    s = re.sub(r"[ ]+", " ", s).strip()
    return s


def is_blank(x: Any) -> bool:
    """True for None, NaN and strings that are empty after cleaning."""
    s = strip_invisibles(x)
    return s is None or s == ""


def neutralize(text: Any) -> Any:
    """Prevent formula injection by prefixing dangerous characters.

    Examples:
        >>> neutralize("=SUM(A1:A10)")
        "'=SUM(A1:A10)"
        >>> neutralize("Jane")
        'Jane'
    """
    if text is None or (isinstance(text, float) and pd.isna(text)):
        return text
    s = str(text)
    return "'" + s if s.startswith(DANGEROUS_PREFIXES) else s


def to_datetime(val: Any) -> Optional[datetime]:
    """Parse a timestamp from the formats used by reservation exports.

    Args:
        val: String, datetime, Timestamp, datetime64 or None.

    Returns:
        Naive ``datetime`` or None if the value is blank or unparseable.

    Examples:
        >>> to_datetime("2024-12-05")
        datetime.datetime(2024, 12, 5, 0, 0)
        >>> to_datetime("not a date") is None
        True
    """
    if val is None or (isinstance(val, float) and pd.isna(val)):
        return None
    if isinstance(val, (pd.Timestamp, np.datetime64)):
        ts = pd.to_datetime(val, errors="coerce")
        return None if pd.isna(ts) else ts.to_pydatetime()
    if isinstance(val, datetime):
        return val
    if isinstance(val, date):
        return datetime(val.year, val.month, val.day)

    s = strip_invisibles(val)
    if not s:
        return None
    for fmt in DATETIME_FORMATS:
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            pass
    ts = pd.to_datetime(s, errors="coerce")
    return None if pd.isna(ts) else ts.to_pydatetime()


def start_of_day(dt: datetime) -> datetime:
    """Midnight of the given day."""
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(dt: datetime) -> datetime:
    """Last representable instant of the given day."""
    return dt.replace(hour=23, minute=59, second=59, microsecond=999999)


def format_date(dt: Optional[datetime]) -> str:
    """Format as ``YYYY-MM-DD``; empty string for None."""
    return dt.strftime("%Y-%m-%d") if dt is not None else ""


def format_datetime(dt: Optional[datetime]) -> str:
    """Format as ``YYYY-MM-DD HH:MM``; empty string for None."""
    return dt.strftime("%Y-%m-%d %H:%M") if dt is not None else ""


def percent(numerator: int, denominator: int) -> float:
    """Percentage rounded half-up at the tenths digit.

    Returns 0.0 when the denominator is zero.

    Examples:
        >>> percent(1, 8)
        12.5
        >>> percent(1, 16)
        6.3
    """
    if not denominator:
        return 0.0
    value = Decimal(int(numerator)) * 100 / Decimal(int(denominator))
    return float(value.quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP))
