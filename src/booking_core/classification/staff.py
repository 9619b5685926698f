"""Staff attribution from free-text reservation slot descriptions.

Reservation exports carry a free-text "slot" column. It usually holds a
staff member's name, but it may also say the booking is left to the office
to assign (the unassigned pool), or hold a remark with no name at all.
Names often carry a parenthetical note, and full-width characters are
common.

Classification order, first match wins:

1. Blank text: no staff, not pooled.
2. Any ``UNASSIGNED_POOL_PATTERNS`` match: no staff, pooled. This wins
   even when a roster name is also present, e.g.
   ``"Jane Doe (schedule may be adjusted)"``.
3. Any ``REMARK_PATTERNS`` match: no staff, not pooled.
4. Exact match of the normalized text against a normalized roster name.
5. Otherwise: no staff, not pooled.

The pattern lists are plain data so each entry can be audited and tested
on its own.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StaffPattern:
    """A named phrase pattern used by the slot classifier."""

    name: str
    regex: re.Pattern

    def matches(self, text: str) -> bool:
        return self.regex.search(text) is not None


def _pattern(name: str, expr: str) -> StaffPattern:
    return StaffPattern(name=name, regex=re.compile(expr, re.IGNORECASE))


# Phrases meaning "the office will assign someone" or "may be moved"
UNASSIGNED_POOL_PATTERNS: tuple[StaffPattern, ...] = (
    _pattern("office_assigns", r"事務局にお任せ"),
    _pattern("leave_to_us", r"お任せ"),
    _pattern("leave_to_us_kana", r"おまかせ"),
    _pattern("may_move_day", r"予約日により別日の調整を依頼する可能性があります"),
    _pattern("staff_may_change", r"担当者変更の可能性があります"),
    _pattern("date_may_change", r"日程が変更になる可能性があります"),
    _pattern("being_arranged", r"調整中"),
    _pattern("schedule_may_be_adjusted", r"schedule may be adjusted"),
    _pattern("staff_may_change_en", r"staff may change"),
    _pattern("assign_later", r"\bassign(ed)? later\b"),
    _pattern("to_be_arranged", r"\bto be (arranged|assigned|confirmed)\b"),
    _pattern("any_staff", r"\bany (available )?staff\b"),
    _pattern("no_preference", r"\bno preference\b"),
)

# Remarks that never name a staff member
REMARK_PATTERNS: tuple[StaffPattern, ...] = (
    _pattern("reference_mark", r"^※"),
    _pattern("time_change", r"時間変更"),
    _pattern("other_day_request", r"別日調整"),
    _pattern("note_prefix", r"^(note|memo)\s*:"),
    _pattern("time_change_en", r"\btime change\b"),
)

# Full-width letters and digits, folded to ASCII by code point offset
_FULLWIDTH_ALNUM_RE = re.compile(r"[Ａ-Ｚａ-ｚ０-９]")
_FULLWIDTH_OFFSET = 0xFEE0
_PAREN_TAIL_RE = re.compile(r"[（(].*", re.DOTALL)


@dataclass(frozen=True)
class StaffClassification:
    """Outcome of classifying one slot text.

    Attributes:
        resolved_staff: Roster name the text resolved to, or None.
        was_unassigned_pool: True when the text left assignment to the office.
    """

    resolved_staff: Optional[str] = None
    was_unassigned_pool: bool = False


def normalize_staff_name(text: str) -> str:
    """Normalize a slot text or roster name for exact comparison.

    Steps: trim, drop everything from the first opening parenthesis
    (half- or full-width), fold full-width letters, digits, period and
    space to their ASCII forms, trim again.

    Examples:
        >>> normalize_staff_name("  Ｊ．Ｋ（調整中） ")
        'J.K'
        >>> normalize_staff_name("Jane　Doe")
        'Jane Doe'
    """
    s = _PAREN_TAIL_RE.sub("", text.strip())
    s = _FULLWIDTH_ALNUM_RE.sub(lambda m: chr(ord(m.group(0)) - _FULLWIDTH_OFFSET), s)
    s = s.replace("．", ".").replace("　", " ")
    return s.strip()


def first_match(text: str, patterns: Iterable[StaffPattern]) -> Optional[StaffPattern]:
    """Return the first pattern that matches, or None."""
    for pattern in patterns:
        if pattern.matches(text):
            return pattern
    return None


def is_unassigned_pool_text(raw_text: Optional[str]) -> bool:
    """True when the slot text leaves assignment to the office."""
    if not raw_text or not raw_text.strip():
        return False
    return first_match(raw_text.strip(), UNASSIGNED_POOL_PATTERNS) is not None


def classify_staff_text(raw_text: Optional[str], roster: Sequence[str]) -> StaffClassification:
    """Resolve a slot text to a roster name or the unassigned pool.

    Args:
        raw_text: Free-text slot description from the export.
        roster: Ordered staff display names.

    Returns:
        StaffClassification. Unmatched text resolves to no staff, never
        an error.

    Examples:
        >>> classify_staff_text("Jane Doe (schedule may be adjusted)", ["Jane Doe"])
        StaffClassification(resolved_staff=None, was_unassigned_pool=True)
        >>> classify_staff_text("Ｊａｎｅ Ｄｏｅ", ["Jane Doe"])
        StaffClassification(resolved_staff='Jane Doe', was_unassigned_pool=False)
    """
    if not raw_text or not raw_text.strip():
        return StaffClassification()

    text = raw_text.strip()

    pooled = first_match(text, UNASSIGNED_POOL_PATTERNS)
    if pooled is not None:
        logger.debug("Slot text %r matched pool pattern '%s'", text, pooled.name)
        return StaffClassification(resolved_staff=None, was_unassigned_pool=True)

    remark = first_match(text, REMARK_PATTERNS)
    if remark is not None:
        logger.debug("Slot text %r matched remark pattern '%s'", text, remark.name)
        return StaffClassification()

    normalized = normalize_staff_name(text)
    for name in roster:
        if normalized == normalize_staff_name(name):
            return StaffClassification(resolved_staff=name, was_unassigned_pool=False)

    logger.debug("Slot text %r did not match any roster name", text)
    return StaffClassification()
