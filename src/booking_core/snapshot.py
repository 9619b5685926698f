"""JSON snapshots of the canonical history.

A snapshot holds the history map, the counter map and the audit trail of
manual edits, with a format version so older files can be detected.
Timestamps are stored as ISO strings and enums as their values.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from booking_core.exceptions import DataQualityError
from booking_core.history.edits import AuditEntry
from booking_core.types import (
    AttendanceStatus,
    BookingStatus,
    CustomerVisitCounter,
    HistoryRecord,
    VisitLabel,
)

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1

_DATETIME_FIELDS = {
    "service_date",
    "submitted_at",
    "created_at",
    "updated_at",
    "last_service_date",
    "changed_at",
}
_ENUM_FIELDS = {
    "booking_status": BookingStatus,
    "attendance_status": AttendanceStatus,
    "visit_label": VisitLabel,
}


@dataclass
class Snapshot:
    """Everything the caller persists between engine calls."""

    history: dict[str, HistoryRecord] = field(default_factory=dict)
    counters: dict[str, CustomerVisitCounter] = field(default_factory=dict)
    audit: list[AuditEntry] = field(default_factory=list)
    exported_at: Optional[datetime] = None


def _encode(obj: Any) -> dict[str, Any]:
    out = {}
    for name, value in asdict(obj).items():
        if isinstance(value, datetime):
            value = value.isoformat()
        elif hasattr(value, "value") and name in _ENUM_FIELDS:
            value = value.value
        out[name] = value
    return out


def _decode(cls, data: dict[str, Any]):
    known = {f.name for f in fields(cls)}
    kwargs = {}
    for name, value in data.items():
        if name not in known:
            continue
        if value is not None and name in _DATETIME_FIELDS:
            value = datetime.fromisoformat(value)
        elif value is not None and name in _ENUM_FIELDS:
            value = _ENUM_FIELDS[name](value)
        kwargs[name] = value
    return cls(**kwargs)


def dump_snapshot(
    history: Mapping[str, HistoryRecord],
    counters: Mapping[str, CustomerVisitCounter],
    path: str | Path,
    audit: Iterable[AuditEntry] = (),
    now: Optional[datetime] = None,
) -> Path:
    """Write history, counters and audit trail to a JSON file.

    Args:
        history: Map from identity key to record.
        counters: Map from customer id to visit counter.
        path: Destination file. Parent directories are created.
        audit: Audit entries to keep with the snapshot.
        now: Export timestamp; defaults to the current time.

    Returns:
        The written path.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "version": SNAPSHOT_VERSION,
        "exported_at": (now or datetime.now()).isoformat(),
        "history": [_encode(r) for r in sorted(history.values(), key=lambda r: r.key)],
        "counters": [_encode(c) for c in sorted(counters.values(), key=lambda c: c.customer_id)],
        "audit": [_encode(a) for a in audit],
    }
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    logger.info("Wrote snapshot %s (%d records, %d counters)", path, len(history), len(counters))
    return path


def load_snapshot(path: str | Path) -> Snapshot:
    """Read a snapshot written by ``dump_snapshot``.

    A missing file yields an empty snapshot, so the first import can start
    from nothing.

    Raises:
        DataQualityError: If the file is not valid JSON or has an
            unsupported version or layout.
    """
    path = Path(path)
    if not path.exists():
        logger.info("No snapshot at %s; starting from an empty history", path)
        return Snapshot()

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise DataQualityError(f"Invalid snapshot JSON in {path}: {e}") from e

    version = payload.get("version") if isinstance(payload, dict) else None
    if version != SNAPSHOT_VERSION:
        raise DataQualityError(f"Unsupported snapshot version {version!r} in {path}")

    try:
        records = [_decode(HistoryRecord, r) for r in payload.get("history", [])]
        counters = [_decode(CustomerVisitCounter, c) for c in payload.get("counters", [])]
        audit = [_decode(AuditEntry, a) for a in payload.get("audit", [])]
    except (TypeError, ValueError) as e:
        raise DataQualityError(f"Malformed snapshot {path}: {e}") from e

    exported_at = payload.get("exported_at")
    snapshot = Snapshot(
        history={r.key: r for r in records},
        counters={c.customer_id: c for c in counters},
        audit=audit,
        exported_at=datetime.fromisoformat(exported_at) if exported_at else None,
    )
    logger.debug("Loaded snapshot %s (%d records)", path, len(snapshot.history))
    return snapshot
