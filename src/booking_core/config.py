"""Configuration for Booking Core.

This module provides the filesystem layout used by the CLI and snapshot
helpers (DataPaths) and the engine settings read from a JSON file
(EngineConfig): the staff roster, the official course list, the attendance
rule and whether same-day bookings are collapsed.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from booking_core.exceptions import ConfigError
from booking_core.types import AttendanceRule

logger = logging.getLogger(__name__)


@dataclass
class DataPaths:
    """All filesystem paths used by the booking pipelines.

    Attributes:
        data_root: Root directory for imports, history and exports.
        config_json: Path to the engine configuration JSON file.

    Directory Structure:
        data_root/
        ├── imports/         # raw reservation exports (CSV)
        ├── history/         # canonical history snapshot
        │   └── snapshot.json
        └── exports/         # flat record CSVs and aggregate tables
    """

    data_root: Path
    config_json: Path

    @classmethod
    def from_root(
        cls,
        data_root: str | Path,
        config_json: str | Path,
    ) -> DataPaths:
        """Create DataPaths from root directory and configuration file.

        Args:
            data_root: Root directory for booking data.
            config_json: Path to the engine configuration JSON.

        Returns:
            DataPaths instance.

        Examples:
            >>> paths = DataPaths.from_root("data", "config/booking.json")
            >>> paths.snapshot_file
            PosixPath('data/history/snapshot.json')
        """
        if isinstance(data_root, str):
            data_root = Path(data_root)
        if isinstance(config_json, str):
            config_json = Path(config_json)

        return cls(data_root=data_root, config_json=config_json)

    @property
    def imports_dir(self) -> Path:
        """Raw reservation exports."""
        return self.data_root / "imports"

    @property
    def history_dir(self) -> Path:
        """Canonical history snapshots."""
        return self.data_root / "history"

    @property
    def snapshot_file(self) -> Path:
        """Current canonical history snapshot."""
        return self.history_dir / "snapshot.json"

    @property
    def exports_dir(self) -> Path:
        """Flat record CSVs and aggregate tables."""
        return self.data_root / "exports"

    def ensure_dirs(self) -> None:
        """Create all directories in the data structure."""
        for path in [self.imports_dir, self.history_dir, self.exports_dir]:
            path.mkdir(parents=True, exist_ok=True)


@dataclass
class EngineConfig:
    """Settings consumed by the merge engine and the aggregates.

    Attributes:
        roster: Ordered staff display names used to resolve slot text.
        courses: Official course names, in display order.
        attendance_rule: How late cancellations are counted.
        same_day_collapse: Collapse same-day bookings of one customer
            before aggregating.
    """

    roster: tuple[str, ...] = ()
    courses: tuple[str, ...] = ()
    attendance_rule: AttendanceRule = AttendanceRule.INCLUDE_LATE_CANCEL
    same_day_collapse: bool = False
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EngineConfig:
        """Build a config from a parsed JSON object.

        Unknown keys are kept in ``extra`` so collaborators can read their
        own settings from the same file.

        Raises:
            ConfigError: If a value has the wrong type or the rule is unknown.
        """
        if not isinstance(data, dict):
            raise ConfigError(f"Engine config must be a JSON object, got {type(data).__name__}")

        roster = data.get("roster", [])
        courses = data.get("courses", [])
        for name, value in (("roster", roster), ("courses", courses)):
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ConfigError(f"'{name}' must be a list of strings")

        try:
            rule = AttendanceRule.parse(data.get("attendance_rule", AttendanceRule.INCLUDE_LATE_CANCEL))
        except ValueError as e:
            raise ConfigError(str(e)) from e

        collapse = data.get("same_day_collapse", False)
        if not isinstance(collapse, bool):
            raise ConfigError("'same_day_collapse' must be true or false")

        known = {"roster", "courses", "attendance_rule", "same_day_collapse"}
        return cls(
            roster=tuple(n.strip() for n in roster if n.strip()),
            courses=tuple(c.strip() for c in courses if c.strip()),
            attendance_rule=rule,
            same_day_collapse=collapse,
            extra={k: v for k, v in data.items() if k not in known},
        )

    @classmethod
    def from_json(cls, path: str | Path) -> EngineConfig:
        """Load the engine configuration from a JSON file.

        Args:
            path: Path to the JSON file.

        Returns:
            EngineConfig instance.

        Raises:
            ConfigError: If the file is missing, is not valid JSON, or holds
                invalid values.

        Examples:
            >>> config = EngineConfig.from_json("config/booking.json")
            >>> config.attendance_rule
            <AttendanceRule.INCLUDE_LATE_CANCEL: 'include_late_cancel'>
        """
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Engine config not found: {path}")

        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}") from e

        config = cls.from_dict(data)
        logger.debug(
            "Loaded engine config from %s: %d staff, %d courses, rule=%s",
            path,
            len(config.roster),
            len(config.courses),
            config.attendance_rule.value,
        )
        return config
