"""Command-line entry point for the booking history pipeline.

Subcommands operate on a data root laid out by ``DataPaths``:

    booking-core merge data/imports/2024-12.csv
    booking-core recompute
    booking-core summary --grain staff --from 2024-12-01 --to 2024-12-31
    booking-core export
    booking-core qa
    booking-core exclude R-1001
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from booking_core.config import DataPaths, EngineConfig
from booking_core.exceptions import BookingAPIError
from booking_core.history import merge, recompute_all, set_excluded
from booking_core.ingest import read_export_csv, records_from_frame
from booking_core.marts import GRAINS, get_breakdown, get_summary, to_flat_frame, write_flat_csv
from booking_core.qa import run_history_qa
from booking_core.snapshot import dump_snapshot, load_snapshot
from booking_core.types import CampaignPeriod, DateAxis
from booking_core.utils import to_datetime

logger = logging.getLogger(__name__)


@dataclass
class Args:
    command: str
    data_root: Path
    config: Optional[Path]
    quiet: bool
    verbose: bool
    inputs: list[Path]
    grain: Optional[str]
    period_from: Optional[str]
    period_to: Optional[str]
    axis: str
    out: Optional[Path]
    key: Optional[str]
    restore: bool


def parse_args(argv: Optional[list[str]] = None) -> Args:
    p = argparse.ArgumentParser(description="Merge reservation exports and report attendance")
    p.add_argument("--data-root", type=Path, default=Path("data"), help="Data root (default: ./data)")
    p.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Engine config JSON (default: <data-root>/config.json, optional)",
    )
    p.add_argument("--quiet", action="store_true", help="Less logging")
    p.add_argument("--verbose", action="store_true", help="Debug logging")

    sub = p.add_subparsers(dest="command", required=True)

    m = sub.add_parser("merge", help="Merge one or more export CSVs into the history")
    m.add_argument("inputs", type=Path, nargs="+", help="Export CSV files")

    sub.add_parser("recompute", help="Rebuild all visit sequences and counters")

    s = sub.add_parser("summary", help="Print overall or grouped aggregates")
    s.add_argument("--grain", choices=GRAINS, default=None, help="Group by this grain")
    s.add_argument("--from", dest="period_from", default=None, help="Period start (YYYY-MM-DD)")
    s.add_argument("--to", dest="period_to", default=None, help="Period end (YYYY-MM-DD, inclusive)")
    s.add_argument(
        "--axis",
        choices=[a.value for a in DateAxis],
        default=DateAxis.SERVICE_DATE.value,
        help="Date the period applies to (default: service_date)",
    )
    s.add_argument("--out", type=Path, default=None, help="Write the grouped table to this CSV")

    e = sub.add_parser("export", help="Write the flat record CSV")
    e.add_argument("--out", type=Path, default=None, help="Output CSV (default: <data-root>/exports/)")

    sub.add_parser("qa", help="Run review checks on the history")

    x = sub.add_parser("exclude", help="Exclude a booking from aggregates")
    x.add_argument("key", help="Identity key of the booking")
    x.add_argument("--restore", action="store_true", help="Include the booking again")

    a = p.parse_args(argv)
    return Args(
        command=a.command,
        data_root=a.data_root,
        config=a.config,
        quiet=a.quiet,
        verbose=a.verbose,
        inputs=getattr(a, "inputs", []),
        grain=getattr(a, "grain", None),
        period_from=getattr(a, "period_from", None),
        period_to=getattr(a, "period_to", None),
        axis=getattr(a, "axis", DateAxis.SERVICE_DATE.value),
        out=getattr(a, "out", None),
        key=getattr(a, "key", None),
        restore=getattr(a, "restore", False),
    )


def _load_config(paths: DataPaths) -> EngineConfig:
    if not paths.config_json.exists():
        logger.info("No engine config at %s; using defaults", paths.config_json)
        return EngineConfig()
    return EngineConfig.from_json(paths.config_json)


def _period(args: Args) -> Optional[CampaignPeriod]:
    if not args.period_from and not args.period_to:
        return None
    start = to_datetime(args.period_from) if args.period_from else datetime.min
    end = to_datetime(args.period_to) if args.period_to else datetime.max
    if start is None or end is None:
        raise SystemExit("Invalid --from/--to date; expected YYYY-MM-DD")
    return CampaignPeriod(period_from=start, period_to=end, date_axis=DateAxis(args.axis))


def run(args: Args) -> None:
    paths = DataPaths.from_root(args.data_root, args.config or args.data_root / "config.json")
    paths.ensure_dirs()
    config = _load_config(paths)
    snapshot = load_snapshot(paths.snapshot_file)

    if args.command == "merge":
        history, counters = snapshot.history, snapshot.counters
        for csv_path in args.inputs:
            ingested = records_from_frame(read_export_csv(csv_path))
            result = merge(history, counters, ingested.records, roster=config.roster)
            history, counters = result.history, result.counters
            logger.info(
                "%s: %d rows merged, %d rows skipped at import, %d without identity",
                csv_path,
                len(ingested.records),
                ingested.skipped_rows,
                len(result.skipped),
            )
        dump_snapshot(history, counters, paths.snapshot_file, audit=snapshot.audit)

    elif args.command == "recompute":
        result = recompute_all(snapshot.history, snapshot.counters)
        dump_snapshot(result.history, result.counters, paths.snapshot_file, audit=snapshot.audit)

    elif args.command == "summary":
        period = _period(args)
        if args.grain is None:
            summary = get_summary(snapshot.history, config, period)
            for name, value in summary.to_dict().items():
                print(f"{name}: {value}")
        else:
            df = get_breakdown(snapshot.history, config, args.grain, period)
            if args.out:
                write_flat_csv(df, args.out)
            print(df.to_string(index=False))

    elif args.command == "export":
        out = args.out or paths.exports_dir / f"bookings_{datetime.now():%Y-%m-%d}.csv"
        write_flat_csv(to_flat_frame(snapshot.history.values()), out)

    elif args.command == "qa":
        result = run_history_qa(snapshot.history, snapshot.counters)
        for name, value in result.summary.items():
            print(f"{name}: {value}")

    elif args.command == "exclude":
        edit = set_excluded(snapshot.history, snapshot.counters, args.key, not args.restore)
        dump_snapshot(edit.history, edit.counters, paths.snapshot_file, audit=[*snapshot.audit, *edit.audit])


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)
    if args.verbose:
        level = logging.DEBUG
    else:
        level = logging.WARNING if args.quiet else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")

    try:
        run(args)
    except (BookingAPIError, FileNotFoundError) as e:
        raise SystemExit(f"Error: {e}") from e


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        sys.exit(130)
