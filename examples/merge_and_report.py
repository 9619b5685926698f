"""Example: Merge reservation exports and report attendance

This example demonstrates the typical monthly workflow:
1. Load the current history snapshot (empty on the first run)
2. Merge one or more reservation exports into it
3. Print the overall summary and the per-staff breakdown for a period

Prerequisites:
- Put reservation export CSVs under data/imports/
- Optionally create data/config.json with "roster", "courses",
  "attendance_rule" and "same_day_collapse"
"""

from datetime import datetime
from pathlib import Path

from booking_core import CampaignPeriod, DataPaths, DateAxis, EngineConfig, merge
from booking_core.ingest import read_export_csv, records_from_frame
from booking_core.marts import get_breakdown, get_summary
from booking_core.snapshot import dump_snapshot, load_snapshot

# Set up paths
data_root = Path("data")
paths = DataPaths.from_root(data_root, data_root / "config.json")
paths.ensure_dirs()

config = EngineConfig.from_json(paths.config_json) if paths.config_json.exists() else EngineConfig()
snapshot = load_snapshot(paths.snapshot_file)
history, counters = snapshot.history, snapshot.counters

# Merge every export in the imports folder, oldest file first
for csv_path in sorted(paths.imports_dir.glob("*.csv")):
    ingested = records_from_frame(read_export_csv(csv_path))
    for warning in ingested.warnings:
        print(f"  {csv_path.name}: {warning}")
    result = merge(history, counters, ingested.records, roster=config.roster)
    history, counters = result.history, result.counters
    print(f"Merged {csv_path.name}: {len(ingested.records)} rows, {len(result.skipped)} without identity")

dump_snapshot(history, counters, paths.snapshot_file, audit=snapshot.audit)

# Report on December service dates  # MODIFY AS NEEDED
period = CampaignPeriod(
    period_from=datetime(2024, 12, 1),
    period_to=datetime(2024, 12, 31),
    date_axis=DateAxis.SERVICE_DATE,
)

summary = get_summary(history, config, period)
print(f"\nBookings: {summary.total}")
print(f"Attended: {summary.attended} ({summary.attendance_rate}%)")
print(f"First visits: {summary.first_visit} ({summary.first_visit_rate}% of attended)")
print(f"Repeat visits: {summary.repeat_visit}")

by_staff = get_breakdown(history, config, grain="staff", period=period)
print("\nBy staff:")
print(by_staff[["staff", "total", "attended", "attendance_rate", "first_to_second_rate"]].to_string(index=False))
