"""Example: Review the booking history and repair visit sequences

This example runs the QA checks on the saved history, rebuilds the visit
sequences when a gap is found, and groups one customer's same-day bookings.

Prerequisites:
- Run merge_and_report.py (or `booking-core merge`) at least once
"""

from pathlib import Path

from booking_core import DataPaths, recompute_all
from booking_core.history import group_same_day
from booking_core.qa import run_history_qa
from booking_core.snapshot import dump_snapshot, load_snapshot

paths = DataPaths.from_root(Path("data"), Path("data/config.json"))
snapshot = load_snapshot(paths.snapshot_file)
history, counters, audit = snapshot.history, snapshot.counters, list(snapshot.audit)

qa = run_history_qa(history, counters)
for name, value in qa.summary.items():
    print(f"{name}: {value}")

if qa.unrecorded is not None:
    print("\nPast bookings with no attendance recorded:")
    print(qa.unrecorded[["key", "display_name", "service_date"]].to_string(index=False))

# Demotions can leave gaps; a full rebuild repairs them
if qa.summary["needs_recompute"]:
    print("\nRecomputing visit sequences...")
    result = recompute_all(history, counters)
    history, counters = result.history, result.counters

# Keep only the first booking of each same-day duplicate in the aggregates
if qa.same_day_duplicates is not None:
    for keys in qa.same_day_duplicates["keys"]:
        members = keys.split(",")
        edit = group_same_day(history, counters, members, primary_key=members[0], changed_by="review-script")
        history, counters = edit.history, edit.counters
        audit.extend(edit.audit)
        print(f"Grouped {keys}")

dump_snapshot(history, counters, paths.snapshot_file, audit=audit)
