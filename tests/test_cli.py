"""End-to-end tests for the command-line entry point."""

import json

import pytest

from booking_core.cli import main, parse_args
from booking_core.snapshot import load_snapshot

EXPORT = (
    "予約ID,友だちID,名前,予約日,申込日時,ステータス,来店/来場,詳細ステータス,予約枠\n"
    "R-1,F1,山田,2024/12/01 10:00,2024/11/20 12:00,予約済み,済み,,Jane Doe\n"
    "R-2,F1,山田,2024/12/08 10:00,2024/11/25 12:00,予約済み,済み,,おまかせ\n"
    "R-3,F2,佐藤,2024/12/05 10:00,2024/12/04 21:00,キャンセル済み,なし,前日キャンセル,\n"
)


@pytest.fixture
def data_root(tmp_path):
    root = tmp_path / "data"
    root.mkdir()
    (root / "config.json").write_text(
        json.dumps({"roster": ["Jane Doe"], "attendance_rule": "strict"}),
        encoding="utf-8",
    )
    export = tmp_path / "export.csv"
    export.write_text(EXPORT, encoding="utf-8-sig")
    main(["--data-root", str(root), "--quiet", "merge", str(export)])
    return root


def test_parse_args_defaults() -> None:
    args = parse_args(["summary"])
    assert args.command == "summary"
    assert args.grain is None
    assert args.axis == "service_date"
    assert args.inputs == []


def test_merge_writes_snapshot(data_root) -> None:
    snapshot = load_snapshot(data_root / "history" / "snapshot.json")

    assert set(snapshot.history) == {"R-1", "R-2", "R-3"}
    assert snapshot.history["R-1"].resolved_staff == "Jane Doe"
    assert snapshot.history["R-2"].was_unassigned_pool is True
    assert snapshot.history["R-3"].visit_sequence == 1
    assert snapshot.counters["F1"].attended_count == 2


def test_summary_uses_config_rule(data_root, capsys) -> None:
    """The strict rule from config.json does not count the late cancel."""
    main(["--data-root", str(data_root), "--quiet", "summary"])
    out = capsys.readouterr().out

    assert "total: 3" in out
    assert "attended: 2" in out
    assert "previous_day_cancel: 1" in out


def test_summary_grain_to_csv(data_root, tmp_path) -> None:
    out = tmp_path / "staff.csv"
    main(["--data-root", str(data_root), "--quiet", "summary", "--grain", "staff", "--out", str(out)])
    assert out.exists()
    assert "Jane Doe" in out.read_text(encoding="utf-8-sig")


def test_exclude_and_restore(data_root) -> None:
    snapshot_file = data_root / "history" / "snapshot.json"

    main(["--data-root", str(data_root), "--quiet", "exclude", "R-1"])
    snapshot = load_snapshot(snapshot_file)
    assert snapshot.history["R-1"].is_excluded is True
    assert len(snapshot.audit) == 1

    main(["--data-root", str(data_root), "--quiet", "exclude", "R-1", "--restore"])
    snapshot = load_snapshot(snapshot_file)
    assert snapshot.history["R-1"].is_excluded is False
    assert len(snapshot.audit) == 2


def test_exclude_unknown_key_exits(data_root) -> None:
    with pytest.raises(SystemExit, match="No booking with identity key"):
        main(["--data-root", str(data_root), "--quiet", "exclude", "R-404"])


def test_export_and_qa(data_root, tmp_path, capsys) -> None:
    out = tmp_path / "records.csv"
    main(["--data-root", str(data_root), "--quiet", "export", "--out", str(out)])
    assert out.read_text(encoding="utf-8-sig").startswith("key,booking_id")

    main(["--data-root", str(data_root), "--quiet", "qa"])
    assert "total_records: 3" in capsys.readouterr().out


def test_missing_input_exits(data_root, tmp_path) -> None:
    with pytest.raises(SystemExit, match="Export not found"):
        main(["--data-root", str(data_root), "--quiet", "merge", str(tmp_path / "nope.csv")])
