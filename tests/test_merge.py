"""Tests for the incremental merge engine."""

from dataclasses import replace
from datetime import datetime

from booking_core.history import merge, recompute_all
from booking_core.types import MISSING_IDENTITY, VisitLabel


def _seqs(history) -> dict:
    return {key: record.visit_sequence for key, record in history.items()}


class TestFirstImport:
    """Merging into an empty history."""

    def test_creates_record_and_counter(self, make_input, now) -> None:
        """A first attended booking gets sequence 1 and a counter of 1."""
        result = merge({}, {}, [make_input()], now=now)

        record = result.history["R-1"]
        assert record.visit_sequence == 1
        assert record.visit_label == VisitLabel.FIRST
        assert record.is_attended is True
        assert record.created_at == now
        assert record.updated_at == now
        assert result.counters["F1"].attended_count == 1
        assert result.counters["F1"].last_service_date == datetime(2024, 12, 1, 10, 0)
        assert result.skipped == []

    def test_non_attended_gets_zero_counter(self, make_input, now) -> None:
        """A customer seen only with cancellations rests at zero."""
        result = merge({}, {}, [make_input(booked=False, attended=False)], now=now)

        assert result.history["R-1"].visit_sequence is None
        assert result.history["R-1"].visit_label is None
        assert result.counters["F1"].attended_count == 0

    def test_batch_processed_in_service_date_order(self, make_input, now) -> None:
        """Input order does not decide sequence numbers."""
        batch = [
            make_input(booking_id="R-late", service_date="2024-12-20"),
            make_input(booking_id="R-early", service_date="2024-12-01"),
            make_input(booking_id="R-mid", service_date="2024-12-10"),
        ]
        result = merge({}, {}, batch, now=now)

        assert _seqs(result.history) == {"R-early": 1, "R-mid": 2, "R-late": 3}
        assert result.history["R-late"].visit_label == VisitLabel.THIRD_OR_MORE
        assert result.counters["F1"].attended_count == 3

    def test_inputs_are_not_mutated(self, make_input, now) -> None:
        """The engine returns new maps."""
        history: dict = {}
        counters: dict = {}
        merge(history, counters, [make_input()], now=now)
        assert history == {}
        assert counters == {}


class TestIdentity:
    """Identity keys and skipped records."""

    def test_fallback_key_when_booking_id_blank(self, make_input, now) -> None:
        """A blank booking id falls back to customer, day and raw submission."""
        record = make_input(booking_id="  ", submitted_at="2024-11-20 12:00")
        result = merge({}, {}, [record], now=now)

        assert list(result.history) == ["fb:F1_2024-12-01_2024-11-20 12:00"]

    def test_fallback_key_is_stable_across_imports(self, make_input, now) -> None:
        """Re-exporting a row without booking id updates the same record."""
        first = merge({}, {}, [make_input(booking_id=None)], now=now)
        again = merge(first.history, first.counters, [make_input(booking_id=None, course="Yoga")], now=now)

        assert len(again.history) == 1
        assert again.counters["F1"].attended_count == 1

    def test_missing_identity_is_skipped(self, make_input, now) -> None:
        """No booking id and no raw submission text cannot be keyed."""
        record = replace(make_input(booking_id=None), submitted_raw=None)
        result = merge({}, {}, [record], now=now)

        assert result.history == {}
        assert len(result.skipped) == 1
        assert result.skipped[0].reason == MISSING_IDENTITY
        assert result.skipped[0].record is record

    def test_duplicate_key_within_batch(self, make_input, now) -> None:
        """A key seen twice in one batch is promoted once."""
        batch = [make_input(), make_input(course="Yoga")]
        result = merge({}, {}, batch, now=now)

        assert result.counters["F1"].attended_count == 1
        assert result.history["R-1"].course == "Yoga"


class TestIdempotence:
    """Re-submitting the same batch."""

    def test_same_batch_twice(self, make_input, now) -> None:
        """Merging a batch twice equals merging it once."""
        batch = [
            make_input(booking_id="R-1", service_date="2024-12-01"),
            make_input(booking_id="R-2", service_date="2024-12-05", booked=False, attended=False),
            make_input(booking_id="R-3", customer_id="F2", service_date="2024-12-03"),
            make_input(booking_id=None, customer_id="F2", service_date="2024-12-09"),
        ]
        once = merge({}, {}, batch, now=now)
        twice = merge(once.history, once.counters, batch, now=now)

        assert twice.history == once.history
        assert twice.counters == once.counters


class TestCounterMaintenance:
    """Promotion, retention and demotion across imports."""

    def test_two_batches_in_date_order(self, make_input, now) -> None:
        """Dec-01 then Dec-05 gives sequences 1 and 2."""
        a = merge({}, {}, [make_input(booking_id="A", service_date="2024-12-01")], now=now)
        b = merge(a.history, a.counters, [make_input(booking_id="B", service_date="2024-12-05")], now=now)

        assert b.counters["F1"].attended_count == 2
        assert _seqs(b.history) == {"A": 1, "B": 2}

    def test_two_batches_in_reverse_order(self, make_input, now) -> None:
        """Importing the older batch later gives the same numbers."""
        b = merge({}, {}, [make_input(booking_id="B", service_date="2024-12-05")], now=now)
        a = merge(b.history, b.counters, [make_input(booking_id="A", service_date="2024-12-01")], now=now)

        assert a.counters["F1"].attended_count == 2
        assert _seqs(a.history) == {"A": 1, "B": 2}
        assert a.history["B"].visit_label == VisitLabel.SECOND
        assert a.counters["F1"].last_service_date == datetime(2024, 12, 5, 10, 0)

    def test_still_attended_keeps_sequence(self, make_input, now) -> None:
        """Re-imports with other field changes keep the assigned sequence."""
        first = merge({}, {}, [make_input(booking_id="A", service_date="2024-12-01")], now=now)
        second = merge(
            first.history,
            first.counters,
            [make_input(booking_id="B", service_date="2024-12-05")],
            now=now,
        )
        later = datetime(2025, 2, 1)
        third = merge(
            second.history,
            second.counters,
            [make_input(booking_id="B", service_date="2024-12-05", course="Pilates")],
            now=later,
        )

        assert third.history["B"].visit_sequence == 2
        assert third.history["B"].updated_at == later
        assert third.history["B"].created_at == now
        assert third.counters["F1"].attended_count == 2

    def test_newly_attended_promotes(self, make_input, now) -> None:
        """A no-show later marked attended takes the next number."""
        first = merge({}, {}, [make_input(attended=False)], now=now)
        assert first.counters["F1"].attended_count == 0

        second = merge(first.history, first.counters, [make_input(attended=True)], now=now)
        assert second.history["R-1"].visit_sequence == 1
        assert second.counters["F1"].attended_count == 1

    def test_demotion_leaves_gap_until_recompute(self, make_input, now) -> None:
        """Demoting a middle visit leaves a gap that recompute heals."""
        batch = [
            make_input(booking_id="A", service_date="2024-12-01"),
            make_input(booking_id="B", service_date="2024-12-05"),
            make_input(booking_id="C", service_date="2024-12-09"),
        ]
        first = merge({}, {}, batch, now=now)
        demoted = merge(
            first.history,
            first.counters,
            [make_input(booking_id="B", service_date="2024-12-05", booked=False, attended=False)],
            now=now,
        )

        assert demoted.counters["F1"].attended_count == 2
        assert _seqs(demoted.history) == {"A": 1, "B": None, "C": 3}
        assert demoted.history["B"].visit_label is None

        healed = recompute_all(demoted.history, demoted.counters)
        assert _seqs(healed.history) == {"A": 1, "B": None, "C": 2}
        assert healed.counters["F1"].attended_count == 2

    def test_demotion_floors_at_zero(self, make_input, now) -> None:
        """A counter never goes negative."""
        first = merge({}, {}, [make_input()], now=now)
        zeroed = {k: replace(c, attended_count=0) for k, c in first.counters.items()}
        demoted = merge(first.history, zeroed, [make_input(attended=False)], now=now)

        assert demoted.counters["F1"].attended_count == 0

    def test_late_cancel_is_promoted(self, make_input, now) -> None:
        """A late cancellation counts as an attended visit for sequencing."""
        record = make_input(booked=False, attended=False, detail_status="previous-day-cancel")
        result = merge({}, {}, [record], now=now)

        assert result.history["R-1"].is_attended is True
        assert result.history["R-1"].visit_sequence == 1

    def test_customer_change_moves_visit(self, make_input, now) -> None:
        """A booking re-exported under another customer releases the old count."""
        first = merge({}, {}, [make_input(customer_id="F1")], now=now)
        moved = merge(first.history, first.counters, [make_input(customer_id="F2")], now=now)

        assert moved.counters["F1"].attended_count == 0
        assert moved.counters["F2"].attended_count == 1
        assert moved.history["R-1"].visit_sequence == 1


class TestStickyFields:
    """Edit-owned fields survive re-imports."""

    def test_overrides_and_group_survive(self, make_input, now) -> None:
        """Exclusion, manual attendance, merge group and creation time carry over."""
        first = merge({}, {}, [make_input()], now=now)
        edited = replace(
            first.history["R-1"],
            is_excluded=True,
            manual_attendance=True,
            merge_group_id="F1_2024-12-01",
        )
        history = {"R-1": edited}

        later = datetime(2025, 3, 1)
        again = merge(history, first.counters, [make_input(attended=False)], now=later)
        record = again.history["R-1"]

        assert record.is_excluded is True
        assert record.manual_attendance is True
        assert record.merge_group_id == "F1_2024-12-01"
        assert record.created_at == now
        assert record.updated_at == later
        assert record.is_attended is False
        # Manual override keeps the visit in the sequence
        assert record.visit_sequence == 1
        assert again.counters["F1"].attended_count == 1

    def test_manual_false_blocks_promotion(self, make_input, now) -> None:
        """A record forced to not attended is not numbered on re-import."""
        first = merge({}, {}, [make_input(attended=False)], now=now)
        history = {"R-1": replace(first.history["R-1"], manual_attendance=False)}
        again = merge(history, first.counters, [make_input(attended=True)], now=now)

        assert again.history["R-1"].is_attended is True
        assert again.history["R-1"].visit_sequence is None
        assert again.counters["F1"].attended_count == 0


class TestStaffResolution:
    """Slot text is resolved against the roster during merge."""

    def test_roster_match(self, make_input, now) -> None:
        """A roster name in the slot text becomes the resolved staff."""
        result = merge({}, {}, [make_input(raw_staff_text="Ｊａｎｅ Ｄｏｅ")], roster=["Jane Doe"], now=now)
        assert result.history["R-1"].resolved_staff == "Jane Doe"
        assert result.history["R-1"].was_unassigned_pool is False

    def test_pool_text(self, make_input, now) -> None:
        """Adjustment language lands in the pool with no staff."""
        text = "Jane Doe (schedule may be adjusted)"
        result = merge({}, {}, [make_input(raw_staff_text=text)], roster=["Jane Doe"], now=now)
        assert result.history["R-1"].resolved_staff is None
        assert result.history["R-1"].was_unassigned_pool is True

    def test_explicit_staff_wins(self, make_input, now) -> None:
        """An explicit staff column overrides slot classification."""
        result = merge({}, {}, [make_input(raw_staff_text="おまかせ", staff="J.K")], roster=["J.K"], now=now)
        assert result.history["R-1"].resolved_staff == "J.K"
        assert result.history["R-1"].was_unassigned_pool is True

    def test_assigned_pool_staff_survives_reimport(self, make_input, now) -> None:
        """Staff assigned to a pooled booking is kept while it stays pooled."""
        first = merge({}, {}, [make_input(raw_staff_text="おまかせ")], now=now)
        history = {"R-1": replace(first.history["R-1"], resolved_staff="J.K")}
        again = merge(history, first.counters, [make_input(raw_staff_text="おまかせ")], now=now)

        assert again.history["R-1"].resolved_staff == "J.K"


def test_recompute_agrees_with_promotion_only_merges(make_input, now) -> None:
    """Batches imported out of order agree with a full recompute."""
    batches = [
        [make_input(booking_id="C", service_date="2024-12-20"), make_input(booking_id="X", customer_id="F2")],
        [make_input(booking_id="A", service_date="2024-12-01")],
        [
            make_input(booking_id="B2", service_date="2024-12-10 15:00"),
            make_input(booking_id="B1", service_date="2024-12-10 15:00"),
        ],
        [make_input(booking_id="D", service_date="2024-12-30", attended=False)],
    ]
    history: dict = {}
    counters: dict = {}
    for batch in batches:
        result = merge(history, counters, batch, now=now)
        history, counters = result.history, result.counters

    rebuilt = recompute_all(history, counters)
    assert _seqs(rebuilt.history) == _seqs(history)
    assert _seqs(history) == {"A": 1, "B1": 2, "B2": 3, "C": 4, "D": None, "X": 1}
    assert rebuilt.counters == counters
