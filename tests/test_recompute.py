"""Tests for the full sequence rebuild."""

import random

from booking_core.history import recompute_all
from booking_core.types import CustomerVisitCounter, VisitLabel


def test_contiguous_after_recompute(make_record) -> None:
    """Every customer's attended sequences form 1..N after a rebuild."""
    records = [
        make_record(key="A1", customer_id="A", service_date="2024-12-01", visit_sequence=7),
        make_record(key="A2", customer_id="A", service_date="2024-12-03", visit_sequence=7),
        make_record(key="A3", customer_id="A", service_date="2024-12-02", attended=False, visit_sequence=2),
        make_record(key="A4", customer_id="A", service_date="2024-12-09"),
        make_record(key="B1", customer_id="B", service_date="2024-11-15", visit_sequence=3),
        make_record(key="C1", customer_id="C", service_date="2024-11-15", booked=False, attended=False),
    ]
    result = recompute_all({r.key: r for r in records})

    for customer in ("A", "B", "C"):
        seqs = sorted(
            r.visit_sequence
            for r in result.history.values()
            if r.customer_id == customer and r.visit_sequence is not None
        )
        assert seqs == list(range(1, result.counters[customer].attended_count + 1))

    assert result.history["A1"].visit_sequence == 1
    assert result.history["A2"].visit_sequence == 2
    assert result.history["A3"].visit_sequence is None
    assert result.history["A4"].visit_label == VisitLabel.THIRD_OR_MORE
    assert result.counters["C"].attended_count == 0


def test_order_independent(make_record) -> None:
    """Any iteration order of the input map gives the same result."""
    records = [
        make_record(key=f"R{i}", customer_id=f"F{i % 3}", service_date=f"2024-12-{(i % 9) + 1:02d}")
        for i in range(20)
    ]
    baseline = recompute_all({r.key: r for r in records})

    shuffled = records[:]
    random.Random(7).shuffle(shuffled)
    again = recompute_all({r.key: r for r in shuffled})

    assert again.history == baseline.history
    assert again.counters == baseline.counters


def test_same_day_ties_broken_by_key(make_record) -> None:
    """Equal service dates are numbered in identity-key order."""
    records = [
        make_record(key="b", service_date="2024-12-01 10:00"),
        make_record(key="a", service_date="2024-12-01 10:00"),
    ]
    result = recompute_all({r.key: r for r in records})

    assert result.history["a"].visit_sequence == 1
    assert result.history["b"].visit_sequence == 2


def test_manual_override_respected(make_record) -> None:
    """Manual attendance decides sequencing; exclusion does not."""
    records = [
        make_record(key="R1", service_date="2024-12-01", manual_attendance=False),
        make_record(key="R2", service_date="2024-12-02", attended=False, manual_attendance=True),
        make_record(key="R3", service_date="2024-12-03", is_excluded=True),
    ]
    result = recompute_all({r.key: r for r in records})

    assert result.history["R1"].visit_sequence is None
    assert result.history["R2"].visit_sequence == 1
    assert result.history["R3"].visit_sequence == 2
    assert result.counters["F1"].attended_count == 2


def test_counters_never_deleted(make_record) -> None:
    """A counter for a customer with no attended records stays at zero."""
    counters = {"GONE": CustomerVisitCounter(customer_id="GONE", attended_count=4)}
    result = recompute_all({"R1": make_record()}, counters)

    assert result.counters["GONE"].attended_count == 0
    assert result.counters["F1"].attended_count == 1


def test_idempotent(make_record) -> None:
    """Running recompute on its own output changes nothing."""
    records = [make_record(key=f"R{i}", service_date=f"2024-12-{i + 1:02d}") for i in range(5)]
    once = recompute_all({r.key: r for r in records})
    twice = recompute_all(once.history, once.counters)

    assert twice.history == once.history
    assert twice.counters == once.counters
    assert all(twice.history[k] is once.history[k] for k in once.history)


def test_last_service_date(make_record) -> None:
    """The counter remembers the latest attended service date."""
    records = [
        make_record(key="R1", service_date="2024-12-01"),
        make_record(key="R2", service_date="2024-12-09"),
        make_record(key="R3", service_date="2024-12-20", attended=False),
    ]
    result = recompute_all({r.key: r for r in records})

    assert result.counters["F1"].last_service_date.day == 9
