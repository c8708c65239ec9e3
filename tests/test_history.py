"""Tests for build_history/car_history — chronological merge of policies and claims."""

from datetime import date
from decimal import Decimal

from insurance import build_history, car_history, register_claim, register_policy
from models import Claim, HistoryEventType, InsurancePolicy


def policy(provider, start, end):
    return InsurancePolicy(car_id=1, provider=provider, start_date=start, end_date=end)


def claim(on, description="Scratch", amount="100"):
    return Claim(car_id=1, claim_date=on, description=description, amount=Decimal(amount))


def test_empty_inputs_give_empty_history():
    assert build_history([], []) == []


def test_policy_and_claim_are_interleaved_by_date():
    items = build_history(
        [policy("P", date(2025, 1, 15), date(2025, 12, 31))],
        [claim(date(2025, 6, 1))],
    )
    assert [(i.event_date, i.event_type) for i in items] == [
        (date(2025, 1, 15), HistoryEventType.POLICY_START),
        (date(2025, 6, 1), HistoryEventType.CLAIM),
        (date(2025, 12, 31), HistoryEventType.POLICY_END),
    ]


def test_descriptions():
    items = build_history(
        [policy("Allianz", date(2025, 1, 1), date(2025, 12, 31))],
        [claim(date(2025, 6, 1), "Minor accident", "1500.5")],
    )
    assert items[0].description == "Provider: Allianz, Valid until: 2025-12-31"
    assert items[1].description == "Description: Minor accident, Amount: 1,500.50"
    assert items[2].description == "Provider: Allianz"


def test_same_date_items_keep_generation_order():
    day = date(2025, 6, 1)
    items = build_history(
        [
            policy("Second", date(2025, 6, 1), date(2025, 12, 31)),
            policy("First", date(2025, 1, 1), date(2025, 6, 1)),
        ],
        [claim(day, "Claim A"), claim(day, "Claim B")],
    )
    same_day = [(i.event_type, i.description) for i in items if i.event_date == day]
    assert same_day == [
        (HistoryEventType.POLICY_START, "Provider: Second, Valid until: 2025-12-31"),
        (HistoryEventType.POLICY_END, "Provider: First"),
        (HistoryEventType.CLAIM, "Description: Claim A, Amount: 100.00"),
        (HistoryEventType.CLAIM, "Description: Claim B, Amount: 100.00"),
    ]


def test_claim_before_policy_start_comes_first():
    items = build_history(
        [policy("P", date(2025, 3, 1), date(2025, 3, 31))],
        [claim(date(2025, 1, 5))],
    )
    assert items[0].event_type == HistoryEventType.CLAIM
    assert len(items) == 3


def test_car_history_unknown_car_is_none(session):
    assert car_history(session, 999) is None


def test_car_history_without_records_is_empty(session, car):
    assert car_history(session, car.id) == []


def test_car_history_reads_stored_records(session, car):
    register_policy(session, car.id, "P", date(2025, 1, 15), date(2025, 12, 31))
    register_claim(session, car.id, date(2025, 6, 1), "Hail damage", Decimal("320.00"))

    items = car_history(session, car.id)
    assert [i.event_type for i in items] == [
        HistoryEventType.POLICY_START,
        HistoryEventType.CLAIM,
        HistoryEventType.POLICY_END,
    ]
    assert items[1].description == "Description: Hail damage, Amount: 320.00"
