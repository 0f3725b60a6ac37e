import datetime

import pytest

from src.errors import StoreError, ValidationError
from src.models import Category, RecordKind
from src.tracker import ExpenseTracker, reduce_snapshot


def test_add_expense(tracker, store, today):
    record = tracker.add_expense("Alice", "food", 100.0, today, note=" Dinner ")
    stored = store.snapshot()
    assert list(stored) == [record.key]
    assert stored[record.key]["user"] == "Alice"
    assert stored[record.key]["type"] == "personal"
    assert stored[record.key]["note"] == "Dinner"
    assert "splitAmount" not in stored[record.key]
    assert record.created_timestamp is not None
    assert record.updated_timestamp is None


def test_add_shared_expense_default_split(tracker, store, today):
    record = tracker.add_expense("Bob", "rent", 90.0, today, kind="shared")
    stored = store.snapshot()[record.key]
    assert stored["splitAmount"] == 45.0
    assert stored["splitWith"] == "Alice"
    assert stored["isCustomSplit"] is False


def test_add_shared_expense_custom_split(tracker, today):
    record = tracker.add_expense("Alice", "travel", 90.0, today, kind="shared", split_amount=90.0)
    assert record.split_amount == 90.0
    assert record.is_custom_split


@pytest.mark.parametrize(
    "kwargs",
    [
        {"amount": 0},
        {"amount": -5},
        {"amount": "abc"},
        {"amount": "nan"},
        {"amount": float("inf")},
        {"payer": "Mallory"},
        {"category": "yachts"},
        {"category": "settlement"},
        {"kind": "settlement"},
        {"kind": "shared", "split_amount": 150.0},
        {"kind": "shared", "split_amount": -1.0},
        {"kind": "shared", "split_amount": float("nan")},
        {"date": None},
    ],
)
def test_invalid_input_is_rejected_before_writing(tracker, store, today, kwargs):
    args = {"payer": "Alice", "category": "food", "amount": 100.0, "date": today}
    args.update(kwargs)
    with pytest.raises(ValidationError):
        tracker.add_expense(**args)
    assert store.snapshot() == {}


def test_state_changes_only_through_snapshots(tracker, today):
    tracker.add_expense("Alice", "food", 10.0, today)
    assert tracker.records == []
    with tracker.subscribe():
        assert len(tracker.records) == 1
        tracker.add_expense("Bob", "food", 20.0, today, kind="shared")
        assert len(tracker.records) == 2
        assert tracker.balance.debtor == "Alice"
    # released subscription no longer receives snapshots
    tracker.add_expense("Bob", "food", 30.0, today)
    assert len(tracker.records) == 2
    assert tracker.store.subscriber_count == 0


def test_records_sorted_newest_first(tracker):
    with tracker.subscribe():
        tracker.add_expense("Alice", "food", 1.0, datetime.date(2026, 10, 1))
        tracker.add_expense("Alice", "food", 2.0, datetime.date(2026, 10, 3))
        tracker.add_expense("Alice", "food", 3.0, datetime.date(2026, 10, 3))
        assert [r.amount for r in tracker.records] == [3.0, 2.0, 1.0]


def test_edit_expense_preserves_key_and_id(tracker, store, today):
    record = tracker.add_expense("Alice", "food", 100.0, today, kind="shared")
    edited = tracker.edit_expense(record, amount=60.0, payer="Bob", note="lunch")
    assert edited.key == record.key
    assert edited.id == record.id
    stored = store.snapshot()[record.key]
    assert stored["amount"] == 60.0
    assert stored["user"] == "Bob"
    assert stored["splitAmount"] == 30.0
    assert stored["splitWith"] == "Alice"
    assert stored["updatedAt"]


def test_edit_keeps_custom_split(tracker, today):
    record = tracker.add_expense("Alice", "food", 100.0, today, kind="shared", split_amount=70.0)
    edited = tracker.edit_expense(record, note="still custom")
    assert edited.split_amount == 70.0
    assert edited.is_custom_split
    with pytest.raises(ValidationError):
        tracker.edit_expense(record, amount=50.0)


def test_edit_to_personal_clears_split(tracker, store, today):
    record = tracker.add_expense("Alice", "food", 100.0, today, kind="shared")
    edited = tracker.edit_expense(record, kind="personal")
    assert edited.kind is RecordKind.PERSONAL
    assert edited.split_amount is None
    assert "splitAmount" not in store.snapshot()[record.key]


def test_edit_rejects_unknown_fields(tracker, today):
    record = tracker.add_expense("Alice", "food", 100.0, today)
    with pytest.raises(ValidationError):
        tracker.edit_expense(record, id="hijack")


def test_delete_requires_confirmation(tracker, store, today):
    record = tracker.add_expense("Alice", "food", 100.0, today)
    with pytest.raises(ValidationError):
        tracker.delete_expense(record)
    assert record.key in store.snapshot()
    tracker.delete_expense(record, confirmed=True)
    assert store.snapshot() == {}


def test_delete_missing_record_surfaces_store_error(tracker, today):
    record = tracker.add_expense("Alice", "food", 100.0, today)
    tracker.delete_expense(record, confirmed=True)
    with pytest.raises(StoreError):
        tracker.delete_expense(record, confirmed=True)


def test_reduce_snapshot(config):
    assert reduce_snapshot(None, config).records == []
    state = reduce_snapshot(
        {
            "a": {"type": "shared", "user": "Alice", "category": "groceries", "amount": "40", "date": "2026-10-02"},
            "b": {"user": "Bob", "category": "food", "amount": 12, "date": "2026-10-05"},
        },
        config,
    )
    assert [r.key for r in state.records] == ["b", "a"]
    assert state.records[1].category is Category.GROCERIES
    assert len(state.lines) == 3
    assert state.balance.debtor == "Bob"
    assert state.balance.net_amount == 20.0


def test_storage_status_local_fallback(config):
    tracker = ExpenseTracker(config)
    name, message = tracker.storage_status()
    assert name == "local_json"
    assert "GOOGLE_SHEET_ID" in message
    assert not tracker.uses_google_sheets()
