import datetime

import pytest

from src.balance import calculate_balance
from src.errors import ValidationError
from src.models import Balance, RecordKind, SettlementDraft


def _settle(tracker, draft, identity="bob@example.com"):
    return tracker.settlements.commit_settlement(draft, identity, confirmed=True)


def test_propose_settlement_from_balance(tracker, today):
    balance = Balance(net_amount=50.0, debtor="Bob", creditor="Alice", is_settled=False)
    draft = tracker.settlements.propose_settlement(balance, today=today)
    assert draft == SettlementDraft(paid_by="Bob", paid_to="Alice", amount=50.0, date=today)


def test_propose_on_settled_balance_raises(tracker):
    with pytest.raises(ValidationError):
        tracker.settlements.propose_settlement(Balance())


def test_commit_requires_confirmation(tracker, store, today):
    draft = SettlementDraft(paid_by="Bob", paid_to="Alice", amount=50.0, date=today)
    with pytest.raises(ValidationError):
        tracker.settlements.commit_settlement(draft, "bob@example.com")
    assert store.snapshot() == {}


def test_commit_writes_settlement_record(tracker, store, today):
    draft = SettlementDraft(paid_by="Bob", paid_to="Alice", amount=50.0, date=today, note="cash")
    record = _settle(tracker, draft, identity="Alice@Example.com")
    stored = store.snapshot()[record.key]
    assert stored["type"] == "settlement"
    assert stored["category"] == "settlement"
    assert stored["paidBy"] == "Bob"
    assert stored["paidTo"] == "Alice"
    assert stored["user"] == "Bob"
    assert stored["settledBy"] == "Alice"
    assert stored["amount"] == 50.0
    assert stored["date"] == today.isoformat()
    assert stored["timestamp"]
    assert record.id


def test_settlement_neutrality(tracker, today):
    with tracker.subscribe():
        tracker.add_expense("Alice", "food", 100.0, today, kind="shared")
        tracker.add_expense("Bob", "groceries", 37.3, today, kind="shared")
        assert not tracker.balance.is_settled
        draft = tracker.settlements.propose_settlement(tracker.balance, today=today)
        _settle(tracker, draft)
        assert tracker.balance.is_settled


def test_commit_rejects_invalid_drafts(tracker, store, today):
    with pytest.raises(ValidationError):
        _settle(tracker, SettlementDraft(paid_by="Bob", paid_to="Bob", amount=5.0, date=today))
    with pytest.raises(ValidationError):
        _settle(tracker, SettlementDraft(paid_by="Bob", paid_to="Mallory", amount=5.0, date=today))
    with pytest.raises(ValidationError):
        _settle(tracker, SettlementDraft(paid_by="Bob", paid_to="Alice", amount=-1.0, date=today))
    with pytest.raises(ValidationError):
        _settle(tracker, SettlementDraft(paid_by="Bob", paid_to="Alice", amount=float("nan"), date=today))
    with pytest.raises(ValidationError):
        _settle(tracker, SettlementDraft(paid_by="Bob", paid_to="Alice", amount=float("inf"), date=today))
    assert store.snapshot() == {}


def test_zero_settlement_is_recorded(tracker, store, today):
    record = _settle(tracker, SettlementDraft(paid_by="Bob", paid_to="Alice", amount=0.0, date=today))
    assert record.key in store.snapshot()


def test_overpaying_settlement_flips_balance(tracker, config, today):
    with tracker.subscribe():
        tracker.add_expense("Alice", "rent", 100.0, today, kind="shared")
        _settle(tracker, SettlementDraft(paid_by="Bob", paid_to="Alice", amount=80.0, date=today))
        assert tracker.balance.debtor == "Alice"
        assert tracker.balance.net_amount == 30.0


def test_edit_settlement_changes_fields_without_rebalancing(tracker, config, store, today):
    with tracker.subscribe():
        tracker.add_expense("Alice", "rent", 100.0, today, kind="shared")
        original = _settle(tracker, SettlementDraft(paid_by="Bob", paid_to="Alice", amount=50.0, date=today))
        assert tracker.balance.is_settled

        edited = tracker.settlements.edit_settlement(
            original, amount=20.0, paid_by="Alice", paid_to="Bob", note="oops"
        )
        assert edited.key == original.key
        assert edited.id == original.id
        assert edited.updated_timestamp is not None
        stored = store.snapshot()[original.key]
        assert stored["paidBy"] == "Alice"
        assert stored["user"] == "Alice"
        assert stored["note"] == "oops"
        assert "updatedAt" in stored
        # Bob owes 50 again, plus Alice's 20 "payment" to Bob
        assert tracker.balance == calculate_balance(tracker.records, config)
        assert tracker.balance.debtor == "Bob"
        assert tracker.balance.net_amount == 70.0


def test_edit_settlement_validation(tracker, make_record, today):
    settlement = _settle(tracker, SettlementDraft(paid_by="Bob", paid_to="Alice", amount=5.0, date=today))
    with pytest.raises(ValidationError):
        tracker.settlements.edit_settlement(settlement, paid_to="Bob")
    with pytest.raises(ValidationError):
        tracker.settlements.edit_settlement(settlement, category="food")
    with pytest.raises(ValidationError):
        tracker.settlements.edit_settlement(make_record(), amount=1.0)


def test_list_settlements_newest_first(tracker, make_record):
    older = make_record(kind=RecordKind.SETTLEMENT, payer="Bob", paid_to="Alice", date=datetime.date(2026, 1, 2))
    newer = make_record(kind=RecordKind.SETTLEMENT, payer="Alice", paid_to="Bob", date=datetime.date(2026, 3, 4))
    expense = make_record()
    listed = tracker.settlements.list_settlements([older, expense, newer])
    assert listed == [newer, older]
    assert tracker.settlements.total_settled(listed) == 200.0
