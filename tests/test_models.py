import datetime
import re

from src.models import (
    Category,
    ExpenseRecord,
    RecordKind,
    new_record_id,
    records_from_snapshot,
)


def test_from_dict_tolerates_missing_and_unknown_fields():
    r = ExpenseRecord.from_dict("k", {"user": "Alice", "category": "Yachts", "amount": "12.346"})
    assert r.kind is RecordKind.PERSONAL
    assert r.category is Category.MISCELLANEOUS
    assert r.amount == 12.35
    assert r.date is None
    assert r.created_timestamp is None


def test_settlement_from_dict_uses_paid_by_as_payer():
    r = ExpenseRecord.from_dict(
        "s", {"type": "settlement", "paidBy": "Bob", "paidTo": "Alice", "amount": 10, "category": "whatever",
              "date": "2026-10-01T00:00:00.000Z", "createdAt": 1760000000000}
    )
    assert r.payer == "Bob"
    assert r.category is Category.SETTLEMENT
    assert r.date == datetime.date(2026, 10, 1)
    assert r.created_timestamp == datetime.datetime.fromtimestamp(1760000000, tz=datetime.timezone.utc)


def test_sheet_strings_are_parsed():
    r = ExpenseRecord.from_dict(
        "g", {"type": "shared", "user": "Alice", "amount": "90", "splitAmount": "",
              "isCustomSplit": "false", "updatedAt": ""}
    )
    assert r.split_amount is None
    assert r.resolved_split_amount == 45.0
    assert not r.is_custom_split
    assert r.updated_timestamp is None


def test_to_dict_layout_for_shared_record():
    now = datetime.datetime(2026, 10, 19, 8, 30, tzinfo=datetime.timezone.utc)
    r = ExpenseRecord(key="k", id="1_abc", kind=RecordKind.SHARED, payer="Alice", category=Category.RENT,
                      amount=100.0, date=datetime.date(2026, 10, 1), created_timestamp=now,
                      split_amount=40.0, split_with="Bob", is_custom_split=True)
    d = r.to_dict()
    assert "key" not in d
    assert d["type"] == "shared"
    assert d["user"] == "Alice"
    assert d["splitAmount"] == 40.0
    assert d["createdAt"] == int(now.timestamp() * 1000)
    assert "paidBy" not in d
    assert ExpenseRecord.from_dict("k", d) == r


def test_new_record_id_format():
    assert re.fullmatch(r"1700000000000_[a-z0-9]{9}", new_record_id(1700000000000))


def test_records_from_empty_snapshot():
    assert records_from_snapshot(None) == []
    assert records_from_snapshot({}) == []
