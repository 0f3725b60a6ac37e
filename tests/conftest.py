import datetime

import pytest

from src.config import AppConfig
from src.models import Category, ExpenseRecord, RecordKind
from src.storage import LocalJsonStore
from src.tracker import ExpenseTracker

TODAY = datetime.date(2026, 10, 19)


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def config(tmp_path):
    return AppConfig(
        party_a="Alice",
        party_b="Bob",
        identities={"alice@example.com": "Alice", "bob@example.com": "Bob"},
        data_file=str(tmp_path / "expenses_data.json"),
    )


@pytest.fixture
def store(config):
    return LocalJsonStore(config.data_file)


@pytest.fixture
def tracker(config, store):
    return ExpenseTracker(config, store=store)


@pytest.fixture
def make_record():
    counter = {"n": 0}

    def _make(kind=RecordKind.PERSONAL, payer="Alice", amount=100.0, category=Category.FOOD,
              date=TODAY, **kwargs):
        counter["n"] += 1
        if kind is RecordKind.SETTLEMENT:
            category = Category.SETTLEMENT
            kwargs.setdefault("paid_by", payer)
        return ExpenseRecord(
            key=f"k{counter['n']}",
            id=f"id{counter['n']}",
            kind=kind,
            payer=payer,
            category=category,
            amount=amount,
            date=date,
            **kwargs,
        )

    return _make
