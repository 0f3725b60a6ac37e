"""
tracker.py - core application logic

Responsibilities:
 - hold the latest LedgerState, rebuilt from scratch on every store snapshot
 - validate and write expense mutations through the record store:
     add_expense, edit_expense, delete_expense
 - expose the settlement manager and storage diagnostics consumed by the UI

Mutations never touch the in-memory state; it only changes when the store
delivers the next snapshot.
"""

from dataclasses import replace
from typing import Any, Dict, Optional, Tuple
import datetime
import logging
import math

from src.attribution import attribute_records
from src.balance import calculate_balance
from src.config import AppConfig
from src.errors import ValidationError
from src.models import (
    Category,
    ExpenseRecord,
    LedgerState,
    RecordKind,
    new_record_id,
    records_from_snapshot,
    sort_records,
    utc_now,
)
from src.settlements import SettlementManager
from src.storage import RecordStore, Subscription, open_store

# ensure a logger is available for the whole package
logger = logging.getLogger(__name__)
_package_logger = logging.getLogger("src")
if not _package_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    _package_logger.addHandler(handler)
    _package_logger.setLevel(logging.INFO)

EDITABLE_FIELDS = ("payer", "category", "amount", "date", "note", "kind", "split_amount")


def reduce_snapshot(payload: Optional[Dict[str, Dict[str, Any]]], config: AppConfig) -> LedgerState:
    """Derive everything the UI shows from one whole-collection snapshot."""
    records = sort_records(records_from_snapshot(payload))
    return LedgerState(
        records=records,
        lines=attribute_records(records, config),
        balance=calculate_balance(records, config),
    )


class ExpenseTracker:
    """
    Single-instance style tracker object. The UI creates one ExpenseTracker()
    per script run, subscribes it to the store and uses its methods to
    read/write data.
    """

    def __init__(self, config: Optional[AppConfig] = None, store: Optional[RecordStore] = None):
        self.config = config or AppConfig.from_env()
        if store is None:
            store, self._storage_message = open_store(self.config)
        else:
            self._storage_message = f"Using {store.name} store."
        self.store = store
        self.settlements = SettlementManager(self.store, self.config)
        self.state = LedgerState()
        self.snapshots_received = 0

    # -----------------------
    # Snapshot handling
    # -----------------------
    def apply_snapshot(self, payload: Optional[Dict[str, Dict[str, Any]]]):
        self.state = reduce_snapshot(payload, self.config)
        self.snapshots_received += 1

    def subscribe(self) -> Subscription:
        """Start receiving snapshots; close the returned subscription when done."""
        return self.store.subscribe(self.apply_snapshot)

    @property
    def records(self):
        return self.state.records

    @property
    def balance(self):
        return self.state.balance

    def find(self, key: str) -> Optional[ExpenseRecord]:
        return next((r for r in self.state.records if r.key == key), None)

    def uses_google_sheets(self) -> bool:
        """True when the durable Google Sheets backend is active."""
        return self.store.name == "google_sheets"

    def storage_status(self) -> Tuple[str, str]:
        """
        Return current storage backend and a short diagnostic message for the UI.
        """
        return self.store.name, self._storage_message

    # -----------------------
    # Validation
    # -----------------------
    def _split_fields(self, kind: RecordKind, payer: str, amount: float, split_amount: Optional[float]):
        """Return (split_amount, split_with, is_custom_split) for a new or edited record."""
        if kind is not RecordKind.SHARED:
            return None, None, False
        if split_amount is None:
            return round(amount / 2, 2), self.config.other_party(payer), False
        try:
            split = round(float(split_amount), 2)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid split amount {split_amount!r}")
        if not math.isfinite(split) or split < 0 or split > amount:
            raise ValidationError(f"Split amount must be between 0 and {amount:.2f}.")
        return split, self.config.other_party(payer), True

    def _validate(self, kind, payer, category, amount, date) -> Tuple[RecordKind, Category, float]:
        try:
            kind = RecordKind(kind)
        except ValueError:
            raise ValidationError(f"Unknown expense type {kind!r}")
        if kind is RecordKind.SETTLEMENT:
            raise ValidationError("Use the settlement flow to record settlements.")
        if not self.config.is_party(payer):
            raise ValidationError(f"Payer must be {self.config.party_a} or {self.config.party_b}.")
        try:
            category = Category(category)
        except ValueError:
            raise ValidationError(f"Unknown category {category!r}")
        if category is Category.SETTLEMENT:
            raise ValidationError("Pick a spending category.")
        try:
            amount = round(float(amount), 2)
        except (TypeError, ValueError):
            raise ValidationError("Please enter a valid amount.")
        if not math.isfinite(amount) or amount <= 0:
            raise ValidationError("Please enter a valid amount.")
        if not isinstance(date, datetime.date):
            raise ValidationError("Date is required.")
        return kind, category, amount

    # -----------------------
    # Mutations
    # -----------------------
    def add_expense(
        self,
        payer: str,
        category: str,
        amount: float,
        date: datetime.date,
        note: str = "",
        kind: str = RecordKind.PERSONAL,
        split_amount: Optional[float] = None,
    ) -> ExpenseRecord:
        """
        Validate, build and append a personal or shared expense.
        split_amount: custom portion owed by the other party (shared only);
        None means an even split.
        """
        kind, category, amount = self._validate(kind, payer, category, amount, date)
        split, split_with, is_custom = self._split_fields(kind, payer, amount, split_amount)
        now = utc_now()
        record = ExpenseRecord(
            id=new_record_id(int(now.timestamp() * 1000)),
            kind=kind,
            payer=payer,
            category=category,
            amount=amount,
            date=date,
            created_timestamp=now,
            note=(note or "").strip(),
            split_amount=split,
            split_with=split_with,
            is_custom_split=is_custom,
        )
        key = self.store.append(record.to_dict())
        logger.info("Added %s expense key=%s (category=%s, amount=%.2f)", kind.value, key, category.value, amount)
        return record.with_key(key)

    def edit_expense(self, existing: ExpenseRecord, **changes) -> ExpenseRecord:
        """
        Update fields of a personal/shared expense, keeping key and id.
        Supported changes: payer, category, amount, date, note, kind, split_amount.
        Split fields are recomputed from the edited values; pass split_amount
        to keep or set a custom split.
        """
        if existing.is_settlement:
            return self.settlements.edit_settlement(existing, **changes)
        if not existing.key:
            raise ValidationError("Expense has no store key.")
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot change {', '.join(sorted(unknown))}")

        payer = changes.get("payer", existing.payer)
        kind, category, amount = self._validate(
            changes.get("kind", existing.kind),
            payer,
            changes.get("category", existing.category),
            changes.get("amount", existing.amount),
            changes.get("date", existing.date),
        )
        if "split_amount" in changes:
            custom = changes["split_amount"]
        elif existing.is_custom_split and kind is RecordKind.SHARED:
            custom = existing.split_amount
        else:
            custom = None
        split, split_with, is_custom = self._split_fields(kind, payer, amount, custom)

        updated = replace(
            existing,
            kind=kind,
            payer=payer,
            category=category,
            amount=amount,
            date=changes.get("date", existing.date),
            note=(changes.get("note", existing.note) or "").strip(),
            split_amount=split,
            split_with=split_with,
            is_custom_split=is_custom,
            updated_timestamp=utc_now(),
        )
        self.store.replace(existing.key, updated.to_dict())
        logger.info("Updated expense key=%s", existing.key)
        return updated

    def delete_expense(self, record: ExpenseRecord, confirmed: bool = False):
        """Permanently remove a record (expense or settlement) after confirmation."""
        if not confirmed:
            raise ValidationError("Please confirm the deletion.")
        if not record.key:
            raise ValidationError("Record has no store key.")
        self.store.delete(record.key)
        logger.info(
            "Deleted record key=%s (type=%s, amount=%.2f)", record.key, record.kind.value, record.amount
        )
