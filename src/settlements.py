"""
settlements.py - settlement lifecycle

A settlement is a payment from one party to the other that offsets shared
expense obligations. The manager trusts its caller: it checks record
invariants (two distinct known parties, non-negative amount) but never
compares a settlement against the outstanding balance. The UI only offers
to settle while the balance is not settled.
"""

from dataclasses import replace
from typing import Iterable, List, Optional
import datetime
import logging
import math

from src.config import AppConfig
from src.errors import ValidationError
from src.models import (
    Balance,
    Category,
    ExpenseRecord,
    RecordKind,
    SettlementDraft,
    new_record_id,
    utc_now,
)
from src.storage import RecordStore

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("amount", "date", "note", "paid_by", "paid_to")


class SettlementManager:
    def __init__(self, store: RecordStore, config: AppConfig):
        self.store = store
        self.config = config

    def _check_parties(self, paid_by: Optional[str], paid_to: Optional[str]):
        if not self.config.is_party(paid_by) or not self.config.is_party(paid_to):
            raise ValidationError(f"Settlement parties must be {self.config.party_a} and {self.config.party_b}")
        if paid_by == paid_to:
            raise ValidationError("A settlement needs two different parties.")

    @staticmethod
    def _check_amount(amount) -> float:
        try:
            value = round(float(amount), 2)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid settlement amount {amount!r}")
        if not math.isfinite(value):
            raise ValidationError(f"Invalid settlement amount {amount!r}")
        if value < 0:
            raise ValidationError("Settlement amount cannot be negative.")
        return value

    def propose_settlement(self, balance: Balance, today: Optional[datetime.date] = None) -> SettlementDraft:
        """Draft a payment from the debtor to the creditor for the full net amount."""
        if balance.debtor is None or balance.creditor is None:
            raise ValidationError("Nothing to settle.")
        return SettlementDraft(
            paid_by=balance.debtor,
            paid_to=balance.creditor,
            amount=balance.net_amount,
            date=today or datetime.date.today(),
        )

    def commit_settlement(
        self,
        draft: SettlementDraft,
        acting_identity: Optional[str],
        confirmed: bool = False,
    ) -> ExpenseRecord:
        """
        Write the draft as a new settlement record. The caller must pass
        confirmed=True once the user has confirmed; the write is not undone
        except by deleting the record.
        """
        if not confirmed:
            raise ValidationError("Please confirm the settlement before recording it.")
        self._check_parties(draft.paid_by, draft.paid_to)
        amount = self._check_amount(draft.amount)

        actor = self.config.party_for_identity(acting_identity)
        if actor is None:
            logger.warning("Settlement recorded by identity %r that maps to no party", acting_identity)
            actor = acting_identity or ""

        now = utc_now()
        record = ExpenseRecord(
            id=new_record_id(int(now.timestamp() * 1000)),
            kind=RecordKind.SETTLEMENT,
            payer=draft.paid_by,
            category=Category.SETTLEMENT,
            amount=amount,
            date=draft.date,
            created_timestamp=now,
            note=draft.note or "",
            paid_by=draft.paid_by,
            paid_to=draft.paid_to,
            settled_by_actor=actor,
        )
        key = self.store.append(record.to_dict())
        logger.info("Settlement %s: %s paid %s %.2f", key, draft.paid_by, draft.paid_to, amount)
        return record.with_key(key)

    def edit_settlement(self, existing: ExpenseRecord, **changes) -> ExpenseRecord:
        """
        Change amount, date, note, paid_by and/or paid_to of a stored
        settlement. The balance is not re-checked; callers re-run the balance
        afterwards.
        """
        if not existing.is_settlement:
            raise ValidationError("Only settlement records can be edited here.")
        if not existing.key:
            raise ValidationError("Settlement has no store key.")
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot change {', '.join(sorted(unknown))} on a settlement")

        paid_by = changes.get("paid_by", existing.paid_by)
        paid_to = changes.get("paid_to", existing.paid_to)
        self._check_parties(paid_by, paid_to)
        amount = self._check_amount(changes.get("amount", existing.amount))
        date = changes.get("date", existing.date)
        if not isinstance(date, datetime.date):
            raise ValidationError("Settlement date is required.")

        updated = replace(
            existing,
            amount=amount,
            date=date,
            note=changes.get("note", existing.note) or "",
            paid_by=paid_by,
            paid_to=paid_to,
            payer=paid_by,
            updated_timestamp=utc_now(),
        )
        self.store.replace(existing.key, updated.to_dict())
        return updated

    @staticmethod
    def list_settlements(records: Iterable[ExpenseRecord]) -> List[ExpenseRecord]:
        """Settlement records, most recent date first."""
        return sorted((r for r in records if r.is_settlement), key=lambda r: r.sort_key(), reverse=True)

    @staticmethod
    def total_settled(records: Iterable[ExpenseRecord]) -> float:
        return round(sum(r.amount for r in records if r.is_settlement), 2)
