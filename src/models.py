"""
models.py - Data model definitions

ExpenseRecord is the only persisted entity. Records are serialized to/from
plain dicts with the store's field names (`type`, `user`, `splitAmount`,
`paidBy`, ...) so the Google Sheet and the local JSON file share one layout.
The remaining dataclasses are derived, in-memory views produced by the core.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import datetime
import logging
import random
import string
import time

logger = logging.getLogger(__name__)

# amounts below this are treated as zero when comparing balances
EPSILON = 0.01


class RecordKind(str, Enum):
    PERSONAL = "personal"
    SHARED = "shared"
    SETTLEMENT = "settlement"


class Category(str, Enum):
    FOOD = "food"
    SHOPPING = "shopping"
    GROCERIES = "groceries"
    RENT = "rent"
    TRAVEL = "travel"
    CLOTHES = "clothes"
    ENTERTAINMENT = "entertainment"
    HEALTH = "health"
    UTILITIES = "utilities"
    MISCELLANEOUS = "miscellaneous"
    # sentinel carried by settlement records
    SETTLEMENT = "settlement"

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self]

    @classmethod
    def spending(cls) -> List["Category"]:
        """Categories a user can pick for personal/shared expenses."""
        return [c for c in cls if c is not cls.SETTLEMENT]


CATEGORY_LABELS = {
    Category.FOOD: "🍕 Food",
    Category.SHOPPING: "🛍️ Shopping",
    Category.GROCERIES: "🛒 Groceries",
    Category.RENT: "🏠 Rent",
    Category.TRAVEL: "✈️ Travel",
    Category.CLOTHES: "👕 Clothes",
    Category.ENTERTAINMENT: "🎬 Entertainment",
    Category.HEALTH: "💊 Health",
    Category.UTILITIES: "💡 Utilities",
    Category.MISCELLANEOUS: "📦 Misc",
    Category.SETTLEMENT: "🤝 Settlement",
}

CATEGORY_COLORS = {
    Category.FOOD: "#ef4444",
    Category.SHOPPING: "#3b82f6",
    Category.GROCERIES: "#10b981",
    Category.RENT: "#f59e0b",
    Category.TRAVEL: "#8b5cf6",
    Category.CLOTHES: "#ec4899",
    Category.ENTERTAINMENT: "#6366f1",
    Category.HEALTH: "#14b8a6",
    Category.UTILITIES: "#f97316",
    Category.MISCELLANEOUS: "#64748b",
    Category.SETTLEMENT: "#0ea5e9",
}


class Period(str, Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    ALL = "all"
    CUSTOM = "custom"


ALL = "all"


def new_record_id(now_ms: Optional[int] = None) -> str:
    """Client correlation id: epoch milliseconds plus 9 random base36 chars."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"{now_ms}_{suffix}"


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _to_float(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    if value is None or value == "":
        return default
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return default


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in ("1", "true", "yes")


def parse_date(value: Any) -> Optional[datetime.date]:
    """Parse "YYYY-MM-DD" (or an ISO datetime) into a date; None when invalid."""
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    text = str(value or "").strip()
    if not text:
        return None
    try:
        return datetime.date.fromisoformat(text[:10])
    except ValueError:
        return None


def parse_timestamp(iso_value: Any, epoch_ms: Any = None) -> Optional[datetime.datetime]:
    """Parse an ISO timestamp, falling back to epoch milliseconds."""
    text = str(iso_value or "").strip()
    if text:
        try:
            ts = datetime.datetime.fromisoformat(text.replace("Z", "+00:00"))
            if ts.tzinfo is None:
                ts = ts.replace(tzinfo=datetime.timezone.utc)
            return ts
        except ValueError:
            pass
    ms = _to_float(epoch_ms, None)
    if ms is None:
        return None
    return datetime.datetime.fromtimestamp(ms / 1000.0, tz=datetime.timezone.utc)


def _to_epoch_ms(ts: Optional[datetime.datetime]) -> Optional[int]:
    if ts is None:
        return None
    return int(ts.timestamp() * 1000)


def _parse_kind(value: Any) -> RecordKind:
    text = str(value or "").strip().lower()
    if not text:
        return RecordKind.PERSONAL
    try:
        return RecordKind(text)
    except ValueError:
        logger.warning("Unknown record type %r, treating as personal", value)
        return RecordKind.PERSONAL


def _parse_category(value: Any, kind: RecordKind) -> Category:
    if kind is RecordKind.SETTLEMENT:
        return Category.SETTLEMENT
    text = str(value or "").strip().lower()
    try:
        return Category(text)
    except ValueError:
        logger.warning("Unknown category %r, mapped to miscellaneous", value)
        return Category.MISCELLANEOUS


@dataclass(frozen=True)
class ExpenseRecord:
    """
    A single expense or settlement as held by the store.

    Fields:
      - key: opaque store key assigned on append (None until written)
      - id: client correlation string, informational only
      - kind: personal, shared or settlement (stored as `type`)
      - payer: party who paid (stored as `user`); equals paid_by for settlements
      - category: closed category; Category.SETTLEMENT for settlements
      - amount: full transaction amount
      - date: calendar date the record is attributed to
      - created_timestamp / updated_timestamp: creation and last-edit instants
      - split_amount / split_with / is_custom_split: shared records only
      - paid_by / paid_to / settled_by_actor: settlement records only
    """
    key: Optional[str] = None
    id: str = ""
    kind: RecordKind = RecordKind.PERSONAL
    payer: str = ""
    category: Category = Category.MISCELLANEOUS
    amount: float = 0.0
    date: Optional[datetime.date] = None
    created_timestamp: Optional[datetime.datetime] = None
    note: str = ""
    split_amount: Optional[float] = None
    split_with: Optional[str] = None
    is_custom_split: bool = False
    paid_by: Optional[str] = None
    paid_to: Optional[str] = None
    settled_by_actor: Optional[str] = None
    updated_timestamp: Optional[datetime.datetime] = None

    @property
    def is_settlement(self) -> bool:
        return self.kind is RecordKind.SETTLEMENT

    @property
    def resolved_split_amount(self) -> float:
        """Portion owed by the non-paying party; legacy records default to half."""
        if self.split_amount is None:
            return self.amount / 2
        return self.split_amount

    def sort_key(self) -> Tuple[datetime.date, float]:
        day = self.date or datetime.date.min
        created = self.created_timestamp.timestamp() if self.created_timestamp else 0.0
        return (day, created)

    def with_key(self, key: str) -> "ExpenseRecord":
        return replace(self, key=key)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to the store's plain-dict layout. The key is not part of the
        payload; the store addresses records by it.
        """
        d: Dict[str, Any] = {
            "id": self.id,
            "type": self.kind.value,
            "user": self.payer,
            "category": self.category.value,
            "amount": round(float(self.amount), 2),
            "date": self.date.isoformat() if self.date else "",
            "timestamp": self.created_timestamp.isoformat() if self.created_timestamp else "",
            "createdAt": _to_epoch_ms(self.created_timestamp),
            "note": self.note or "",
        }
        if self.kind is RecordKind.SHARED:
            d["splitAmount"] = round(self.resolved_split_amount, 2)
            d["splitWith"] = self.split_with or ""
            d["isCustomSplit"] = bool(self.is_custom_split)
        if self.kind is RecordKind.SETTLEMENT:
            d["paidBy"] = self.paid_by or ""
            d["paidTo"] = self.paid_to or ""
            d["settledBy"] = self.settled_by_actor or ""
        if self.updated_timestamp is not None:
            d["updatedAt"] = _to_epoch_ms(self.updated_timestamp)
        return d

    @staticmethod
    def from_dict(key: Optional[str], d: Dict[str, Any]) -> "ExpenseRecord":
        """
        Construct a record from a stored dict (inverse of to_dict).
        Missing or malformed fields fall back to defaults so older rows and
        hand-edited sheets stay readable.
        """
        kind = _parse_kind(d.get("type"))
        payer = str(d.get("user", "") or "").strip()
        paid_by = str(d.get("paidBy", "") or "").strip() or None
        if kind is RecordKind.SETTLEMENT and not payer:
            payer = paid_by or ""
        split_amount = _to_float(d.get("splitAmount"), None) if kind is RecordKind.SHARED else None
        return ExpenseRecord(
            key=key,
            id=str(d.get("id", "") or ""),
            kind=kind,
            payer=payer,
            category=_parse_category(d.get("category"), kind),
            amount=round(_to_float(d.get("amount"), 0.0), 2),
            date=parse_date(d.get("date")),
            created_timestamp=parse_timestamp(d.get("timestamp"), d.get("createdAt")),
            note=str(d.get("note", "") or ""),
            split_amount=split_amount,
            split_with=(str(d.get("splitWith", "") or "").strip() or None) if kind is RecordKind.SHARED else None,
            is_custom_split=_to_bool(d.get("isCustomSplit")) if kind is RecordKind.SHARED else False,
            paid_by=paid_by if kind is RecordKind.SETTLEMENT else None,
            paid_to=(str(d.get("paidTo", "") or "").strip() or None) if kind is RecordKind.SETTLEMENT else None,
            settled_by_actor=(str(d.get("settledBy", "") or "").strip() or None) if kind is RecordKind.SETTLEMENT else None,
            updated_timestamp=parse_timestamp(None, d.get("updatedAt")),
        )


def records_from_snapshot(payload: Optional[Dict[str, Dict[str, Any]]]) -> List[ExpenseRecord]:
    """Turn a store snapshot ({key: dict}) into records; None means empty."""
    if not payload:
        return []
    return [ExpenseRecord.from_dict(key, value or {}) for key, value in payload.items()]


def sort_records(records: List[ExpenseRecord]) -> List[ExpenseRecord]:
    """Newest first: date descending, creation time as tie-break."""
    return sorted(records, key=lambda r: r.sort_key(), reverse=True)


@dataclass(frozen=True)
class AttributedLine:
    """
    Per-party view of a record's financial impact.

    Fields:
      - amount: this party's share of the record. For the payer of a shared
        record that is amount - splitAmount, so the two lines of one record
        always add up to the record amount.
      - paid_amount: the full record amount on payer lines (the "attributed
        amount = amount" of the payer view), 0 on counterpart lines. Sum this
        for "who paid what" totals.
    """
    record: ExpenseRecord
    party: str
    amount: float
    is_payer: bool
    paid_amount: float = 0.0


@dataclass(frozen=True)
class Balance:
    net_amount: float = 0.0
    debtor: Optional[str] = None
    creditor: Optional[str] = None
    is_settled: bool = True

    def describe(self, currency: str = "") -> str:
        if self.is_settled:
            return "All settled up"
        return f"{self.debtor} owes {self.creditor} {currency}{self.net_amount:.2f}"


@dataclass(frozen=True)
class SettlementDraft:
    paid_by: str
    paid_to: str
    amount: float
    date: datetime.date
    note: str = ""


@dataclass(frozen=True)
class FilterCriteria:
    """
    Immutable filter passed to the pipeline. "all" disables an axis.
    For Period.CUSTOM both start and end are required.
    """
    party: str = ALL
    category: str = ALL
    kind: str = ALL
    period: Period = Period.MONTH
    start: Optional[datetime.date] = None
    end: Optional[datetime.date] = None

    @property
    def is_active(self) -> bool:
        return (
            self.party != ALL
            or self.category != ALL
            or self.kind != ALL
            or self.period is not Period.ALL
        )


@dataclass(frozen=True)
class DailyPoint:
    date: datetime.date
    by_party: Dict[str, float] = field(default_factory=dict)
    total: float = 0.0


@dataclass(frozen=True)
class Insights:
    total: float = 0.0
    transactions: int = 0
    average_per_transaction: float = 0.0
    average_daily: float = 0.0
    active_days: int = 0
    top_category: Optional[Category] = None
    top_category_amount: float = 0.0
    largest_expense: Optional[ExpenseRecord] = None
    month_change_pct: float = 0.0
    month_projection: Optional[float] = None


@dataclass(frozen=True)
class LedgerState:
    """Everything the UI derives from one store snapshot."""
    records: List[ExpenseRecord] = field(default_factory=list)
    lines: List[AttributedLine] = field(default_factory=list)
    balance: Balance = field(default_factory=Balance)
