"""
filters.py - filter & aggregation pipeline

filter_records() narrows raw records by party / category / kind / period;
filter_lines() applies the same criteria to attributed lines. Every
aggregation here skips settlement records: they clear balances, they are
not spending.
"""

from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Tuple
import calendar
import datetime

from src.attribution import attribute_records, party_line_totals, payer_lines
from src.config import AppConfig
from src.models import (
    ALL,
    AttributedLine,
    Category,
    DailyPoint,
    ExpenseRecord,
    FilterCriteria,
    Insights,
    Period,
    RecordKind,
)


def _value(x) -> str:
    return x.value if hasattr(x, "value") else str(x)


def period_start(criteria: FilterCriteria, today: datetime.date) -> Optional[datetime.date]:
    """Inclusive lower bound of the criteria's period (None = unbounded)."""
    if criteria.period is Period.TODAY:
        return today
    if criteria.period is Period.WEEK:
        return today - datetime.timedelta(days=7)
    if criteria.period is Period.MONTH:
        return today.replace(day=1)
    if criteria.period is Period.CUSTOM:
        return criteria.start
    return None


def in_period(day: Optional[datetime.date], criteria: FilterCriteria, today: Optional[datetime.date] = None) -> bool:
    if criteria.period is Period.ALL:
        return True
    if day is None:
        return False
    today = today or datetime.date.today()
    if criteria.period is Period.TODAY:
        return day == today
    if criteria.period is Period.CUSTOM:
        if criteria.start is None or criteria.end is None:
            return False
        # dates carry no time, so `<= end` keeps the whole end day
        return criteria.start <= day <= criteria.end
    return day >= period_start(criteria, today)


def _matches(record: ExpenseRecord, criteria: FilterCriteria, today: datetime.date) -> bool:
    if criteria.category != ALL and record.category.value != _value(criteria.category):
        return False
    if criteria.kind != ALL and record.kind.value != _value(criteria.kind):
        return False
    return in_period(record.date, criteria, today)


def filter_records(
    records: Iterable[ExpenseRecord],
    criteria: FilterCriteria,
    today: Optional[datetime.date] = None,
) -> List[ExpenseRecord]:
    """Records matching every active axis; `party` matches the paying party."""
    today = today or datetime.date.today()
    out = []
    for r in records:
        if criteria.party != ALL and r.payer != criteria.party:
            continue
        if _matches(r, criteria, today):
            out.append(r)
    return out


def filter_lines(
    lines: Iterable[AttributedLine],
    criteria: FilterCriteria,
    today: Optional[datetime.date] = None,
) -> List[AttributedLine]:
    """
    Attributed lines matching the criteria. `party` matches the attributed
    party, so a shared expense shows up for both sides. Without a party
    filter only payer lines are kept, one per record.
    """
    today = today or datetime.date.today()
    if criteria.party == ALL:
        lines = payer_lines(lines)
    else:
        lines = [line for line in lines if line.party == criteria.party]
    return [line for line in lines if _matches(line.record, criteria, today)]


def _spending(records: Iterable[ExpenseRecord]) -> List[ExpenseRecord]:
    return [r for r in records if not r.is_settlement]


def sum_by_category(records: Iterable[ExpenseRecord]) -> "OrderedDict[Category, float]":
    """Category totals, largest first; categories summing to zero are dropped."""
    totals: Dict[Category, float] = {}
    for r in _spending(records):
        totals[r.category] = totals.get(r.category, 0.0) + r.amount
    ordered = sorted(
        ((c, round(v, 2)) for c, v in totals.items() if round(v, 2) > 0),
        key=lambda item: item[1],
        reverse=True,
    )
    return OrderedDict(ordered)


def paid_by_party(records: Iterable[ExpenseRecord], config: AppConfig) -> Dict[str, float]:
    """What each party paid out of pocket."""
    totals = {p: 0.0 for p in config.parties}
    for r in _spending(records):
        if r.payer in totals:
            totals[r.payer] = round(totals[r.payer] + r.amount, 2)
    return totals


def share_by_party(records: Iterable[ExpenseRecord], config: AppConfig) -> Dict[str, float]:
    """Each party's share of spending, shared expenses split per their split amount."""
    return party_line_totals(attribute_records(_spending(records), config), config)


def sum_by_kind(records: Iterable[ExpenseRecord]) -> Dict[RecordKind, float]:
    totals = {RecordKind.PERSONAL: 0.0, RecordKind.SHARED: 0.0}
    for r in _spending(records):
        totals[r.kind] = round(totals[r.kind] + r.amount, 2)
    return totals


def shared_contribution(records: Iterable[ExpenseRecord], config: AppConfig) -> Dict[str, float]:
    """Amount of shared expenses fronted by each party."""
    return paid_by_party((r for r in records if r.kind is RecordKind.SHARED), config)


def daily_series(
    records: Iterable[ExpenseRecord],
    config: AppConfig,
    days: Optional[int] = None,
    today: Optional[datetime.date] = None,
) -> List[DailyPoint]:
    """Trailing `days`-day spending per paying party, oldest day first."""
    today = today or datetime.date.today()
    days = days or config.trend_days
    window = [today - datetime.timedelta(days=i) for i in range(days - 1, -1, -1)]
    buckets = {d: {p: 0.0 for p in config.parties} for d in window}
    for r in _spending(records):
        bucket = buckets.get(r.date)
        if bucket is None or r.payer not in bucket:
            continue
        bucket[r.payer] += r.amount
    points = []
    for d in window:
        by_party = {p: round(v, 2) for p, v in buckets[d].items()}
        points.append(DailyPoint(date=d, by_party=by_party, total=round(sum(by_party.values()), 2)))
    return points


def _month_bounds(today: datetime.date) -> Tuple[datetime.date, datetime.date, datetime.date]:
    this_start = today.replace(day=1)
    last_end = this_start - datetime.timedelta(days=1)
    return this_start, last_end.replace(day=1), last_end


def summarize(records: Iterable[ExpenseRecord], today: Optional[datetime.date] = None) -> Insights:
    """
    Headline figures for the insights panel: totals, averages, top category,
    largest expense, month-over-month change and a month-end projection.
    """
    today = today or datetime.date.today()
    spend = _spending(records)
    if not spend:
        return Insights()

    total = round(sum(r.amount for r in spend), 2)
    active_days = len({r.date for r in spend if r.date})
    by_category = sum_by_category(spend)
    top_category, top_amount = next(iter(by_category.items()), (None, 0.0))
    largest = max(spend, key=lambda r: r.amount)

    this_start, last_start, last_end = _month_bounds(today)
    this_month = sum(r.amount for r in spend if r.date and r.date >= this_start)
    last_month = sum(r.amount for r in spend if r.date and last_start <= r.date <= last_end)
    change = ((this_month - last_month) / last_month * 100) if last_month > 0 else 0.0

    days_in_month = calendar.monthrange(today.year, today.month)[1]
    projection = None
    if today.day < days_in_month:
        projection = round(this_month / today.day * days_in_month, 2)

    return Insights(
        total=total,
        transactions=len(spend),
        average_per_transaction=round(total / len(spend), 2),
        average_daily=round(total / active_days, 2) if active_days else 0.0,
        active_days=active_days,
        top_category=top_category,
        top_category_amount=top_amount,
        largest_expense=largest,
        month_change_pct=round(change, 1),
        month_projection=projection,
    )
