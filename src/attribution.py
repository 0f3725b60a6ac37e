"""
attribution.py - expand records into per-party attributed lines

Rules:
  - personal: one line for the payer carrying the full amount
  - shared: a payer line carrying the payer's own share (amount - split) and
    a counterpart line carrying the split; paid_amount on the payer line keeps
    the full amount that was paid
  - settlement: a paidBy line and a paidTo line, both with the full amount

Summing `amount` by party gives each party's share of spending; summing
`paid_amount` gives what each party paid. Transaction lists shown without a
party filter must keep only is_payer lines, see payer_lines().
"""

from typing import Dict, Iterable, List
import logging

from src.config import AppConfig
from src.models import AttributedLine, ExpenseRecord, RecordKind

logger = logging.getLogger(__name__)


def attribute_record(record: ExpenseRecord, config: AppConfig) -> List[AttributedLine]:
    """Lines for a single record; empty when the record names an unknown party."""
    if record.kind is RecordKind.SETTLEMENT:
        if (
            not config.is_party(record.paid_by)
            or not config.is_party(record.paid_to)
            or record.paid_by == record.paid_to
        ):
            logger.warning(
                "Unattributable settlement key=%s id=%s (paidBy=%r, paidTo=%r)",
                record.key, record.id, record.paid_by, record.paid_to,
            )
            return []
        return [
            AttributedLine(record, record.paid_by, record.amount, True, record.amount),
            AttributedLine(record, record.paid_to, record.amount, False, 0.0),
        ]

    if not config.is_party(record.payer):
        logger.warning(
            "Unattributable %s record key=%s id=%s (payer=%r)",
            record.kind.value, record.key, record.id, record.payer,
        )
        return []

    if record.kind is RecordKind.SHARED:
        split = record.resolved_split_amount
        return [
            AttributedLine(record, record.payer, record.amount - split, True, record.amount),
            AttributedLine(record, config.other_party(record.payer), split, False, 0.0),
        ]

    return [AttributedLine(record, record.payer, record.amount, True, record.amount)]


def attribute_records(records: Iterable[ExpenseRecord], config: AppConfig) -> List[AttributedLine]:
    """Expand records in order; the input is never modified."""
    lines: List[AttributedLine] = []
    for record in records:
        lines.extend(attribute_record(record, config))
    return lines


def payer_lines(lines: Iterable[AttributedLine]) -> List[AttributedLine]:
    """One line per record: the paying side."""
    return [line for line in lines if line.is_payer]


def party_line_totals(
    lines: Iterable[AttributedLine],
    config: AppConfig,
    include_settlements: bool = False,
    paid: bool = False,
) -> Dict[str, float]:
    """
    Sum lines by party. With paid=True the paid_amount column is summed
    instead of the attributed share.
    """
    totals = {p: 0.0 for p in config.parties}
    for line in lines:
        if line.record.is_settlement and not include_settlements:
            continue
        value = line.paid_amount if paid else line.amount
        totals[line.party] = round(totals.get(line.party, 0.0) + value, 2)
    return totals
