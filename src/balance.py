"""
balance.py - net two-party balance

A pure fold over raw records, so it can be run on the full history or on
any filtered subset. Only shared and settlement records move the balance.
"""

from typing import Iterable
import logging

from src.config import AppConfig
from src.models import EPSILON, Balance, ExpenseRecord, RecordKind

logger = logging.getLogger(__name__)


def calculate_balance(records: Iterable[ExpenseRecord], config: AppConfig) -> Balance:
    """
    Compute who owes whom.

    Interpretation:
        - shared: the non-paying party owes the record's split amount
        - settlement: the paying party's obligation drops by the amount;
          overpaying is allowed and flips the direction
        - net = owed by B - owed by A; below EPSILON the pair is settled
    """
    a, b = config.parties
    owed = {a: 0.0, b: 0.0}

    for r in records:
        if r.kind is RecordKind.SHARED:
            debtor = config.other_party(r.payer)
            if debtor is None:
                logger.warning("Skipping shared record key=%s with unknown payer %r", r.key, r.payer)
                continue
            owed[debtor] += r.resolved_split_amount
        elif r.kind is RecordKind.SETTLEMENT:
            if not config.is_party(r.paid_by) or not config.is_party(r.paid_to) or r.paid_by == r.paid_to:
                logger.warning(
                    "Skipping settlement key=%s with invalid parties %r -> %r", r.key, r.paid_by, r.paid_to
                )
                continue
            owed[r.paid_by] -= r.amount

    net = owed[b] - owed[a]
    if abs(net) < EPSILON:
        return Balance(net_amount=0.0, debtor=None, creditor=None, is_settled=True)
    debtor = b if net > 0 else a
    return Balance(
        net_amount=round(abs(net), 2),
        debtor=debtor,
        creditor=config.other_party(debtor),
        is_settled=False,
    )
