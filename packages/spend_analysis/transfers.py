"""Same-day transfer-pair detection.

Two transactions on the same date, one income-classified and one
expense-classified, whose absolute amounts differ by less than
:data:`TRANSFER_TOLERANCE` are taken to be money moving between the user's
own accounts. Every member of every such pair is excluded from cash-flow
totals; a transaction may pair with several counterparts.

Expenses are bucketed per date and sorted by absolute amount, so each income
finds its counterparts with two bisections instead of a scan over the whole
day.
"""

from __future__ import annotations

import bisect
import datetime as dt
from collections.abc import Sequence
from decimal import Decimal

from .logging_setup import get_logger
from .models import Classification, Transaction, TransferPair

_logger = get_logger("spend_analysis.transfers")

TRANSFER_TOLERANCE = Decimal("0.01")


def _pair_positions(
    transactions: Sequence[Transaction], tolerance: Decimal
) -> list[tuple[int, int]]:
    incomes: dict[dt.date, list[int]] = {}
    expenses: dict[dt.date, list[int]] = {}
    for pos, tx in enumerate(transactions):
        if tx.classification is Classification.INCOME:
            incomes.setdefault(tx.date, []).append(pos)
        elif tx.classification is Classification.EXPENSE:
            expenses.setdefault(tx.date, []).append(pos)

    pairs: list[tuple[int, int]] = []
    for day, income_positions in incomes.items():
        expense_positions = expenses.get(day)
        if not expense_positions:
            continue
        expense_positions = sorted(expense_positions, key=lambda p: transactions[p].abs_amount)
        keys = [transactions[p].abs_amount for p in expense_positions]
        for i in income_positions:
            amount = transactions[i].abs_amount
            lo = bisect.bisect_right(keys, amount - tolerance)
            hi = bisect.bisect_left(keys, amount + tolerance)
            pairs.extend((i, expense_positions[j]) for j in range(lo, hi))
    return pairs


def find_transfer_pairs(
    transactions: Sequence[Transaction], *, tolerance: Decimal = TRANSFER_TOLERANCE
) -> list[TransferPair]:
    """Every (income, expense) pair that looks like an internal transfer.

    Pairs are ordered by the income's position, then by expense amount.
    """

    return [
        TransferPair(transactions[i], transactions[j])
        for i, j in _pair_positions(transactions, tolerance)
    ]


def exclude_transfers(
    transactions: Sequence[Transaction], *, tolerance: Decimal = TRANSFER_TOLERANCE
) -> tuple[list[Transaction], list[TransferPair]]:
    """Drop every member of every transfer pair, preserving input order.

    Returns ``(kept, pairs)``.
    """

    positions = _pair_positions(transactions, tolerance)
    if not positions:
        return list(transactions), []

    dropped = {p for pair in positions for p in pair}
    kept = [tx for pos, tx in enumerate(transactions) if pos not in dropped]
    pairs = [TransferPair(transactions[i], transactions[j]) for i, j in positions]
    _logger.debug(
        "exclude_transfers:done pairs=%d dropped=%d kept=%d", len(pairs), len(dropped), len(kept)
    )
    return kept, pairs


__all__ = ["TRANSFER_TOLERANCE", "exclude_transfers", "find_transfer_pairs"]
