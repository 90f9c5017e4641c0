"""Public API interfaces and orchestration for the ``spend_analysis`` package.

Most callables live in their own modules and are re-exported here as a stable
import surface. The functions defined in this module combine them:
:func:`categorize_transactions` feeds recurring merchants found by the
recurrence detector into batch categorization, and
:func:`subscription_report` runs detection and summarizes the result.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Collection

from .cashflow import CashFlowOptions, CashFlowSummary, CashFlowTrend, cash_flow_trend, summarize
from .classifier import AutoCategorizeResult, Classifier, auto_categorize
from .logging_setup import get_logger
from .models import SignConvention, Transactions, coerce_transactions
from .periods import partition_transactions
from .recurrence import (
    DEFAULT_LOOKBACK_DAYS,
    SubscriptionReport,
    detect_subscriptions,
    scan_subscriptions,
    summarize_subscriptions,
)
from .transfers import find_transfer_pairs

_logger = get_logger("spend_analysis.api")


def categorize_transactions(
    transactions: Transactions,
    classifier: Classifier | None = None,
    *,
    only_uncategorized: bool = True,
    account_ids: Collection[str] | None = None,
    limit: int | None = None,
    default_category: str | None = None,
    detect_recurring: bool = True,
    lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    convention: SignConvention = SignConvention.INFLOW_POSITIVE,
    default_currency: str | None = None,
) -> AutoCategorizeResult:
    """Propose categories for a batch.

    Parameters
    ----------
    transactions:
        Validated transactions and/or raw ledger records.
    classifier:
        The classifier to use; defaults to one seeded with the built-in rules.
    detect_recurring:
        When true, subscriptions are detected over the same batch first and
        their merchants count as recurring for ``isRecurring`` rule
        conditions. Otherwise only ``recurring``/``subscription`` tags do.

    The remaining keyword arguments are passed to
    :func:`~spend_analysis.classifier.auto_categorize`.
    """

    if classifier is None:
        classifier = Classifier.with_default_rules()

    batch, errors = coerce_transactions(
        transactions,
        convention=convention,
        default_currency=default_currency,
        operation="categorize_transactions",
    )

    recurring: frozenset[str] = frozenset()
    if detect_recurring:
        subs = detect_subscriptions(batch, lookback_days)
        recurring = frozenset(s.merchant for s in subs)
        _logger.debug("categorize_transactions:recurring merchants=%d", len(recurring))

    result = auto_categorize(
        batch,
        classifier,
        only_uncategorized=only_uncategorized,
        account_ids=account_ids,
        limit=limit,
        default_category=default_category,
        recurring_merchants=recurring,
    )
    if not errors:
        return result
    return AutoCategorizeResult(
        processed=result.processed,
        changes=result.changes,
        errors=tuple(errors) + result.errors,
    )


def subscription_report(
    transactions: Transactions,
    lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    *,
    as_of: dt.date | None = None,
    convention: SignConvention = SignConvention.INFLOW_POSITIVE,
    default_currency: str | None = None,
) -> SubscriptionReport:
    """Detect subscriptions and summarize them, keeping the skipped items."""

    subs, errors = scan_subscriptions(
        transactions,
        lookback_days,
        as_of=as_of,
        convention=convention,
        default_currency=default_currency,
    )
    return summarize_subscriptions(subs, errors=errors)


__all__ = [
    "CashFlowOptions",
    "CashFlowSummary",
    "CashFlowTrend",
    "cash_flow_trend",
    "categorize_transactions",
    "detect_subscriptions",
    "find_transfer_pairs",
    "partition_transactions",
    "subscription_report",
    "summarize",
    "summarize_subscriptions",
]
