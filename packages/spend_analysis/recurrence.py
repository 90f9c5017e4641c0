"""Recurring-payment (subscription) detection from transaction history.

Public API:
    - :func:`detect_subscriptions` / :func:`scan_subscriptions`
    - :func:`summarize_subscriptions` for totals and insights
    - :class:`Subscription`, :class:`Frequency`, :class:`SubscriptionReport`

Detection groups expense transactions by ``(merchant or name, |amount|)``,
looks at the spacing of each group's dates and keeps groups whose mean
interval falls in a weekly, monthly or yearly band and whose individual
intervals agree with that period often enough.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum
from typing import Any

from .errors import InvalidParameterError, ItemError
from .logging_setup import get_logger
from .models import (
    Classification,
    SignConvention,
    Transaction,
    Transactions,
    coerce_transactions,
    format_amount,
    round_cents,
)
from .periods import add_months

_logger = get_logger("spend_analysis.recurrence")

MIN_OCCURRENCES = 3
CONFIDENCE_THRESHOLD = 0.7
INTERVAL_TOLERANCE = 0.15
DEFAULT_LOOKBACK_DAYS = 90


class Frequency(StrEnum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


@dataclass(frozen=True, slots=True)
class _Band:
    frequency: Frequency
    low: float
    high: float
    nominal_days: int


# Mean-interval bands (inclusive) and the nominal period used for confidence
_BANDS: tuple[_Band, ...] = (
    _Band(Frequency.WEEKLY, 6, 8, 7),
    _Band(Frequency.MONTHLY, 25, 35, 30),
    _Band(Frequency.YEARLY, 350, 380, 365),
)

_PER_YEAR = {Frequency.WEEKLY: 52, Frequency.MONTHLY: 12, Frequency.YEARLY: 1}


def classify_interval(mean_days: float) -> Frequency | None:
    band = _band_for(mean_days)
    return band.frequency if band is not None else None


def _band_for(mean_days: float) -> _Band | None:
    for band in _BANDS:
        if band.low <= mean_days <= band.high:
            return band
    return None


def interval_confidence(intervals: Sequence[int], nominal_days: int) -> float:
    """Fraction of ``intervals`` within ±15% of ``nominal_days``."""

    if not intervals:
        return 0.0
    tolerance = nominal_days * INTERVAL_TOLERANCE
    within = sum(1 for i in intervals if abs(i - nominal_days) <= tolerance)
    return within / len(intervals)


def next_expected_date(last_date: dt.date, frequency: Frequency) -> dt.date:
    """Advance by one period: 7 days, one calendar month or one calendar year.

    Month and year steps clamp to the last day of the target month.
    """

    if frequency is Frequency.WEEKLY:
        return last_date + dt.timedelta(days=7)
    if frequency is Frequency.MONTHLY:
        return add_months(last_date, 1)
    return add_months(last_date, 12)


@dataclass(frozen=True, slots=True)
class Subscription:
    merchant: str
    amount: Decimal
    frequency: Frequency
    last_date: dt.date
    next_expected_date: dt.date
    confidence: float
    transactions: tuple[Transaction, ...]

    @property
    def transaction_count(self) -> int:
        return len(self.transactions)

    @property
    def total_spent(self) -> Decimal:
        return self.amount * self.transaction_count

    @property
    def yearly_estimate(self) -> Decimal:
        return self.amount * _PER_YEAR[self.frequency]

    def to_dict(self, *, include_expected: bool = True) -> dict[str, Any]:
        out: dict[str, Any] = {
            "merchant": self.merchant,
            "amount": format_amount(self.amount),
            "frequency": self.frequency.value,
            "lastDate": self.last_date.isoformat(),
            "nextExpectedDate": self.next_expected_date.isoformat(),
            "confidence": round(self.confidence, 4),
            "transactionCount": self.transaction_count,
            "totalSpent": format_amount(self.total_spent),
            "yearlyEstimate": format_amount(self.yearly_estimate),
        }
        if not include_expected:
            del out["nextExpectedDate"]
        return out


def scan_subscriptions(
    transactions: Transactions,
    lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    *,
    as_of: dt.date | None = None,
    convention: SignConvention = SignConvention.INFLOW_POSITIVE,
    default_currency: str | None = None,
) -> tuple[list[Subscription], list[ItemError]]:
    """Like :func:`detect_subscriptions` but also returns the skipped items."""

    if isinstance(lookback_days, bool) or not isinstance(lookback_days, int) or lookback_days <= 0:
        raise InvalidParameterError(
            f"lookback_days must be a positive integer, got {lookback_days!r}"
        )

    batch, errors = coerce_transactions(
        transactions,
        convention=convention,
        default_currency=default_currency,
        operation="detect_subscriptions",
    )
    if not batch:
        return [], errors

    end = as_of or max(t.date for t in batch)
    start = end - dt.timedelta(days=lookback_days)

    groups: dict[tuple[str, Decimal], list[Transaction]] = {}
    for tx in batch:
        if tx.classification is not Classification.EXPENSE or tx.excluded:
            continue
        if not start <= tx.date <= end:
            continue
        merchant = tx.merchant_or_name
        if not merchant:
            continue
        groups.setdefault((merchant, round_cents(tx.abs_amount)), []).append(tx)

    found: list[Subscription] = []
    for (merchant, amount), members in groups.items():
        if len(members) < MIN_OCCURRENCES:
            continue
        members.sort(key=lambda t: t.date)
        dates = [t.date for t in members]
        intervals = [(b - a).days for a, b in zip(dates, dates[1:])]
        mean = sum(intervals) / len(intervals)
        band = _band_for(mean)
        if band is None:
            continue
        confidence = interval_confidence(intervals, band.nominal_days)
        if confidence <= CONFIDENCE_THRESHOLD:
            _logger.debug(
                "detect_subscriptions:low_confidence merchant=%s amount=%s confidence=%.2f",
                merchant,
                amount,
                confidence,
            )
            continue
        last = dates[-1]
        found.append(
            Subscription(
                merchant=merchant,
                amount=amount,
                frequency=band.frequency,
                last_date=last,
                next_expected_date=next_expected_date(last, band.frequency),
                confidence=confidence,
                transactions=tuple(members),
            )
        )

    found.sort(key=lambda s: s.confidence, reverse=True)
    _logger.info(
        "detect_subscriptions:done window_start=%s window_end=%s groups=%d found=%d",
        start.isoformat(),
        end.isoformat(),
        len(groups),
        len(found),
    )
    return found, errors


def detect_subscriptions(
    transactions: Transactions,
    lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    *,
    as_of: dt.date | None = None,
    convention: SignConvention = SignConvention.INFLOW_POSITIVE,
    default_currency: str | None = None,
) -> list[Subscription]:
    """Detect recurring payments, highest confidence first.

    Only non-excluded expense transactions dated within
    ``[as_of - lookback_days, as_of]`` are considered. ``as_of`` defaults to
    the latest date in the batch. Malformed items are skipped, never raised.
    """

    found, _errors = scan_subscriptions(
        transactions,
        lookback_days,
        as_of=as_of,
        convention=convention,
        default_currency=default_currency,
    )
    return found


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------

_MANY_SUBSCRIPTIONS = 10
_MONTHLY_TOTAL_ALERT = Decimal("100")


@dataclass(frozen=True, slots=True)
class SubscriptionReport:
    subscriptions: tuple[Subscription, ...]
    monthly_total: Decimal
    yearly_total: Decimal
    insights: tuple[str, ...]
    errors: tuple[ItemError, ...] = ()

    def to_dict(self, *, include_expected: bool = True) -> dict[str, Any]:
        return {
            "summary": {
                "subscriptionsFound": len(self.subscriptions),
                "monthlyTotal": format_amount(self.monthly_total),
                "yearlyTotal": format_amount(self.yearly_total),
            },
            "subscriptions": [
                s.to_dict(include_expected=include_expected) for s in self.subscriptions
            ],
            "insights": list(self.insights),
            "errors": [e.to_dict() for e in self.errors],
        }


def summarize_subscriptions(
    subscriptions: Sequence[Subscription], *, errors: Sequence[ItemError] = ()
) -> SubscriptionReport:
    """Totals and review hints for a detection result."""

    monthly_total = sum(
        (s.amount for s in subscriptions if s.frequency is Frequency.MONTHLY), Decimal(0)
    )
    yearly_total = sum((s.yearly_estimate for s in subscriptions), Decimal(0))

    insights: list[str] = []
    if len(subscriptions) > _MANY_SUBSCRIPTIONS:
        insights.append(
            f"You have {len(subscriptions)} subscriptions - consider reviewing if you use them all"
        )
    if monthly_total > _MONTHLY_TOTAL_ALERT:
        insights.append(
            f"Your monthly subscriptions total {format_amount(monthly_total)} - "
            f"that's {format_amount(yearly_total)} per year"
        )

    return SubscriptionReport(
        subscriptions=tuple(subscriptions),
        monthly_total=monthly_total,
        yearly_total=yearly_total,
        insights=tuple(insights),
        errors=tuple(errors),
    )


__all__ = [
    "CONFIDENCE_THRESHOLD",
    "DEFAULT_LOOKBACK_DAYS",
    "Frequency",
    "MIN_OCCURRENCES",
    "Subscription",
    "SubscriptionReport",
    "classify_interval",
    "detect_subscriptions",
    "interval_confidence",
    "next_expected_date",
    "scan_subscriptions",
    "summarize_subscriptions",
]
