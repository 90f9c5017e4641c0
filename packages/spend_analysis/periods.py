"""Calendar arithmetic and period partitioning.

- :func:`add_months`: month arithmetic clamped to the last day of the target
  month (Jan 31 + 1 month is Feb 28/29).
- :func:`advance`: move a date forward by a :class:`PartitionPeriod`.
- :func:`partition_transactions`: split a batch into consecutive periods.
- :func:`trailing_windows`: the last N day/week/month windows ending at a
  reference date, used by the cash-flow trend.
"""

from __future__ import annotations

import calendar
import datetime as dt
from dataclasses import dataclass
from enum import StrEnum

from .errors import InvalidParameterError
from .models import PartitionPeriod, SignConvention, Transaction, Transactions, coerce_transactions


def add_months(day: dt.date, months: int) -> dt.date:
    total = day.year * 12 + (day.month - 1) + months
    year, month = divmod(total, 12)
    month += 1
    last = calendar.monthrange(year, month)[1]
    return dt.date(year, month, min(day.day, last))


def advance(origin: dt.date, period: PartitionPeriod, times: int = 1) -> dt.date:
    """``origin`` moved forward by ``times`` whole periods.

    Multiples are computed from ``origin`` rather than by repeated stepping so
    month-end clamping does not drift (Jan 31, Feb 29, Mar 31, ...).
    """

    shifted = add_months(origin, period.month_span * times)
    return shifted + dt.timedelta(days=period.day_span * times)


def partition_transactions(
    transactions: Transactions,
    partition_period: PartitionPeriod,
    *,
    convention: SignConvention = SignConvention.INFLOW_POSITIVE,
    default_currency: str | None = None,
) -> list[list[Transaction]]:
    """Partition a batch into consecutive periods starting at its earliest date.

    Partitions are half-open ``[start, next_start)`` windows in chronological
    order; windows with no transactions between the first and last one are
    kept as empty lists so positions line up with calendar periods. Items that
    fail validation are skipped.
    """

    batch, _errors = coerce_transactions(
        transactions,
        convention=convention,
        default_currency=default_currency,
        operation="partition_transactions",
    )
    if not batch:
        return []

    ordered = sorted(batch, key=lambda t: t.date)
    origin = ordered[0].date
    partitions: list[list[Transaction]] = [[]]
    k = 1
    boundary = advance(origin, partition_period, k)
    for tx in ordered:
        while tx.date >= boundary:
            partitions.append([])
            k += 1
            boundary = advance(origin, partition_period, k)
        partitions[-1].append(tx)
    return partitions


class PeriodType(StrEnum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"

    @property
    def length(self) -> PartitionPeriod:
        return _PERIOD_LENGTHS[self]


_PERIOD_LENGTHS = {
    PeriodType.DAY: PartitionPeriod(days=1),
    PeriodType.WEEK: PartitionPeriod(weeks=1),
    PeriodType.MONTH: PartitionPeriod(months=1),
}


@dataclass(frozen=True, slots=True)
class DateWindow:
    """Inclusive date window with a display label."""

    label: str
    start: dt.date
    end: dt.date

    def __contains__(self, day: object) -> bool:
        return isinstance(day, dt.date) and self.start <= day <= self.end


def trailing_windows(period_type: PeriodType | str, count: int, as_of: dt.date) -> list[DateWindow]:
    """The ``count`` most recent windows ending at ``as_of``, oldest first.

    Days are single dates; weeks are seven-day blocks ending at ``as_of``;
    months are calendar months, the last one being the month of ``as_of``.
    """

    if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
        raise InvalidParameterError(f"periods must be a positive integer, got {count!r}")
    try:
        kind = PeriodType(period_type)
    except ValueError:
        allowed = ", ".join(p.value for p in PeriodType)
        raise InvalidParameterError(
            f"period_type must be one of: {allowed}; got {period_type!r}"
        ) from None

    length = kind.length
    if kind is PeriodType.MONTH:
        origin = add_months(as_of.replace(day=1), 1 - count)
    else:
        origin = as_of - dt.timedelta(days=length.day_span * count - 1)

    windows: list[DateWindow] = []
    for k in range(count):
        start = advance(origin, length, k)
        end = advance(origin, length, k + 1) - dt.timedelta(days=1)
        label = start.strftime("%Y-%m") if kind is PeriodType.MONTH else start.isoformat()
        windows.append(DateWindow(label, start, end))
    return windows


__all__ = [
    "DateWindow",
    "PeriodType",
    "add_months",
    "advance",
    "partition_transactions",
    "trailing_windows",
]
