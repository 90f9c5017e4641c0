"""Cash-flow aggregation: totals, breakdowns, insights and multi-period trends.

Public API:
    - :func:`summarize` -> :class:`CashFlowSummary`
    - :func:`cash_flow_trend` -> :class:`CashFlowTrend`
    - :func:`calculate_trend` for the improving/declining/stable label
    - :class:`CashFlowOptions` for filtering and grouping switches

Inflow and outflow are non-negative magnitudes: inflow sums ``|amount|`` over
income-classified transactions, outflow over expense-classified ones.
Transfer-classified transactions count in neither but still count as
transactions. Insights are derived from the computed totals only and never
alter them.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Collection, Iterable, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from .classifier import Classifier
from .errors import InvalidParameterError, ItemError
from .logging_setup import get_logger
from .models import (
    Classification,
    SignConvention,
    Transaction,
    Transactions,
    coerce_transactions,
    format_amount,
)
from .periods import PeriodType, trailing_windows
from .transfers import exclude_transfers as drop_transfer_pairs

_logger = get_logger("spend_analysis.cashflow")

UNCATEGORIZED = "Uncategorized"
UNKNOWN_ACCOUNT = "Unknown Account"

# Insight thresholds
DAILY_NET_THRESHOLD = Decimal("50")
LARGE_TRANSACTION_FACTOR = Decimal("3")
WEEKEND_FACTOR = Decimal("1.5")

_ZERO = Decimal(0)


def _require_positive_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidParameterError(f"{name} must be a positive integer, got {value!r}")
    return value


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------


class CashFlowOptions(BaseModel):
    """Switches for :func:`summarize`.

    Accepts camelCase (``accountIds``, ``excludeTransfers``...) or snake_case
    keys through :meth:`from_mapping`. ``as_of`` restricts the batch to
    ``[as_of - period_days, as_of]``; ``classifier`` fills missing categories
    in the category breakdown. ``convention`` and ``default_currency`` apply
    to raw records on ingestion.
    """

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )

    account_ids: tuple[str, ...] | None = None
    exclude_transfers: bool = True
    group_by_category: bool = False
    group_by_account: bool = False
    include_insights: bool = True
    as_of: dt.date | None = None
    classifier: Classifier | None = None
    convention: SignConvention = SignConvention.INFLOW_POSITIVE
    default_currency: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> CashFlowOptions:
        try:
            return cls.model_validate(dict(data))
        except ValidationError as e:
            details = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'options'}: {err['msg']}"
                for err in e.errors()
            )
            raise InvalidParameterError(f"invalid cash-flow options: {details}") from e


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FlowBucket:
    inflow: Decimal = _ZERO
    outflow: Decimal = _ZERO
    count: int = 0

    @property
    def net(self) -> Decimal:
        return self.inflow - self.outflow

    def plus(self, tx: Transaction) -> FlowBucket:
        if tx.classification is Classification.INCOME:
            return FlowBucket(self.inflow + tx.abs_amount, self.outflow, self.count + 1)
        if tx.classification is Classification.EXPENSE:
            return FlowBucket(self.inflow, self.outflow + tx.abs_amount, self.count + 1)
        return FlowBucket(self.inflow, self.outflow, self.count + 1)

    def to_dict(self, *, with_count: bool = False) -> dict[str, Any]:
        out: dict[str, Any] = {
            "inflow": format_amount(self.inflow),
            "outflow": format_amount(self.outflow),
            "net": format_amount(self.net),
        }
        if with_count:
            out["transactionCount"] = self.count
        return out


@dataclass(frozen=True, slots=True)
class Period:
    days: int
    start: dt.date | None = None
    end: dt.date | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "days": self.days,
            "start": self.start.isoformat() if self.start else None,
            "end": self.end.isoformat() if self.end else None,
        }


@dataclass(frozen=True, slots=True)
class TransactionCount:
    total: int = 0
    filtered: int = 0
    inflows: int = 0
    outflows: int = 0
    transfers: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "filtered": self.filtered,
            "inflows": self.inflows,
            "outflows": self.outflows,
            "transfers": self.transfers,
        }


@dataclass(frozen=True, slots=True)
class CashFlowSummary:
    period: Period
    inflow: Decimal
    outflow: Decimal
    by_day: dict[dt.date, FlowBucket]
    transaction_count: TransactionCount
    insights: tuple[str, ...] = ()
    by_category: dict[str, FlowBucket] | None = None
    by_account: dict[str, FlowBucket] | None = None
    errors: tuple[ItemError, ...] = ()

    @property
    def net_flow(self) -> Decimal:
        return self.inflow - self.outflow

    @property
    def avg_daily_inflow(self) -> Decimal:
        return self.inflow / self.period.days

    @property
    def avg_daily_outflow(self) -> Decimal:
        return self.outflow / self.period.days

    @property
    def avg_daily_net(self) -> Decimal:
        return self.net_flow / self.period.days

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "period": self.period.to_dict(),
            "inflow": format_amount(self.inflow),
            "outflow": format_amount(self.outflow),
            "netFlow": format_amount(self.net_flow),
            "avgDailyInflow": format_amount(self.avg_daily_inflow),
            "avgDailyOutflow": format_amount(self.avg_daily_outflow),
            "avgDailyNet": format_amount(self.avg_daily_net),
            "byDay": {d.isoformat(): b.to_dict() for d, b in sorted(self.by_day.items())},
            "transactionCount": self.transaction_count.to_dict(),
            "insights": list(self.insights),
            "errors": [e.to_dict() for e in self.errors],
        }
        if self.by_category is not None:
            out["byCategory"] = {k: b.to_dict() for k, b in self.by_category.items()}
        if self.by_account is not None:
            out["byAccount"] = {k: b.to_dict(with_count=True) for k, b in self.by_account.items()}
        return out


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def _filter_batch(
    batch: list[Transaction], period_days: int, options: CashFlowOptions
) -> list[Transaction]:
    kept = [t for t in batch if not t.excluded]
    if options.account_ids:
        wanted = set(options.account_ids)
        kept = [t for t in kept if t.account_id in wanted]
    if options.as_of is not None:
        start = options.as_of - dt.timedelta(days=period_days)
        kept = [t for t in kept if start <= t.date <= options.as_of]
    return kept


def _bucket_by(
    transactions: Iterable[Transaction], key_of: Any
) -> dict[Any, FlowBucket]:
    buckets: dict[Any, FlowBucket] = {}
    for tx in transactions:
        key = key_of(tx)
        buckets[key] = buckets.get(key, FlowBucket()).plus(tx)
    return buckets


def _account_key(tx: Transaction) -> str:
    if tx.account is None:
        return UNKNOWN_ACCOUNT
    return tx.account.name or tx.account.id


def _insights(
    transactions: Sequence[Transaction],
    by_day: Mapping[dt.date, FlowBucket],
    *,
    net_flow: Decimal,
    period_days: int,
    avg_daily_outflow: Decimal,
) -> list[str]:
    insights: list[str] = []

    if net_flow < 0:
        insights.append(
            f"Negative cash flow: spending exceeds income by {format_amount(-net_flow)}"
        )
    elif net_flow > 0:
        insights.append(f"Positive cash flow: {format_amount(net_flow)} surplus")

    avg_daily_net = net_flow / period_days
    if avg_daily_net < -DAILY_NET_THRESHOLD:
        insights.append(f"Average daily deficit: {format_amount(-avg_daily_net)}")
    elif avg_daily_net > DAILY_NET_THRESHOLD:
        insights.append(f"Average daily surplus: {format_amount(avg_daily_net)}")

    if avg_daily_outflow <= 0:
        return insights

    threshold = avg_daily_outflow * LARGE_TRANSACTION_FACTOR
    large = sum(1 for t in transactions if t.abs_amount > threshold)
    if large:
        insights.append(f"{large} large transactions detected (>{format_amount(threshold)})")

    # date.weekday(): 5=Saturday, 6=Sunday
    weekend_outflow = sum(
        (b.outflow for d, b in by_day.items() if d.weekday() >= 5), _ZERO
    )
    weekend_avg = weekend_outflow / (Decimal(period_days) * 2 / 7)
    if weekend_avg > avg_daily_outflow * WEEKEND_FACTOR:
        pct = (weekend_avg / avg_daily_outflow - 1) * 100
        insights.append(f"Weekend spending is {pct:.1f}% higher than daily average")

    return insights


def summarize(
    transactions: Transactions,
    period_days: int,
    options: CashFlowOptions | Mapping[str, Any] | None = None,
) -> CashFlowSummary:
    """Aggregate a batch into a :class:`CashFlowSummary`.

    Parameters
    ----------
    transactions:
        Validated transactions and/or raw ledger records. Malformed records
        are skipped and reported in ``errors``.
    period_days:
        Length of the period the batch covers; the divisor for daily
        averages. Must be a positive integer.
    options:
        :class:`CashFlowOptions` or a mapping in the same shape. ``{}`` means
        defaults.

    Raises
    ------
    InvalidParameterError
        If ``period_days`` is not a positive integer or ``options`` is
        malformed. Nothing is computed in that case.
    """

    _require_positive_int("period_days", period_days)
    if options is None:
        opts = CashFlowOptions()
    elif isinstance(options, CashFlowOptions):
        opts = options
    else:
        opts = CashFlowOptions.from_mapping(options)

    batch, errors = coerce_transactions(
        transactions,
        convention=opts.convention,
        default_currency=opts.default_currency,
        operation="cash_flow",
    )
    remaining = _filter_batch(batch, period_days, opts)
    transfer_count = 0
    if opts.exclude_transfers:
        before = len(remaining)
        remaining, _pairs = drop_transfer_pairs(remaining)
        transfer_count = before - len(remaining)

    totals = _bucket_by(remaining, lambda t: None).get(None, FlowBucket())
    by_day = _bucket_by(remaining, lambda t: t.date)

    by_category = None
    if opts.group_by_category:
        classifier = opts.classifier

        def category_of(tx: Transaction) -> str:
            if tx.category:
                return tx.category
            if classifier is not None:
                return classifier.categorize(tx) or UNCATEGORIZED
            return UNCATEGORIZED

        by_category = _bucket_by(remaining, category_of)

    by_account = _bucket_by(remaining, _account_key) if opts.group_by_account else None

    counts = TransactionCount(
        total=len(batch),
        filtered=len(batch) - len(remaining),
        inflows=sum(1 for t in remaining if t.classification is Classification.INCOME),
        outflows=sum(1 for t in remaining if t.classification is Classification.EXPENSE),
        transfers=transfer_count,
    )

    if opts.as_of is not None:
        period = Period(period_days, opts.as_of - dt.timedelta(days=period_days), opts.as_of)
    elif remaining:
        period = Period(period_days, min(t.date for t in remaining), max(t.date for t in remaining))
    else:
        period = Period(period_days)

    insights: list[str] = []
    if opts.include_insights:
        insights = _insights(
            remaining,
            by_day,
            net_flow=totals.net,
            period_days=period_days,
            avg_daily_outflow=totals.outflow / period_days,
        )

    _logger.info(
        "cash_flow:done period_days=%d total=%d kept=%d transfers=%d skipped=%d",
        period_days,
        counts.total,
        len(remaining),
        transfer_count,
        len(errors),
    )
    return CashFlowSummary(
        period=period,
        inflow=totals.inflow,
        outflow=totals.outflow,
        by_day=by_day,
        transaction_count=counts,
        insights=tuple(insights),
        by_category=by_category,
        by_account=by_account,
        errors=tuple(errors),
    )


# ---------------------------------------------------------------------------
# Trend
# ---------------------------------------------------------------------------

TREND_CHANGE_PCT = Decimal("10")


def calculate_trend(nets: Sequence[Decimal]) -> str:
    """Compare the mean net of the later half of ``nets`` against the earlier half.

    Returns ``"insufficient data"`` for fewer than two periods, otherwise
    ``"improving"`` / ``"declining"`` when the relative change exceeds ±10%
    and ``"stable"`` in between. When the earlier mean is zero the sign of the
    later mean decides.
    """

    if len(nets) < 2:
        return "insufficient data"
    half = len(nets) // 2
    first, second = nets[:half], nets[half:]
    first_avg = sum(first, _ZERO) / len(first)
    second_avg = sum(second, _ZERO) / len(second)

    if first_avg == 0:
        if second_avg > 0:
            return "improving"
        if second_avg < 0:
            return "declining"
        return "stable"

    change = (second_avg - first_avg) / abs(first_avg) * 100
    if change > TREND_CHANGE_PCT:
        return "improving"
    if change < -TREND_CHANGE_PCT:
        return "declining"
    return "stable"


@dataclass(frozen=True, slots=True)
class PeriodFlow:
    label: str
    start: dt.date
    end: dt.date
    flow: FlowBucket

    def to_dict(self) -> dict[str, Any]:
        return {
            "period": self.label,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "inflows": format_amount(self.flow.inflow),
            "outflows": format_amount(self.flow.outflow),
            "net": format_amount(self.flow.net),
            "transactionCount": self.flow.count,
        }


@dataclass(frozen=True, slots=True)
class CashFlowTrend:
    period_type: PeriodType
    periods: tuple[PeriodFlow, ...]
    errors: tuple[ItemError, ...] = ()

    @property
    def avg_inflow(self) -> Decimal:
        if not self.periods:
            return _ZERO
        return sum((p.flow.inflow for p in self.periods), _ZERO) / len(self.periods)

    @property
    def avg_outflow(self) -> Decimal:
        if not self.periods:
            return _ZERO
        return sum((p.flow.outflow for p in self.periods), _ZERO) / len(self.periods)

    @property
    def trend(self) -> str:
        return calculate_trend([p.flow.net for p in self.periods])

    def to_dict(self) -> dict[str, Any]:
        return {
            "periodType": self.period_type.value,
            "periods": [p.to_dict() for p in self.periods],
            "summary": {
                "avgInflow": format_amount(self.avg_inflow),
                "avgOutflow": format_amount(self.avg_outflow),
                "trend": self.trend,
            },
            "errors": [e.to_dict() for e in self.errors],
        }


def cash_flow_trend(
    transactions: Transactions,
    periods: int = 6,
    period_type: PeriodType | str = PeriodType.MONTH,
    *,
    as_of: dt.date | None = None,
    account_ids: Collection[str] | None = None,
    exclude_transfers: bool = False,
    convention: SignConvention = SignConvention.INFLOW_POSITIVE,
    default_currency: str | None = None,
) -> CashFlowTrend:
    """Inflow/outflow/net for the last ``periods`` day, week or month windows.

    Windows end at ``as_of`` (default: the latest date in the batch, or today
    for an empty batch) and do not overlap. Excluded-flag transactions are
    dropped; transfer pairs are dropped per window only when
    ``exclude_transfers`` is set.
    """

    _require_positive_int("periods", periods)
    batch, errors = coerce_transactions(
        transactions,
        convention=convention,
        default_currency=default_currency,
        operation="cash_flow_trend",
    )
    end = as_of or (max(t.date for t in batch) if batch else dt.date.today())
    windows = trailing_windows(period_type, periods, end)

    kept = [t for t in batch if not t.excluded]
    if account_ids:
        wanted = set(account_ids)
        kept = [t for t in kept if t.account_id in wanted]

    flows: list[PeriodFlow] = []
    for window in windows:
        members = [t for t in kept if t.date in window]
        if exclude_transfers:
            members, _pairs = drop_transfer_pairs(members)
        flow = _bucket_by(members, lambda t: None).get(None, FlowBucket())
        flows.append(PeriodFlow(window.label, window.start, window.end, flow))

    result = CashFlowTrend(PeriodType(period_type), tuple(flows), tuple(errors))
    _logger.info(
        "cash_flow_trend:done period_type=%s periods=%d trend=%s",
        result.period_type.value,
        len(flows),
        result.trend,
    )
    return result


__all__ = [
    "CashFlowOptions",
    "CashFlowSummary",
    "CashFlowTrend",
    "FlowBucket",
    "Period",
    "PeriodFlow",
    "TransactionCount",
    "calculate_trend",
    "cash_flow_trend",
    "summarize",
]
