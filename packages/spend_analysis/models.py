"""Data models and the ingestion boundary for ``spend_analysis``.

Sign convention
---------------
Inside this package every :class:`Transaction` amount is **inflow-positive**:
income is ``>= 0``, expense is ``<= 0`` and transfers may carry either sign.
Source ledgers disagree on this, so :meth:`Transaction.from_record` takes a
:class:`SignConvention` describing the source and flips amounts as needed.

The ``classification`` tag is authoritative when present. When a record has
none it is derived from the converted sign (positive is income, zero or
negative is expense). A tag that contradicts the sign is rejected with
:class:`~spend_analysis.errors.TransactionDataError`.

Batch operations go through :func:`coerce_transactions`, which never raises
for individual items; rejected items come back as
:class:`~spend_analysis.errors.ItemError` records.
"""

from __future__ import annotations

import datetime as dt
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import StrEnum
from typing import Any, NamedTuple, TypeAlias

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from .errors import InvalidParameterError, ItemError, TransactionDataError
from .logging_setup import get_logger

_logger = get_logger("spend_analysis.models")

CENT = Decimal("0.01")

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class Classification(StrEnum):
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class SignConvention(StrEnum):
    """How a source ledger signs its amounts."""

    INFLOW_POSITIVE = "inflow_positive"
    OUTFLOW_POSITIVE = "outflow_positive"


# ---------------------------------------------------------------------------
# Amount/date helpers
# ---------------------------------------------------------------------------

_CURRENCY_NOISE_RE = re.compile(r"[€$£¥₹\s]")


def parse_amount(raw: Any) -> Decimal:
    """Parse a ledger amount into a finite ``Decimal``.

    Accepts numbers and strings such as ``"-12.50"``, ``"€ 12,50"``,
    ``"1,234.56"``, ``"€ 1.234,56"`` or ``"(45.00)"``. When both a comma and a
    dot appear, whichever comes last is the decimal separator and the other
    groups thousands. A lone comma is the decimal separator.
    """

    if raw is None:
        raise ValueError("amount is required")
    if isinstance(raw, bool):
        raise ValueError("amount must be a number, got a boolean")
    if isinstance(raw, Decimal):
        value = raw
    elif isinstance(raw, int):
        value = Decimal(raw)
    elif isinstance(raw, float):
        value = Decimal(str(raw))
    elif isinstance(raw, str):
        s = _CURRENCY_NOISE_RE.sub("", raw)
        negative = False
        if s.startswith("(") and s.endswith(")") and len(s) >= 2:
            negative = True
            s = s[1:-1]
        if not s:
            raise ValueError(f"amount is empty: {raw!r}")
        if "," in s and "." in s:
            if s.rfind(",") > s.rfind("."):
                s = s.replace(".", "").replace(",", ".")
            else:
                s = s.replace(",", "")
        elif s.count(",") == 1:
            s = s.replace(",", ".")
        try:
            value = Decimal(s)
        except InvalidOperation:
            raise ValueError(f"invalid amount: {raw!r}") from None
        if negative:
            value = -abs(value)
    else:
        raise ValueError(f"unsupported amount type: {type(raw).__name__}")

    if not value.is_finite():
        raise ValueError(f"amount must be finite: {raw!r}")
    return value


def round_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(value: Decimal) -> str:
    """Two decimals, ASCII dot, leading minus for negatives."""

    return f"{round_cents(value):.2f}"


def _coerce_date(raw: Any) -> Any:
    if isinstance(raw, dt.datetime):
        return raw.date()
    if isinstance(raw, str):
        s = raw.strip()
        # Accept 'YYYY-MM-DD', 'YYYY-MM-DDTHH:MM:SS[Z]' and 'YYYY-MM-DD HH:MM:SS'
        return s.split()[0].split("T", 1)[0] if s else s
    return raw


# ---------------------------------------------------------------------------
# Transaction
# ---------------------------------------------------------------------------


class AccountRef(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=True)

    id: str
    name: str | None = None
    account_type: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) and not isinstance(v, bool) else v


class Transaction(BaseModel):
    """A ledger transaction, read-only to this package.

    ``amount`` is inflow-positive (see module docstring). ``name`` carries the
    ledger's description text; :attr:`description` is an alias for it.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=True)

    id: str
    date: dt.date
    amount: Decimal
    currency: str = "EUR"
    merchant: str | None = None
    name: str | None = None
    classification: Classification
    category: str | None = None
    tags: tuple[str, ...] = ()
    excluded: bool = False
    account: AccountRef | None = None
    notes: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _normalize_record(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        d = dict(data)
        if d.get("account") is None and d.get("accountId") is not None:
            d["account"] = {"id": d["accountId"]}
        if d.get("name") is None and d.get("description") is not None:
            d["name"] = d["description"]
        if d.get("classification") in (None, ""):
            amount = parse_amount(d.get("amount"))
            d["amount"] = amount
            d["classification"] = (
                Classification.INCOME if amount > 0 else Classification.EXPENSE
            )
        if d.get("tags") is None:
            d["tags"] = ()
        if d.get("currency") in (None, ""):
            d.pop("currency", None)
        return d

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) and not isinstance(v, bool) else v

    @field_validator("id")
    @classmethod
    def _id_non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("id must be non-empty")
        return v

    @field_validator("date", mode="before")
    @classmethod
    def _date_from_iso(cls, v: Any) -> Any:
        return _coerce_date(v)

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_from_ledger(cls, v: Any) -> Decimal:
        return parse_amount(v)

    @field_validator("classification", mode="before")
    @classmethod
    def _classification_lower(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("merchant", "name", "category", "notes")
    @classmethod
    def _blank_to_none(cls, v: str | None) -> str | None:
        return v or None

    @field_validator("currency")
    @classmethod
    def _currency_upper(cls, v: str) -> str:
        return v.upper()

    @model_validator(mode="after")
    def _sign_matches_classification(self) -> Transaction:
        if self.classification is Classification.INCOME and self.amount < 0:
            raise ValueError(f"income transaction has negative amount {self.amount}")
        if self.classification is Classification.EXPENSE and self.amount > 0:
            raise ValueError(f"expense transaction has positive amount {self.amount}")
        return self

    # -- convenience views --------------------------------------------------

    @property
    def description(self) -> str:
        return self.name or ""

    @property
    def merchant_or_name(self) -> str:
        return self.merchant or self.name or ""

    @property
    def abs_amount(self) -> Decimal:
        return abs(self.amount)

    @property
    def account_id(self) -> str | None:
        return self.account.id if self.account is not None else None

    @classmethod
    def from_record(
        cls,
        record: Mapping[str, Any],
        *,
        convention: SignConvention = SignConvention.INFLOW_POSITIVE,
        default_currency: str | None = None,
    ) -> Transaction:
        """Validate a ledger record, converting amounts to inflow-positive.

        ``default_currency`` is applied when the record carries no currency.
        Raises :class:`TransactionDataError` on any validation failure.
        """

        raw_id = record.get("id")
        tid = str(raw_id) if raw_id is not None else None
        data = dict(record)
        if default_currency and not data.get("currency"):
            data["currency"] = default_currency
        try:
            if convention is SignConvention.OUTFLOW_POSITIVE:
                data["amount"] = -parse_amount(data.get("amount"))
            return cls.model_validate(data)
        except ValidationError as e:
            reasons = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'record'}: {err['msg']}"
                for err in e.errors()
            )
            raise TransactionDataError(reasons, transaction_id=tid) from e
        except ValueError as e:
            raise TransactionDataError(str(e), transaction_id=tid) from e


# A batch may mix validated transactions and raw ledger records.
TransactionInput: TypeAlias = Transaction | Mapping[str, Any]
Transactions: TypeAlias = Iterable[TransactionInput]


def coerce_transactions(
    items: Transactions,
    *,
    convention: SignConvention = SignConvention.INFLOW_POSITIVE,
    default_currency: str | None = None,
    operation: str = "ingest",
) -> tuple[list[Transaction], list[ItemError]]:
    """Validate a batch, returning ``(transactions, errors)``.

    Items that fail validation are skipped and reported, never raised.
    Already-validated transactions keep their currency. ``operation`` only
    labels the log lines.
    """

    ok: list[Transaction] = []
    errors: list[ItemError] = []
    for pos, item in enumerate(items):
        if isinstance(item, Transaction):
            ok.append(item)
            continue
        if not isinstance(item, Mapping):
            errors.append(ItemError(pos, None, f"unsupported item type: {type(item).__name__}"))
            continue
        try:
            tx = Transaction.from_record(
                item, convention=convention, default_currency=default_currency
            )
            ok.append(tx)
        except TransactionDataError as e:
            errors.append(ItemError(pos, e.transaction_id, str(e)))

    if errors:
        _logger.warning(
            "%s:items_skipped accepted=%d skipped=%d first_reason=%s",
            operation,
            len(ok),
            len(errors),
            errors[0].reason,
        )
    return ok, errors


# ---------------------------------------------------------------------------
# Pairs and periods
# ---------------------------------------------------------------------------


class TransferPair(NamedTuple):
    """Two same-day transactions presumed to move money between own accounts."""

    income: Transaction
    """The income-classified side (money arriving)."""

    expense: Transaction
    """The expense-classified side (money leaving)."""


@dataclass(frozen=True, slots=True)
class PartitionPeriod:
    """Length of one period in calendar units, e.g. ``months=1, days=3``.

    Calendar units (``years``, ``months``) are applied before fixed units
    (``weeks``, ``days``) so month-end clamping happens first; see
    :func:`~spend_analysis.periods.advance`.
    """

    years: int | None = None
    months: int | None = None
    weeks: int | None = None
    days: int | None = None

    def __post_init__(self) -> None:
        given = {u: n for u in _PERIOD_UNITS if (n := getattr(self, u)) is not None}
        if not given:
            raise InvalidParameterError("period length needs years, months, weeks or days")
        bad = [
            u for u, n in given.items() if isinstance(n, bool) or not isinstance(n, int) or n < 1
        ]
        if bad:
            raise InvalidParameterError(
                f"period units must be whole numbers >= 1: {', '.join(bad)}"
            )

    @property
    def month_span(self) -> int:
        return (self.years or 0) * 12 + (self.months or 0)

    @property
    def day_span(self) -> int:
        return (self.weeks or 0) * 7 + (self.days or 0)


_PERIOD_UNITS = ("years", "months", "weeks", "days")


__all__ = [
    "AccountRef",
    "CENT",
    "Classification",
    "PartitionPeriod",
    "SignConvention",
    "Transaction",
    "TransactionInput",
    "Transactions",
    "TransferPair",
    "coerce_transactions",
    "format_amount",
    "parse_amount",
    "round_cents",
]
