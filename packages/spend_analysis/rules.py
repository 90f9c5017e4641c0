"""Categorization rules: configuration, compiled predicates and the RuleSet.

A rule arrives as a :class:`RuleConfig` (or a mapping in the same shape,
camelCase or snake_case keys) and is compiled once into a
:class:`CategorizationRule` whose condition groups are predicate objects
exposing ``matches(view) -> bool``. Patterns are compiled case-insensitively
at registration; nothing is recompiled per evaluation.

:class:`RuleSet` owns the ordered rules. Evaluation order is descending
priority, then registration order; every rule carries a sequence number so
the order never depends on sort stability. The set publishes an immutable
tuple and mutations swap in a new tuple under a writer lock, so a reader
always sees either the old or the new complete order.
"""

from __future__ import annotations

import math
import re
import threading
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .errors import RuleConfigError
from .logging_setup import get_logger
from .models import Transaction

_logger = get_logger("spend_analysis.rules")

# Tags that mark a transaction as recurring when no detection context is given
_RECURRING_TAGS = frozenset({"recurring", "subscription"})

# ---------------------------------------------------------------------------
# Configuration (validated input)
# ---------------------------------------------------------------------------


class _ConfigModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class AmountRangeConfig(_ConfigModel):
    min: Decimal | None = None
    max: Decimal | None = None

    @field_validator("min", "max")
    @classmethod
    def _finite(cls, v: Decimal | None) -> Decimal | None:
        if v is not None and not v.is_finite():
            raise ValueError("amount bounds must be finite")
        return v

    @model_validator(mode="after")
    def _ordered(self) -> AmountRangeConfig:
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"amountRange.min ({self.min}) exceeds max ({self.max})")
        return self


class RuleConditionsConfig(_ConfigModel):
    """Condition groups; every supplied group must hold for the rule to fire.

    ``day_of_week`` uses 0=Sunday .. 6=Saturday, the ledger tool's convention.
    """

    merchant_patterns: tuple[str, ...] = ()
    description_patterns: tuple[str, ...] = ()
    amount_range: AmountRangeConfig | None = None
    day_of_week: tuple[int, ...] = ()
    day_of_month: tuple[int, ...] = ()
    is_recurring: bool | None = None
    account_types: tuple[str, ...] = ()

    @field_validator("merchant_patterns", "description_patterns")
    @classmethod
    def _non_empty_patterns(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if any(not p for p in v):
            raise ValueError("patterns must be non-empty strings")
        return v

    @field_validator("day_of_week")
    @classmethod
    def _weekday_range(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        bad = [d for d in v if not 0 <= d <= 6]
        if bad:
            raise ValueError(f"dayOfWeek values must be within 0..6 (0=Sunday), got {bad}")
        return v

    @field_validator("day_of_month")
    @classmethod
    def _day_range(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        bad = [d for d in v if not 1 <= d <= 31]
        if bad:
            raise ValueError(f"dayOfMonth values must be within 1..31, got {bad}")
        return v


class RuleConfig(_ConfigModel):
    id: str
    name: str | None = None
    category: str
    priority: int
    conditions: RuleConditionsConfig = RuleConditionsConfig()

    @field_validator("id", "category")
    @classmethod
    def _required_text(cls, v: str) -> str:
        if not v:
            raise ValueError("must be a non-empty string")
        return v

    @field_validator("priority", mode="before")
    @classmethod
    def _finite_integer(cls, v: Any) -> int:
        if isinstance(v, bool) or not isinstance(v, (int, float, Decimal)):
            raise ValueError(f"priority must be an integer, got {type(v).__name__}")
        if isinstance(v, int):
            return v
        if isinstance(v, float) and not math.isfinite(v):
            raise ValueError(f"priority must be finite, got {v}")
        if isinstance(v, Decimal) and not v.is_finite():
            raise ValueError(f"priority must be finite, got {v}")
        if v != int(v):
            raise ValueError(f"priority must be an integer, got {v}")
        return int(v)

    @property
    def display_name(self) -> str:
        return self.name or self.id


def parse_rule_config(config: RuleConfig | Mapping[str, Any]) -> RuleConfig:
    """Validate ``config`` into a :class:`RuleConfig` or raise ``RuleConfigError``."""

    if isinstance(config, RuleConfig):
        return config
    if not isinstance(config, Mapping):
        raise RuleConfigError(f"rule definition must be a mapping, got {type(config).__name__}")
    try:
        return RuleConfig.model_validate(config)
    except ValidationError as e:
        rid = config.get("id")
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'rule'}: {err['msg']}" for err in e.errors()
        )
        raise RuleConfigError(f"invalid rule {rid!r}: {details}") from e


# ---------------------------------------------------------------------------
# Compiled predicates
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TransactionView:
    """Pre-computed, lower-cased fields a rule is evaluated against."""

    merchant: str
    description: str
    amount: Decimal
    weekday: int  # 0=Sunday
    day_of_month: int
    account_type: str | None
    looks_recurring: bool

    @classmethod
    def of(
        cls, tx: Transaction, *, recurring_merchants: Iterable[str] = ()
    ) -> TransactionView:
        merchant = tx.merchant_or_name.lower()
        known = {m.casefold() for m in recurring_merchants}
        tagged = any(t.strip().casefold() in _RECURRING_TAGS for t in tx.tags)
        account_type = tx.account.account_type if tx.account is not None else None
        return cls(
            merchant=merchant,
            description=tx.description.lower(),
            amount=tx.abs_amount,
            weekday=(tx.date.weekday() + 1) % 7,
            day_of_month=tx.date.day,
            account_type=account_type.casefold() if account_type else None,
            looks_recurring=tagged or tx.merchant_or_name.casefold() in known,
        )


class Predicate(Protocol):
    def matches(self, view: TransactionView) -> bool: ...


@dataclass(frozen=True, slots=True)
class MerchantMatch:
    patterns: tuple[re.Pattern[str], ...]

    def matches(self, view: TransactionView) -> bool:
        return any(p.search(view.merchant) for p in self.patterns)


@dataclass(frozen=True, slots=True)
class DescriptionMatch:
    patterns: tuple[re.Pattern[str], ...]

    def matches(self, view: TransactionView) -> bool:
        return any(p.search(view.description) or p.search(view.merchant) for p in self.patterns)


@dataclass(frozen=True, slots=True)
class AmountWithin:
    """Inclusive bounds on the absolute amount; either side may be open."""

    low: Decimal | None
    high: Decimal | None

    def matches(self, view: TransactionView) -> bool:
        if self.low is not None and view.amount < self.low:
            return False
        return self.high is None or view.amount <= self.high


@dataclass(frozen=True, slots=True)
class WeekdayIn:
    days: frozenset[int]

    def matches(self, view: TransactionView) -> bool:
        return view.weekday in self.days


@dataclass(frozen=True, slots=True)
class DayOfMonthIn:
    days: frozenset[int]

    def matches(self, view: TransactionView) -> bool:
        return view.day_of_month in self.days


@dataclass(frozen=True, slots=True)
class RecurringIs:
    expected: bool

    def matches(self, view: TransactionView) -> bool:
        return view.looks_recurring is self.expected


@dataclass(frozen=True, slots=True)
class AccountTypeIn:
    types: frozenset[str]

    def matches(self, view: TransactionView) -> bool:
        return view.account_type in self.types


def _compile_patterns(
    rule_id: str, group: str, sources: tuple[str, ...]
) -> tuple[re.Pattern[str], ...]:
    compiled: list[re.Pattern[str]] = []
    for src in sources:
        try:
            compiled.append(re.compile(src, re.IGNORECASE))
        except re.error as e:
            raise RuleConfigError(
                f"invalid rule {rule_id!r}: {group} pattern {src!r} does not compile: {e}"
            ) from e
    return tuple(compiled)


def compile_conditions(rule_id: str, conditions: RuleConditionsConfig) -> tuple[Predicate, ...]:
    """Build the predicate tuple for ``conditions``; raises ``RuleConfigError``."""

    predicates: list[Predicate] = []
    if conditions.merchant_patterns:
        predicates.append(
            MerchantMatch(_compile_patterns(rule_id, "merchant", conditions.merchant_patterns))
        )
    if conditions.description_patterns:
        predicates.append(
            DescriptionMatch(
                _compile_patterns(rule_id, "description", conditions.description_patterns)
            )
        )
    if conditions.amount_range is not None:
        predicates.append(AmountWithin(conditions.amount_range.min, conditions.amount_range.max))
    if conditions.day_of_week:
        predicates.append(WeekdayIn(frozenset(conditions.day_of_week)))
    if conditions.day_of_month:
        predicates.append(DayOfMonthIn(frozenset(conditions.day_of_month)))
    if conditions.is_recurring is not None:
        predicates.append(RecurringIs(conditions.is_recurring))
    if conditions.account_types:
        predicates.append(AccountTypeIn(frozenset(t.casefold() for t in conditions.account_types)))
    return tuple(predicates)


@dataclass(frozen=True, slots=True)
class CategorizationRule:
    """A compiled rule. ``seq`` is the registration order within its RuleSet."""

    id: str
    name: str
    category: str
    priority: int
    config: RuleConfig = field(repr=False)
    predicates: tuple[Predicate, ...] = field(repr=False)
    seq: int = 0

    def matches(self, view: TransactionView) -> bool:
        return all(p.matches(view) for p in self.predicates)

    def to_dict(self) -> dict[str, Any]:
        """Rule in its configuration shape (camelCase), pattern sources included."""

        return self.config.model_dump(mode="json", by_alias=True, exclude_none=True)


def compile_rule(config: RuleConfig | Mapping[str, Any], *, seq: int = 0) -> CategorizationRule:
    cfg = parse_rule_config(config)
    return CategorizationRule(
        id=cfg.id,
        name=cfg.display_name,
        category=cfg.category,
        priority=cfg.priority,
        config=cfg,
        predicates=compile_conditions(cfg.id, cfg.conditions),
        seq=seq,
    )


# ---------------------------------------------------------------------------
# RuleSet
# ---------------------------------------------------------------------------


def _evaluation_order(rules: Iterable[CategorizationRule]) -> tuple[CategorizationRule, ...]:
    return tuple(sorted(rules, key=lambda r: (-r.priority, r.seq)))


class RuleSet:
    """An instance-owned, ordered collection of categorization rules."""

    def __init__(self, rules: Iterable[RuleConfig | Mapping[str, Any]] = ()) -> None:
        self._lock = threading.Lock()
        self._rules: tuple[CategorizationRule, ...] = ()
        self._next_seq = 0
        self.extend(rules)

    @classmethod
    def with_defaults(cls) -> RuleSet:
        from .default_rules import DEFAULT_RULES

        return cls(DEFAULT_RULES)

    # -- reads --------------------------------------------------------------

    def snapshot(self) -> tuple[CategorizationRule, ...]:
        """The current rules in evaluation order (an immutable tuple)."""

        return self._rules

    def __iter__(self) -> Iterator[CategorizationRule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return any(r.id == rule_id for r in self._rules)

    def get(self, rule_id: str) -> CategorizationRule | None:
        return next((r for r in self._rules if r.id == rule_id), None)

    def categories(self) -> tuple[str, ...]:
        """Distinct target categories, in evaluation order."""

        return tuple(dict.fromkeys(r.category for r in self._rules))

    # -- writes -------------------------------------------------------------

    def add(self, config: RuleConfig | Mapping[str, Any]) -> CategorizationRule:
        """Validate, compile and register one rule; raises ``RuleConfigError``."""

        return self.extend([config])[0]

    def extend(
        self, configs: Iterable[RuleConfig | Mapping[str, Any]]
    ) -> tuple[CategorizationRule, ...]:
        """Register several rules atomically: either all are added or none."""

        compiled = [compile_rule(c) for c in configs]
        if not compiled:
            return ()
        seen: set[str] = set()
        for rule in compiled:
            if rule.id in seen:
                raise RuleConfigError(f"duplicate rule id {rule.id!r} in batch")
            seen.add(rule.id)

        with self._lock:
            current = self._rules
            clash = sorted(seen.intersection(r.id for r in current))
            if clash:
                raise RuleConfigError(f"rule id already registered: {', '.join(clash)}")
            added = []
            for rule in compiled:
                added.append(replace(rule, seq=self._next_seq))
                self._next_seq += 1
            self._rules = _evaluation_order(current + tuple(added))

        _logger.debug(
            "rules:added ids=%s total=%d", ",".join(r.id for r in added), len(self._rules)
        )
        return tuple(added)

    def remove(self, rule_id: str) -> bool:
        """Drop the rule with ``rule_id``; returns whether one was removed."""

        with self._lock:
            remaining = tuple(r for r in self._rules if r.id != rule_id)
            removed = len(remaining) != len(self._rules)
            if removed:
                self._rules = remaining
        if removed:
            _logger.debug("rules:removed id=%s total=%d", rule_id, len(remaining))
        return removed

    def replace(self, configs: Iterable[RuleConfig | Mapping[str, Any]]) -> None:
        """Swap the whole rule list for ``configs`` in one visible step."""

        fresh = RuleSet(configs)
        with self._lock:
            self._rules = fresh._rules
            self._next_seq = fresh._next_seq


__all__ = [
    "AccountTypeIn",
    "AmountRangeConfig",
    "AmountWithin",
    "CategorizationRule",
    "DayOfMonthIn",
    "DescriptionMatch",
    "MerchantMatch",
    "Predicate",
    "RecurringIs",
    "RuleConditionsConfig",
    "RuleConfig",
    "RuleSet",
    "TransactionView",
    "WeekdayIn",
    "compile_conditions",
    "compile_rule",
    "parse_rule_config",
]
