"""Rule-based transaction categorization.

Public API:
    - :class:`Classifier` with ``categorize`` / ``match`` / ``add_rule`` /
      ``remove_rule`` / ``describe_rules``
    - :func:`auto_categorize` for proposing category changes over a batch
    - :class:`PlanningCategory`, the four planning buckets

``categorize`` walks the RuleSet snapshot in evaluation order and returns the
first firing rule's category. When nothing fires, two fixed heuristics run
(grocery keywords within a plausible basket size, then common subscription
price points or wording). If those fail too the result is ``None``; applying
a catch-all category is the caller's decision.
"""

from __future__ import annotations

import datetime as dt
from collections import Counter
from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum
from typing import Any

from .errors import InvalidParameterError, ItemError, TransactionDataError
from .logging_setup import get_logger
from .models import (
    SignConvention,
    Transaction,
    TransactionInput,
    Transactions,
    coerce_transactions,
    format_amount,
    round_cents,
)
from .rules import CategorizationRule, RuleConfig, RuleSet, TransactionView

_logger = get_logger("spend_analysis.classifier")


class PlanningCategory(StrEnum):
    REQUIRED_PURCHASES = "Required Purchases"
    DISCRETIONARY = "Discretionary Spending"
    SUBSCRIPTIONS = "Subscriptions"
    SPENDING_BUT_ASSETS = "Spending but Assets"


FALLBACK_CATEGORIES: frozenset[str] = frozenset(
    {PlanningCategory.REQUIRED_PURCHASES.value, PlanningCategory.SUBSCRIPTIONS.value}
)

# ---- Fallback heuristics (fixed tables) -------------------------------------

_GROCERY_KEYWORDS: tuple[str, ...] = ("market", "grocery", "food", "supermar", "grocer")
_GROCERY_MIN = Decimal("10")
_GROCERY_MAX = Decimal("300")

_SUBSCRIPTION_PRICE_POINTS: frozenset[Decimal] = frozenset(
    Decimal(p)
    for p in (
        "4.99", "5.99", "6.99", "7.99", "8.99", "9.99", "10.99", "11.99",
        "12.99", "14.99", "15.99", "19.99", "24.99", "29.99",
    )
)
_SUBSCRIPTION_KEYWORDS: tuple[str, ...] = ("subscription", "monthly")


def _looks_like_grocery(view: TransactionView) -> bool:
    combined = f"{view.merchant} {view.description}"
    return (
        any(k in combined for k in _GROCERY_KEYWORDS)
        and _GROCERY_MIN <= view.amount <= _GROCERY_MAX
    )


def _looks_like_subscription(view: TransactionView) -> bool:
    if round_cents(view.amount) in _SUBSCRIPTION_PRICE_POINTS:
        return True
    return any(k in view.merchant or k in view.description for k in _SUBSCRIPTION_KEYWORDS)


@dataclass(frozen=True, slots=True)
class CategoryMatch:
    """Outcome of a successful categorization.

    ``rule_id`` is ``None`` when a fallback heuristic assigned the category;
    ``source`` is ``"rule"``, ``"fallback:grocery"`` or
    ``"fallback:subscription"``.
    """

    category: str
    source: str
    rule_id: str | None = None


class Classifier:
    """Categorizes transactions against an instance-owned :class:`RuleSet`.

    ``convention`` and ``default_currency`` describe the ledger that raw
    records passed to :meth:`match` come from; validated
    :class:`Transaction` objects are used as they are.
    """

    def __init__(
        self,
        rules: RuleSet | Iterable[RuleConfig | Mapping[str, Any]] | None = None,
        *,
        convention: SignConvention = SignConvention.INFLOW_POSITIVE,
        default_currency: str | None = None,
    ):
        if isinstance(rules, RuleSet):
            self._rules = rules
        else:
            self._rules = RuleSet(rules or ())
        self.convention = SignConvention(convention)
        self.default_currency = default_currency

    @classmethod
    def with_default_rules(
        cls,
        extra: Iterable[RuleConfig | Mapping[str, Any]] = (),
        *,
        convention: SignConvention = SignConvention.INFLOW_POSITIVE,
        default_currency: str | None = None,
    ) -> Classifier:
        """A classifier seeded with the built-in rule table plus ``extra``."""

        rule_set = RuleSet.with_defaults()
        rule_set.extend(extra)
        return cls(rule_set, convention=convention, default_currency=default_currency)

    @property
    def rule_set(self) -> RuleSet:
        return self._rules

    # -- classification -----------------------------------------------------

    def match(
        self,
        transaction: TransactionInput,
        *,
        recurring_merchants: Collection[str] = (),
    ) -> CategoryMatch | None:
        """Return the winning rule or heuristic for ``transaction``, or ``None``.

        Raw mappings are validated first; an invalid record yields ``None``.
        """

        if not isinstance(transaction, Transaction):
            try:
                transaction = Transaction.from_record(
                    transaction,
                    convention=self.convention,
                    default_currency=self.default_currency,
                )
            except TransactionDataError as e:
                _logger.debug("categorize:invalid_record id=%s reason=%s", e.transaction_id, e)
                return None

        view = TransactionView.of(transaction, recurring_merchants=recurring_merchants)
        for rule in self._rules.snapshot():
            if rule.matches(view):
                return CategoryMatch(rule.category, "rule", rule.id)

        if _looks_like_grocery(view):
            return CategoryMatch(PlanningCategory.REQUIRED_PURCHASES.value, "fallback:grocery")
        if _looks_like_subscription(view):
            return CategoryMatch(PlanningCategory.SUBSCRIPTIONS.value, "fallback:subscription")
        return None

    def categorize(
        self,
        transaction: TransactionInput,
        *,
        recurring_merchants: Collection[str] = (),
    ) -> str | None:
        found = self.match(transaction, recurring_merchants=recurring_merchants)
        return found.category if found is not None else None

    # -- rule management ----------------------------------------------------

    def add_rule(self, config: RuleConfig | Mapping[str, Any]) -> CategorizationRule:
        return self._rules.add(config)

    def remove_rule(self, rule_id: str) -> bool:
        return self._rules.remove(rule_id)

    def rules(self) -> tuple[CategorizationRule, ...]:
        return self._rules.snapshot()

    def categories(self) -> tuple[str, ...]:
        """Every category this classifier can return."""

        ordered = list(self._rules.categories())
        ordered.extend(c for c in sorted(FALLBACK_CATEGORIES) if c not in ordered)
        return tuple(ordered)

    def describe_rules(self) -> dict[str, Any]:
        snapshot = self._rules.snapshot()
        return {
            "totalRules": len(snapshot),
            "rules": [r.to_dict() for r in snapshot],
            "categories": [c.value for c in PlanningCategory],
        }


# ---------------------------------------------------------------------------
# Batch auto-categorization
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CategoryChange:
    transaction_id: str
    name: str | None
    amount: Decimal
    currency: str
    date: dt.date
    old_category: str | None
    new_category: str
    source: str
    rule_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.transaction_id,
            "name": self.name,
            "amount": format_amount(self.amount),
            "currency": self.currency,
            "date": self.date.isoformat(),
            "oldCategory": self.old_category or "Uncategorized",
            "newCategory": self.new_category,
            "source": self.source,
            "ruleId": self.rule_id,
        }


@dataclass(frozen=True, slots=True)
class AutoCategorizeResult:
    """Proposed category changes for a batch. Nothing is written anywhere."""

    processed: int
    changes: tuple[CategoryChange, ...]
    errors: tuple[ItemError, ...] = ()

    @property
    def categorized(self) -> int:
        return len(self.changes)

    @property
    def unchanged(self) -> int:
        return self.processed - self.categorized

    @property
    def by_category(self) -> dict[str, int]:
        return dict(Counter(c.new_category for c in self.changes))

    @property
    def special_categories(self) -> dict[str, int]:
        counts = self.by_category
        return {c.value: counts.get(c.value, 0) for c in PlanningCategory}

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": {
                "processed": self.processed,
                "categorized": self.categorized,
                "unchanged": self.unchanged,
            },
            "byCategory": self.by_category,
            "specialCategories": self.special_categories,
            "changes": [c.to_dict() for c in self.changes],
            "errors": [e.to_dict() for e in self.errors],
        }


def auto_categorize(
    transactions: Transactions,
    classifier: Classifier,
    *,
    only_uncategorized: bool = True,
    account_ids: Collection[str] | None = None,
    limit: int | None = None,
    default_category: str | None = None,
    recurring_merchants: Collection[str] = (),
    convention: SignConvention = SignConvention.INFLOW_POSITIVE,
    default_currency: str | None = None,
) -> AutoCategorizeResult:
    """Run ``classifier`` over a batch and collect the categories that would change.

    - ``only_uncategorized`` skips transactions that already carry a category.
    - ``account_ids`` keeps only transactions from those accounts.
    - ``limit`` caps how many transactions are processed (after filtering).
    - ``default_category`` is used when the classifier returns ``None``;
      without it such transactions are left unchanged.
    """

    if limit is not None and (isinstance(limit, bool) or limit <= 0):
        raise InvalidParameterError(f"limit must be a positive integer, got {limit!r}")

    batch, errors = coerce_transactions(
        transactions,
        convention=convention,
        default_currency=default_currency,
        operation="auto_categorize",
    )
    if only_uncategorized:
        batch = [t for t in batch if not t.category]
    if account_ids:
        wanted = set(account_ids)
        batch = [t for t in batch if t.account_id in wanted]
    if limit is not None:
        batch = batch[:limit]

    recurring = frozenset(recurring_merchants)
    changes: list[CategoryChange] = []
    for tx in batch:
        found = classifier.match(tx, recurring_merchants=recurring)
        if found is None and default_category:
            found = CategoryMatch(default_category, "default")
        if found is None or found.category == tx.category:
            continue
        changes.append(
            CategoryChange(
                transaction_id=tx.id,
                name=tx.name,
                amount=tx.amount,
                currency=tx.currency,
                date=tx.date,
                old_category=tx.category,
                new_category=found.category,
                source=found.source,
                rule_id=found.rule_id,
            )
        )

    _logger.info(
        "auto_categorize:done processed=%d categorized=%d skipped=%d",
        len(batch),
        len(changes),
        len(errors),
    )
    return AutoCategorizeResult(processed=len(batch), changes=tuple(changes), errors=tuple(errors))


__all__ = [
    "AutoCategorizeResult",
    "CategoryChange",
    "CategoryMatch",
    "Classifier",
    "FALLBACK_CATEGORIES",
    "PlanningCategory",
    "auto_categorize",
]
