"""Public interface for the ``spend_analysis`` package.

This module exposes the package's API functions and public models/types as the
stable import surface. There is no runtime logic here, only symbol re-exports.
"""

from .api import categorize_transactions, subscription_report
from .cashflow import (
    CashFlowOptions,
    CashFlowSummary,
    CashFlowTrend,
    calculate_trend,
    cash_flow_trend,
    summarize,
)
from .classifier import (
    AutoCategorizeResult,
    CategoryMatch,
    Classifier,
    PlanningCategory,
    auto_categorize,
)
from .config import AnalysisSettings, load_settings
from .errors import (
    InvalidParameterError,
    ItemError,
    RuleConfigError,
    SpendAnalysisError,
    TransactionDataError,
)
from .models import (
    Classification,
    PartitionPeriod,
    SignConvention,
    Transaction,
    TransferPair,
    coerce_transactions,
)
from .periods import PeriodType, partition_transactions
from .recurrence import (
    Frequency,
    Subscription,
    SubscriptionReport,
    detect_subscriptions,
    summarize_subscriptions,
)
from .rules import CategorizationRule, RuleConfig, RuleSet
from .transfers import exclude_transfers, find_transfer_pairs

__all__ = [
    # API
    "auto_categorize",
    "calculate_trend",
    "cash_flow_trend",
    "categorize_transactions",
    "coerce_transactions",
    "detect_subscriptions",
    "exclude_transfers",
    "find_transfer_pairs",
    "load_settings",
    "partition_transactions",
    "subscription_report",
    "summarize",
    "summarize_subscriptions",
    # Models / types
    "AnalysisSettings",
    "AutoCategorizeResult",
    "CashFlowOptions",
    "CashFlowSummary",
    "CashFlowTrend",
    "CategorizationRule",
    "CategoryMatch",
    "Classification",
    "Classifier",
    "Frequency",
    "PartitionPeriod",
    "PeriodType",
    "PlanningCategory",
    "RuleConfig",
    "RuleSet",
    "SignConvention",
    "Subscription",
    "SubscriptionReport",
    "Transaction",
    "TransferPair",
    # Errors
    "InvalidParameterError",
    "ItemError",
    "RuleConfigError",
    "SpendAnalysisError",
    "TransactionDataError",
]
