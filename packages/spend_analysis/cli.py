# ruff: noqa: I001
"""CLI for the ``spend_analysis`` package.

This module exposes callable command handlers (e.g., ``cmd_categorize``) and a
Typer-based console interface. Environment variables (``SPEND_ANALYSIS_*``)
are loaded from a local ``.env`` using ``python-dotenv`` before any command
runs. Every command reads a JSON transactions file and prints a JSON document
to stdout; errors go to stderr with a non-zero exit status. Business logic
lives in ``spend_analysis.api`` and related modules.
"""

from __future__ import annotations

import json
import sys
from collections.abc import Sequence
from datetime import date, datetime
from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .config import AnalysisSettings, load_settings
from .errors import SpendAnalysisError
from .logging_setup import configure_logging


# ---- Small module-level helpers used by CLI commands -------------------------


def _emit(payload: dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _settings_or_exit() -> AnalysisSettings | None:
    try:
        return load_settings()
    except SpendAnalysisError as e:
        print(f"Error: {e}", file=sys.stderr)
        return None


def _load_transactions(path: Path) -> list[Any] | None:
    """Read a transactions file, reporting failures on stderr."""

    from .loaders import load_transactions_json

    try:
        return load_transactions_json(path)
    except FileNotFoundError:
        print(f"Error: File not found: {path}", file=sys.stderr)
    except PermissionError:
        print(f"Error: Permission denied: {path}", file=sys.stderr)
    except json.JSONDecodeError as e:
        print(f"Error: Failed to parse JSON in '{path}': {e}", file=sys.stderr)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
    return None


def _build_classifier(
    rules_path: Path | None,
    *,
    use_defaults: bool,
    settings: AnalysisSettings | None = None,
):
    """Classifier with the built-in rules (unless disabled) plus a rules file."""

    from .classifier import Classifier
    from .loaders import load_rules_json

    settings = settings or AnalysisSettings()
    ingest = {
        "convention": settings.sign_convention,
        "default_currency": settings.default_currency,
    }
    extra = load_rules_json(rules_path) if rules_path is not None else []
    if use_defaults:
        return Classifier.with_default_rules(extra, **ingest)
    return Classifier(extra, **ingest)


def _as_date(value: datetime | date | None) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    return value


# ---- Command handlers ---------------------------------------------------------


def cmd_categorize(
    transactions_path: Path,
    *,
    rules_path: Path | None = None,
    use_defaults: bool = True,
    only_uncategorized: bool = True,
    account_ids: Sequence[str] = (),
    limit: int | None = None,
    default_category: str | None = None,
    detect_recurring: bool = True,
    lookback_days: int | None = None,
) -> int:
    """Propose categories for a transactions file and print the result as JSON.

    Nothing is written back; the output lists the proposed changes with the
    rule (or heuristic) responsible for each.
    """

    from .api import categorize_transactions

    settings = _settings_or_exit()
    if settings is None:
        return 1
    records = _load_transactions(transactions_path)
    if records is None:
        return 1

    try:
        classifier = _build_classifier(rules_path, use_defaults=use_defaults, settings=settings)
        result = categorize_transactions(
            records,
            classifier,
            only_uncategorized=only_uncategorized,
            account_ids=list(account_ids) or None,
            limit=limit,
            default_category=default_category,
            detect_recurring=detect_recurring,
            lookback_days=lookback_days or settings.lookback_days,
            convention=settings.sign_convention,
            default_currency=settings.default_currency,
        )
    except (OSError, json.JSONDecodeError) as e:
        print(f"Error: failed to read rules: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: categorize failed: {e}", file=sys.stderr)
        return 1

    _emit(result.to_dict())
    return 0


def cmd_detect_subscriptions(
    transactions_path: Path,
    *,
    lookback_days: int | None = None,
    as_of: date | None = None,
) -> int:
    """Detect recurring payments and print the subscription report as JSON."""

    from .api import subscription_report

    settings = _settings_or_exit()
    if settings is None:
        return 1
    records = _load_transactions(transactions_path)
    if records is None:
        return 1

    try:
        report = subscription_report(
            records,
            lookback_days or settings.lookback_days,
            as_of=as_of,
            convention=settings.sign_convention,
            default_currency=settings.default_currency,
        )
    except ValueError as e:
        print(f"Error: detect-subscriptions failed: {e}", file=sys.stderr)
        return 1

    _emit(report.to_dict())
    return 0


def cmd_cash_flow(
    transactions_path: Path,
    *,
    days: int | None = None,
    account_ids: Sequence[str] = (),
    exclude_transfers: bool = True,
    group_by_category: bool = False,
    group_by_account: bool = False,
    include_insights: bool = True,
    as_of: date | None = None,
    fill_categories: bool = False,
    rules_path: Path | None = None,
) -> int:
    """Summarize cash flow for a transactions file and print it as JSON."""

    from .cashflow import CashFlowOptions, summarize

    settings = _settings_or_exit()
    if settings is None:
        return 1
    records = _load_transactions(transactions_path)
    if records is None:
        return 1

    try:
        classifier = None
        if fill_categories:
            classifier = _build_classifier(rules_path, use_defaults=True, settings=settings)
        options = CashFlowOptions(
            account_ids=tuple(account_ids) or None,
            exclude_transfers=exclude_transfers,
            group_by_category=group_by_category,
            group_by_account=group_by_account,
            include_insights=include_insights,
            as_of=as_of,
            classifier=classifier,
            convention=settings.sign_convention,
            default_currency=settings.default_currency,
        )
        summary = summarize(records, days or settings.period_days, options)
    except (OSError, json.JSONDecodeError) as e:
        print(f"Error: failed to read rules: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: cash-flow failed: {e}", file=sys.stderr)
        return 1

    _emit(summary.to_dict())
    return 0


def cmd_cash_flow_trend(
    transactions_path: Path,
    *,
    periods: int = 6,
    period_type: str = "month",
    as_of: date | None = None,
    account_ids: Sequence[str] = (),
    exclude_transfers: bool = False,
) -> int:
    """Print inflow/outflow per period and the overall trend as JSON."""

    from .cashflow import cash_flow_trend

    settings = _settings_or_exit()
    if settings is None:
        return 1
    records = _load_transactions(transactions_path)
    if records is None:
        return 1

    try:
        trend = cash_flow_trend(
            records,
            periods,
            period_type,
            as_of=as_of,
            account_ids=list(account_ids) or None,
            exclude_transfers=exclude_transfers,
            convention=settings.sign_convention,
            default_currency=settings.default_currency,
        )
    except ValueError as e:
        print(f"Error: cash-flow-trend failed: {e}", file=sys.stderr)
        return 1

    _emit(trend.to_dict())
    return 0


def cmd_rules(*, rules_path: Path | None = None, use_defaults: bool = True) -> int:
    """Print the active rules in evaluation order as JSON."""

    try:
        classifier = _build_classifier(rules_path, use_defaults=use_defaults)
    except FileNotFoundError:
        print(f"Error: File not found: {rules_path}", file=sys.stderr)
        return 1
    except (OSError, json.JSONDecodeError) as e:
        print(f"Error: failed to read rules: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    _emit(classifier.describe_rules())
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Categorize transactions, detect subscriptions and summarize cash flow "
        "from JSON ledger exports. Loads SPEND_ANALYSIS_* settings from a local .env."
    ),
)

# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults). Typer will inspect these when used as default values below.
TRANSACTIONS_OPTION: OptionInfo = typer.Option(
    ...,  # required
    "--transactions",
    "-t",
    help="Path to a JSON file: a list of transactions or {'transactions': [...]}",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handler reports missing files itself
)
RULES_OPTION: OptionInfo = typer.Option(
    None,
    "--rules",
    help="Path to a JSON file with extra rule definitions",
    dir_okay=False,
    file_okay=True,
)
ACCOUNT_OPTION: OptionInfo = typer.Option(
    [],
    "--account-id",
    help="Only include transactions from this account (repeatable)",
)
AS_OF_OPTION: OptionInfo = typer.Option(
    None,
    "--as-of",
    formats=["%Y-%m-%d"],
    help="Reference date (YYYY-MM-DD); defaults to the latest transaction date",
)


def _exit_with(rc: int) -> None:
    if rc:
        raise typer.Exit(code=rc)


@app.command("categorize")
def categorize_cmd(
    transactions: Annotated[Path, TRANSACTIONS_OPTION],
    rules: Path | None = RULES_OPTION,
    account_id: list[str] = ACCOUNT_OPTION,
    *,
    defaults: bool = typer.Option(True, help="Include the built-in rule table."),
    only_uncategorized: bool = typer.Option(
        True, help="Skip transactions that already carry a category."
    ),
    limit: int | None = typer.Option(None, min=1, help="Process at most N transactions."),
    default_category: str | None = typer.Option(
        None, help="Category to propose when no rule or heuristic matches."
    ),
    detect_recurring: bool = typer.Option(
        True, help="Detect subscriptions first so recurring-only rules can fire."
    ),
    lookback_days: int | None = typer.Option(
        None, min=1, help="Recurrence lookback window (falls back to SPEND_ANALYSIS_LOOKBACK_DAYS)."
    ),
) -> None:
    """Propose categories for uncategorized transactions."""

    _exit_with(
        cmd_categorize(
            transactions,
            rules_path=rules,
            use_defaults=defaults,
            only_uncategorized=only_uncategorized,
            account_ids=account_id,
            limit=limit,
            default_category=default_category,
            detect_recurring=detect_recurring,
            lookback_days=lookback_days,
        )
    )


@app.command("detect-subscriptions")
def detect_subscriptions_cmd(
    transactions: Annotated[Path, TRANSACTIONS_OPTION],
    as_of: datetime | None = AS_OF_OPTION,
    *,
    lookback_days: int | None = typer.Option(
        None, min=1, help="Lookback window in days (falls back to SPEND_ANALYSIS_LOOKBACK_DAYS)."
    ),
) -> None:
    """Detect recurring payments (weekly, monthly, yearly)."""

    _exit_with(
        cmd_detect_subscriptions(
            transactions, lookback_days=lookback_days, as_of=_as_date(as_of)
        )
    )


@app.command("cash-flow")
def cash_flow_cmd(
    transactions: Annotated[Path, TRANSACTIONS_OPTION],
    rules: Path | None = RULES_OPTION,
    account_id: list[str] = ACCOUNT_OPTION,
    as_of: datetime | None = AS_OF_OPTION,
    *,
    days: int | None = typer.Option(
        None, help="Period length in days (falls back to SPEND_ANALYSIS_PERIOD_DAYS)."
    ),
    exclude_transfers: bool = typer.Option(
        True, help="Drop same-day income/expense pairs with matching amounts."
    ),
    group_by_category: bool = typer.Option(False, help="Add a per-category breakdown."),
    group_by_account: bool = typer.Option(False, help="Add a per-account breakdown."),
    insights: bool = typer.Option(True, help="Include generated insights."),
    fill_categories: bool = typer.Option(
        False, help="Categorize uncategorized transactions for the category breakdown."
    ),
) -> None:
    """Summarize inflows, outflows and insights over a period."""

    _exit_with(
        cmd_cash_flow(
            transactions,
            days=days,
            account_ids=account_id,
            exclude_transfers=exclude_transfers,
            group_by_category=group_by_category,
            group_by_account=group_by_account,
            include_insights=insights,
            as_of=_as_date(as_of),
            fill_categories=fill_categories,
            rules_path=rules,
        )
    )


@app.command("cash-flow-trend")
def cash_flow_trend_cmd(
    transactions: Annotated[Path, TRANSACTIONS_OPTION],
    account_id: list[str] = ACCOUNT_OPTION,
    as_of: datetime | None = AS_OF_OPTION,
    *,
    periods: int = typer.Option(6, help="Number of periods to compare."),
    period_type: str = typer.Option("month", help="Period type: day, week or month."),
    exclude_transfers: bool = typer.Option(
        False, help="Drop transfer pairs within each period."
    ),
) -> None:
    """Show cash flow per period and whether it is improving."""

    _exit_with(
        cmd_cash_flow_trend(
            transactions,
            periods=periods,
            period_type=period_type,
            as_of=_as_date(as_of),
            account_ids=account_id,
            exclude_transfers=exclude_transfers,
        )
    )


@app.command("rules")
def rules_cmd(
    rules: Path | None = RULES_OPTION,
    *,
    defaults: bool = typer.Option(True, help="Include the built-in rule table."),
) -> None:
    """List the active categorization rules in evaluation order."""

    _exit_with(cmd_rules(rules_path=rules, use_defaults=defaults))


@app.callback()
def _root(
    log_level: str | None = typer.Option(
        None, help="Log level (falls back to SPEND_ANALYSIS_LOG_LEVEL, then INFO)."
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging before the
    subcommand runs.
    """

    # Load environment from .env in CWD (override=False to keep existing env)
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    # Central logging setup so child loggers inherit configuration
    configure_logging(log_level)


if __name__ == "__main__":  # pragma: no cover
    # Running as a module: `python -m spend_analysis.cli`
    app()
