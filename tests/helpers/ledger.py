"""Small builders for ledger records used across tests.

Records are plain dicts in the ledger's wire shape (inflow-positive amounts
as strings, ISO dates) so tests exercise the same ingestion path as real
input.
"""

from __future__ import annotations

import datetime as dt
import itertools
from typing import Any

_ids = itertools.count(1)


def record(
    amount: str | float,
    date: str | dt.date = "2024-03-01",
    *,
    merchant: str | None = None,
    name: str | None = None,
    classification: str | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """A ledger record; classification is derived from the sign when omitted."""

    out: dict[str, Any] = {
        "id": extra.pop("id", f"tx-{next(_ids)}"),
        "date": date.isoformat() if isinstance(date, dt.date) else date,
        "amount": amount,
    }
    if merchant is not None:
        out["merchant"] = merchant
    if name is not None:
        out["name"] = name
    if classification is not None:
        out["classification"] = classification
    out.update(extra)
    return out


def expense(amount: str | float, date: str | dt.date = "2024-03-01", **kw: Any) -> dict[str, Any]:
    """Expense record; ``amount`` is the positive magnitude."""

    return record(f"-{amount}", date, classification="expense", **kw)


def income(amount: str | float, date: str | dt.date = "2024-03-01", **kw: Any) -> dict[str, Any]:
    return record(str(amount), date, classification="income", **kw)
