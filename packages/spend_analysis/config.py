"""Runtime settings resolved from environment variables.

Nothing here reads the environment at import time. Entry points call
:func:`load_settings` (after ``load_dotenv`` in the CLI) and pass the values
down explicitly; library functions take plain arguments.

Variables
---------
``SPEND_ANALYSIS_SIGN_CONVENTION``
    ``inflow_positive`` (default) or ``outflow_positive``: how the source
    ledger signs amounts.
``SPEND_ANALYSIS_LOOKBACK_DAYS``
    Default recurrence lookback window in days (90).
``SPEND_ANALYSIS_PERIOD_DAYS``
    Default cash-flow period in days (30).
``SPEND_ANALYSIS_DEFAULT_CURRENCY``
    Currency assumed when a record carries none (``EUR``).
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from .errors import InvalidParameterError
from .models import SignConvention

_PREFIX = "SPEND_ANALYSIS_"


@dataclass(frozen=True, slots=True)
class AnalysisSettings:
    sign_convention: SignConvention = SignConvention.INFLOW_POSITIVE
    lookback_days: int = 90
    period_days: int = 30
    default_currency: str = "EUR"


def _positive_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(_PREFIX + key)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        raise InvalidParameterError(f"{_PREFIX}{key} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise InvalidParameterError(f"{_PREFIX}{key} must be positive, got {value}")
    return value


def load_settings(env: Mapping[str, str] | None = None) -> AnalysisSettings:
    """Build :class:`AnalysisSettings` from ``env`` (defaults to ``os.environ``)."""

    env = os.environ if env is None else env

    raw_convention = (env.get(_PREFIX + "SIGN_CONVENTION") or "").strip().lower()
    if raw_convention:
        try:
            convention = SignConvention(raw_convention)
        except ValueError:
            allowed = ", ".join(c.value for c in SignConvention)
            raise InvalidParameterError(
                f"{_PREFIX}SIGN_CONVENTION must be one of: {allowed}; got {raw_convention!r}"
            ) from None
    else:
        convention = SignConvention.INFLOW_POSITIVE

    currency = (env.get(_PREFIX + "DEFAULT_CURRENCY") or "EUR").strip().upper() or "EUR"

    return AnalysisSettings(
        sign_convention=convention,
        lookback_days=_positive_int(env, "LOOKBACK_DAYS", 90),
        period_days=_positive_int(env, "PERIOD_DAYS", 30),
        default_currency=currency,
    )


__all__ = ["AnalysisSettings", "load_settings"]
