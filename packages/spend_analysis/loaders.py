"""JSON file loaders used by the CLI.

Transactions files hold either a list of ledger records or an object with a
``transactions`` list (the shape the ledger service returns). Records are not
validated here; batch operations validate them and report per-item errors.

Rule files hold a list of rule definitions in the :class:`RuleConfig` shape
and are validated as a whole: one bad rule rejects the file.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from .errors import RuleConfigError
from .logging_setup import get_logger
from .rules import RuleConfig

_logger = get_logger("spend_analysis.loaders")

_RULES_ADAPTER: TypeAdapter[list[RuleConfig]] = TypeAdapter(list[RuleConfig])


def _read_json(path: Path) -> Any:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def load_transactions_json(path: str | Path) -> list[Mapping[str, Any]]:
    """Read raw transaction records from ``path``.

    Raises ``ValueError`` when the document is neither a list nor an object
    with a ``transactions`` list; ``OSError`` and ``json.JSONDecodeError``
    propagate.
    """

    data = _read_json(Path(path))
    if isinstance(data, Mapping):
        data = data.get("transactions")
    if not isinstance(data, list):
        raise ValueError(
            f"{path}: expected a list of transactions or an object with a 'transactions' list"
        )
    _logger.debug("load_transactions:done path=%s count=%d", path, len(data))
    return data


def load_rules_json(path: str | Path) -> list[RuleConfig]:
    """Read and validate rule definitions from ``path``.

    Raises :class:`RuleConfigError` when any rule fails validation.
    """

    data = _read_json(Path(path))
    try:
        configs = _RULES_ADAPTER.validate_python(data)
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'rules'}: {err['msg']}" for err in e.errors()
        )
        raise RuleConfigError(f"{path}: invalid rule definitions: {details}") from e
    _logger.debug("load_rules:done path=%s count=%d", path, len(configs))
    return configs


__all__ = ["load_rules_json", "load_transactions_json"]
