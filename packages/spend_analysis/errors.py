"""Exception types raised by ``spend_analysis``.

All concrete errors subclass ``ValueError`` so callers that already guard
against bad input with ``except ValueError`` keep working.

- :class:`RuleConfigError`: a rule definition was rejected (duplicate id,
  uncompilable pattern, non-finite or non-integer priority). The rule set is
  left untouched.
- :class:`InvalidParameterError`: a call parameter is out of range (e.g. a
  non-positive period length). Raised before any computation.
- :class:`TransactionDataError`: a single transaction cannot be ingested.
  Batch operations catch it and record an :class:`ItemError` instead.
"""

from __future__ import annotations

from dataclasses import dataclass


class SpendAnalysisError(Exception):
    """Base class for package errors."""


class RuleConfigError(SpendAnalysisError, ValueError):
    pass


class InvalidParameterError(SpendAnalysisError, ValueError):
    pass


class TransactionDataError(SpendAnalysisError, ValueError):
    def __init__(self, message: str, *, transaction_id: str | None = None) -> None:
        super().__init__(message)
        self.transaction_id = transaction_id


@dataclass(frozen=True, slots=True)
class ItemError:
    """A batch item that was skipped, with its input position and reason."""

    position: int
    transaction_id: str | None
    reason: str

    def to_dict(self) -> dict[str, object]:
        return {"position": self.position, "id": self.transaction_id, "reason": self.reason}


__all__ = [
    "SpendAnalysisError",
    "RuleConfigError",
    "InvalidParameterError",
    "TransactionDataError",
    "ItemError",
]
