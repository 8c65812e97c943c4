"""Validation package."""

from reception_ledger.validation.validator import (
    LineItemValidator,
    ValidationError,
    parse_decimal,
)

__all__ = ["LineItemValidator", "ValidationError", "parse_decimal"]
