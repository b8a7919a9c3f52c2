"""Validation package."""

from moliya.validation.validator import TransactionValidator, coerce_amount

__all__ = ["TransactionValidator", "coerce_amount"]
