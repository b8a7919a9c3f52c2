"""Ledger package: the store and the balance aggregator."""

from moliya.ledger.balances import (
    category_breakdown,
    compute_balances,
    people_with_balances,
    person_balance,
    summarize,
)
from moliya.ledger.store import LedgerStore

__all__ = [
    "LedgerStore",
    "category_breakdown",
    "compute_balances",
    "people_with_balances",
    "person_balance",
    "summarize",
]
