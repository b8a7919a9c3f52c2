"""
Balance Aggregator

Pure functions over the transaction list. Nothing here is cached:
every call recomputes from scratch, which is fine at personal-ledger
scale.

Two sign conventions live side by side and are NOT reconciled:
- Global balances: income and borrowed money add to card/cash,
  expenses and lent money subtract.
- Person balances: lent money is positive (they owe the user),
  borrowed money is negative (the user owes them).
"""

from typing import Iterable, Sequence

from moliya.models.ledger import (
    NO_DATA_CATEGORY,
    Balance,
    CategoryTotal,
    LedgerSummary,
    PaymentMethod,
    Person,
    Transaction,
    TransactionKind,
)


def compute_balances(transactions: Iterable[Transaction]) -> Balance:
    """Card and cash totals. Order of transactions does not matter."""
    card = 0
    cash = 0
    for tx in transactions:
        signed = tx.amount if tx.kind.is_inflow else -tx.amount
        if tx.payment_method == PaymentMethod.CARD:
            card += signed
        else:
            cash += signed
    return Balance(card=card, cash=cash)


def person_balance(name: str, transactions: Iterable[Transaction]) -> int:
    """Net debt position with one person, matched case-insensitively."""
    key = name.strip().lower()
    total = 0
    for tx in transactions:
        if not tx.person_name or tx.person_name.strip().lower() != key:
            continue
        if tx.kind == TransactionKind.DEBT_GIVEN:
            total += tx.amount
        elif tx.kind == TransactionKind.DEBT_TAKEN:
            total -= tx.amount
    return total


def people_with_balances(
    people: Sequence[Person],
    transactions: Sequence[Transaction],
) -> list[Person]:
    """Copies of the roster with the derived balance filled in."""
    return [
        person.model_copy(update={"balance": person_balance(person.name, transactions)})
        for person in people
    ]


def category_breakdown(transactions: Iterable[Transaction]) -> list[CategoryTotal]:
    """
    Expense totals per category, in first-seen order.

    Never empty: with no expenses a single zero-value placeholder is
    returned so charts always get a series.
    """
    totals: dict[str, int] = {}
    for tx in transactions:
        if tx.kind != TransactionKind.EXPENSE:
            continue
        totals[tx.category] = totals.get(tx.category, 0) + tx.amount

    if not totals:
        return [CategoryTotal(name=NO_DATA_CATEGORY, value=0)]
    return [CategoryTotal(name=name, value=value) for name, value in totals.items()]


def summarize(
    people: Sequence[Person],
    transactions: Sequence[Transaction],
) -> LedgerSummary:
    return LedgerSummary(
        balance=compute_balances(transactions),
        people=people_with_balances(people, transactions),
        categories=category_breakdown(transactions),
        transaction_count=len(transactions),
    )
