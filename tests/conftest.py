"""
Shared fixtures for Moliya AI tests.

No real API calls: the resolver and advice generator are stubs, and
storage is in memory unless a test asks for tmp_path.
"""

from typing import Optional, Sequence

import pytest

from moliya.agents import AdviceGeneratorInterface, IntentResolverInterface
from moliya.audit import AuditLogger
from moliya.ledger import LedgerStore
from moliya.models import AIResponse, PaymentMethod, Transaction, TransactionKind
from moliya.services.storage import InMemoryStorage


class StubResolver(IntentResolverInterface):
    """Returns queued responses in order and records every call."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: list[tuple[str, list[str]]] = []

    async def resolve(self, text: str, known_people: Sequence[str]) -> AIResponse:
        self.calls.append((text, list(known_people)))
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class StubAdvisor(AdviceGeneratorInterface):
    def __init__(self, advice: str = "Tejang!"):
        self.advice = advice
        self.seen: list[list[Transaction]] = []

    async def advise(self, transactions: Sequence[Transaction]) -> str:
        self.seen.append(list(transactions))
        return self.advice


def make_tx(
    amount: int = 1000,
    kind: TransactionKind = TransactionKind.EXPENSE,
    method: PaymentMethod = PaymentMethod.CASH,
    category: str = "Ovqat",
    person: Optional[str] = None,
) -> Transaction:
    return Transaction(
        amount=amount,
        kind=kind,
        category=category,
        date="01.01.2025",
        payment_method=method,
        person_name=person,
    )


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def audit_logger():
    return AuditLogger()


@pytest.fixture
def store(storage, audit_logger):
    ledger = LedgerStore(storage, audit_logger=audit_logger)
    ledger.load()
    return ledger
