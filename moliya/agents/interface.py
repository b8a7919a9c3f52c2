"""
AI Collaborator Contracts

DESIGN DECISION: The intent resolver and the advice generator are
capabilities injected into the pipeline, not concrete dependencies.
The Gemini implementations live in ai_agents.py; tests plug in
deterministic stubs.

CONTRACTS:

1. INTENT RESOLVER:
   - Input: raw user text + names of known people
   - Output: a valid AIResponse, ALWAYS
   - On any failure: AIResponse.fallback(), never an exception

2. ADVICE GENERATOR:
   - Input: the most recent transactions (bounded window)
   - Output: a single advisory sentence, ALWAYS
"""

from abc import ABC, abstractmethod
from typing import Sequence

from moliya.models.intent import AIResponse
from moliya.models.ledger import Transaction


class IntentResolverInterface(ABC):
    """Turns free text into a structured intent."""

    @abstractmethod
    async def resolve(
        self,
        text: str,
        known_people: Sequence[str],
    ) -> AIResponse:
        """
        Classify the utterance and extract transaction fields.

        Args:
            text: What the user typed (or dictated)
            known_people: Names already on the roster, so the resolver
                          can reuse their spelling

        Returns:
            A valid AIResponse; AIResponse.fallback() on failure
        """
        pass


class AdviceGeneratorInterface(ABC):
    """Produces a one-line financial suggestion."""

    @abstractmethod
    async def advise(self, transactions: Sequence[Transaction]) -> str:
        """
        Args:
            transactions: Recent transactions, newest first

        Returns:
            One advisory sentence; a fixed fallback line on failure
        """
        pass
