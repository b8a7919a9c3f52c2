"""
Ledger Store

The single source of truth for transactions and people.

Lifecycle:
1. load()   - read both collections from storage (fails soft to empty)
2. mutate   - append / replace / remove / add_person / commit
3. write    - after every mutation, both collections are rewritten in full

DESIGN DECISION: A mutation builds the new collections first, writes
them, and only then swaps them in. If the write raises, memory is left
untouched, so the in-memory ledger never drifts from what was persisted.

The store is an explicit object owned by the application context and
passed to whoever needs it. There is no module-level ledger.
"""

import json
from typing import Optional, Sequence
from uuid import UUID

from pydantic import ValidationError

from moliya.audit import AuditLogger
from moliya.ledger.balances import summarize
from moliya.models.ledger import LedgerSummary, Person, Transaction
from moliya.services.storage import (
    DuplicatePersonError,
    KeyValueStorageInterface,
)


DEFAULT_TRANSACTIONS_KEY = "moliya_transactions"
DEFAULT_PEOPLE_KEY = "moliya_people"


class LedgerStore:
    """
    Holds the ordered transaction list (most recent first) and the
    roster of known people.
    """

    def __init__(
        self,
        storage: KeyValueStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        transactions_key: str = DEFAULT_TRANSACTIONS_KEY,
        people_key: str = DEFAULT_PEOPLE_KEY,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._transactions_key = transactions_key
        self._people_key = people_key
        self._transactions: list[Transaction] = []
        self._people: list[Person] = []

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def transactions(self) -> tuple[Transaction, ...]:
        return tuple(self._transactions)

    @property
    def people(self) -> tuple[Person, ...]:
        return tuple(self._people)

    def known_people_names(self) -> list[str]:
        return [person.name for person in self._people]

    def get(self, transaction_id: str) -> Optional[Transaction]:
        for tx in self._transactions:
            if tx.id == transaction_id:
                return tx
        return None

    def find_person(self, name: Optional[str]) -> Optional[Person]:
        """Case-insensitive roster lookup."""
        if not name:
            return None
        for person in self._people:
            if person.matches(name):
                return person
        return None

    def recent(self, limit: int) -> list[Transaction]:
        """The newest `limit` transactions."""
        return self._transactions[:limit]

    def summary(self) -> LedgerSummary:
        return summarize(self._people, self._transactions)

    # ------------------------------------------------------------------
    # Load / persist
    # ------------------------------------------------------------------

    def load(self) -> None:
        """
        Read both collections from storage.

        Missing keys, unreadable storage and malformed JSON all yield an
        empty collection. Individual malformed records are skipped.
        Nothing is raised to the caller.
        """
        self._transactions = self._load_collection(
            self._transactions_key, "transactions", Transaction
        )
        people = self._load_collection(self._people_key, "people", Person)
        # Stored balances are never authoritative
        self._people = [p.model_copy(update={"balance": 0}) for p in people]

        if self._audit_logger:
            self._audit_logger.log_ledger_loaded(
                len(self._transactions), len(self._people)
            )

    def _load_collection(self, key: str, label: str, model) -> list:
        try:
            raw = self._storage.get_item(key)
        except Exception as e:
            self._report_load_failure(label, str(e))
            return []

        if raw is None:
            return []

        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            self._report_load_failure(label, f"Invalid JSON: {e}")
            return []

        if not isinstance(data, list):
            self._report_load_failure(label, "Stored value is not a list")
            return []

        items = []
        skipped = 0
        for entry in data:
            try:
                items.append(model.model_validate(entry))
            except ValidationError:
                skipped += 1
        if skipped:
            self._report_load_failure(label, f"Skipped {skipped} malformed records")
        return items

    def _report_load_failure(self, label: str, message: str) -> None:
        if self._audit_logger:
            self._audit_logger.log_ledger_load_failed(label, message)

    def _write(
        self,
        transactions: Sequence[Transaction],
        people: Sequence[Person],
    ) -> None:
        """
        Write both keys. If the people write fails, the transactions key
        is restored to the current in-memory state before re-raising.
        """
        self._storage.set_item(
            self._transactions_key,
            self._dump_transactions(transactions),
        )
        try:
            self._storage.set_item(
                self._people_key,
                json.dumps([p.to_storage() for p in people], ensure_ascii=False),
            )
        except Exception:
            self._storage.set_item(
                self._transactions_key,
                self._dump_transactions(self._transactions),
            )
            raise

    @staticmethod
    def _dump_transactions(transactions: Sequence[Transaction]) -> str:
        return json.dumps([tx.to_storage() for tx in transactions], ensure_ascii=False)

    def _apply(
        self,
        transactions: list[Transaction],
        people: list[Person],
    ) -> None:
        """Persist the new state, then make it current."""
        self._write(transactions, people)
        self._transactions = transactions
        self._people = people

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def append(self, transaction: Transaction) -> Transaction:
        """Insert at the head of the list (most recent first)."""
        self._apply([transaction, *self._transactions], self._people)
        if self._audit_logger:
            self._audit_logger.log_transaction_added(
                transaction.id, transaction.kind.value, transaction.amount
            )
        return transaction

    def replace(self, transaction_id: str, new_transaction: Transaction) -> bool:
        """
        Replace a transaction wholesale, keeping its id.

        Returns False (and changes nothing) if the id is unknown.
        """
        if self.get(transaction_id) is None:
            return False

        replacement = new_transaction.model_copy(update={"id": transaction_id})
        self._apply(
            [replacement if tx.id == transaction_id else tx for tx in self._transactions],
            self._people,
        )
        if self._audit_logger:
            self._audit_logger.log_transaction_updated(transaction_id, replacement.amount)
        return True

    def remove(self, transaction_id: str) -> bool:
        """
        Delete a transaction by id. Irreversible.

        Callers must have obtained explicit user confirmation.
        """
        if self.get(transaction_id) is None:
            return False

        self._apply(
            [tx for tx in self._transactions if tx.id != transaction_id],
            self._people,
        )
        if self._audit_logger:
            self._audit_logger.log_transaction_deleted(transaction_id)
        return True

    def add_person(self, name: str) -> Person:
        """
        Add a person to the roster.

        Raises:
            DuplicatePersonError: a person with the same name exists
                                  (case-insensitive); nothing is changed
        """
        person = Person(name=name)
        if self.find_person(person.name) is not None:
            if self._audit_logger:
                self._audit_logger.log_person_rejected(person.name)
            raise DuplicatePersonError(person.name)

        self._apply(self._transactions, [*self._people, person])
        if self._audit_logger:
            self._audit_logger.log_person_added(person.id, person.name)
        return person

    def commit(
        self,
        transaction: Transaction,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[Person]:
        """
        Append a confirmed transaction in a single write.

        If the transaction names a person who is not on the roster yet,
        the person is created in the same write. Returns that new person,
        or None.
        """
        new_person = None
        if transaction.person_name and self.find_person(transaction.person_name) is None:
            new_person = Person(name=transaction.person_name)

        people = [*self._people, new_person] if new_person else self._people
        self._apply([transaction, *self._transactions], people)

        if self._audit_logger:
            self._audit_logger.log_transaction_added(
                transaction.id,
                transaction.kind.value,
                transaction.amount,
                correlation_id=correlation_id,
            )
            if new_person:
                self._audit_logger.log_person_added(
                    new_person.id,
                    new_person.name,
                    automatic=True,
                    correlation_id=correlation_id,
                )
        return new_person
