"""
Main Orchestrator for Moliya AI

This module ties together all the components and defines the
end-to-end flows for:
1. Chat input (text → resolver → pending action → clarify → confirm → commit)
2. Ledger commands (edit, delete, add person, summary)
3. Advice refresh (recent transactions → one-line suggestion)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches the ledger without explicit user confirmation
- Only one pending action exists at a time
- Resolver failures never escape as exceptions
- Every step is audited
"""

from enum import Enum
from typing import Optional
from uuid import UUID

import structlog
from pydantic import ValidationError

from moliya.agents import (
    ADVICE_FALLBACK,
    AdviceGeneratorInterface,
    GeminiAdviceGenerator,
    GeminiIntentResolver,
    IntentResolverInterface,
)
from moliya.audit import AuditLogger, configure_logging, create_correlation_id
from moliya.config import get_settings
from moliya.ledger import LedgerStore
from moliya.models.intent import (
    QUICK_CLARIFY_FIELDS,
    AIResponse,
    ClarificationField,
    Intent,
    PendingAction,
)
from moliya.models.ledger import (
    DEBT_CATEGORY,
    DEFAULT_CATEGORY,
    LedgerSummary,
    PaymentMethod,
    Person,
    Transaction,
    TransactionKind,
    today_display,
)
from moliya.models.validation import TransactionEdit, ValidationResult
from moliya.services.storage import (
    DuplicatePersonError,
    JsonFileStorage,
    KeyValueStorageInterface,
    NotFoundError,
    StorageError,
)
from moliya.validation import TransactionValidator


EMPTY_LEDGER_ADVICE = (
    "Hozircha ma'lumotlar yo'q. Birinchi xarajatingizni yozing "
    "va men sizga aqlli tavsiyalar beraman!"
)
DUPLICATE_PERSON_MESSAGE = "Bu ismli shaxs allaqachon mavjud!"
INVALID_PERSON_NAME_MESSAGE = "Ism bo'sh bo'lmasligi va 100 belgidan oshmasligi kerak."
SAVED_MESSAGE = "Muvaffaqiyatli saqlandi! ✅"


logger = structlog.get_logger(__name__)


class PipelineState(str, Enum):
    """States of the action pipeline."""
    IDLE = "idle"
    AWAITING_CLARIFICATION = "awaiting_clarification"
    AWAITING_CONFIRMATION = "awaiting_confirmation"


class PipelineError(Exception):
    """Base exception for action pipeline misuse."""
    pass


class PendingActionExistsError(PipelineError):
    """A new input arrived while a pending action is still open."""
    pass


class ClarificationRequiredError(PipelineError):
    """Confirm was requested before the missing field was supplied."""
    pass


class UnsupportedClarificationError(PipelineError):
    """Quick clarification was requested for a field or value we cannot set."""
    pass


class ConfirmationRequiredError(Exception):
    """A destructive command was issued without explicit confirmation."""
    pass


class ActionPipeline:
    """
    Orchestrates the chat flow.

    State machine:
        IDLE
          │ process_input → transaction/debt intent
          ▼
        AWAITING_CLARIFICATION ──quick_clarify──▶ AWAITING_CONFIRMATION
          │                                          │
          └──────────── cancel ──▶ IDLE ◀── confirm / cancel

    Query and clarification intents only produce a message and leave
    the pipeline IDLE.

    While a pending action is open, process_input is rejected with
    PendingActionExistsError. The caller must confirm or cancel first.
    """

    def __init__(
        self,
        store: LedgerStore,
        resolver: Optional[IntentResolverInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        date_format: Optional[str] = None,
    ):
        self._store = store
        self._resolver = resolver
        self._audit_logger = audit_logger
        self._date_format = date_format or get_settings().app.date_format
        self._pending: Optional[PendingAction] = None

    @property
    def pending(self) -> Optional[PendingAction]:
        return self._pending

    @property
    def state(self) -> PipelineState:
        if self._pending is None:
            return PipelineState.IDLE
        if not self._pending.is_complete:
            return PipelineState.AWAITING_CLARIFICATION
        return PipelineState.AWAITING_CONFIRMATION

    async def _resolve(self, text: str, correlation_id: UUID) -> AIResponse:
        """
        Call the resolver, holding it to its contract.

        Any exception or non-AIResponse result becomes the fallback.
        """
        if self._resolver is None:
            if self._audit_logger:
                self._audit_logger.log_resolver_fallback(
                    "Intent resolver not configured", correlation_id
                )
            return AIResponse.fallback()

        try:
            response = await self._resolver.resolve(
                text, self._store.known_people_names()
            )
        except Exception as e:
            if self._audit_logger:
                self._audit_logger.log_external_service_error(
                    service="intent_resolver",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
                self._audit_logger.log_resolver_fallback(str(e), correlation_id)
            return AIResponse.fallback()

        if not isinstance(response, AIResponse):
            if self._audit_logger:
                self._audit_logger.log_resolver_fallback(
                    f"Unexpected resolver result: {type(response).__name__}",
                    correlation_id,
                )
            return AIResponse.fallback()

        return response

    async def process_input(
        self,
        text: str,
        correlation_id: Optional[UUID] = None,
    ) -> AIResponse:
        """
        Send user text to the resolver and open a pending action if the
        result is a transaction or debt.

        Returns:
            The resolver response; its message is what the chat shows

        Raises:
            PendingActionExistsError: a pending action is still open
        """
        if self._pending is not None:
            raise PendingActionExistsError(
                "Confirm or cancel the current action before sending a new one"
            )

        correlation_id = correlation_id or create_correlation_id()

        if not text or not text.strip():
            return AIResponse.fallback()

        if self._audit_logger:
            self._audit_logger.log_input_received(text, correlation_id)

        response = await self._resolve(text.strip(), correlation_id)

        if response.intent.is_actionable:
            try:
                self._pending = PendingAction.from_response(response, correlation_id)
            except ValidationError as e:
                if self._audit_logger:
                    self._audit_logger.log_resolver_fallback(str(e), correlation_id)
                return AIResponse.fallback()
            if self._audit_logger:
                self._audit_logger.log_pending_action_created(
                    action_id=self._pending.action_id,
                    intent=response.intent.value,
                    needs_clarification=(
                        response.needs_clarification.value
                        if response.needs_clarification else None
                    ),
                    correlation_id=correlation_id,
                )

        return response

    def quick_clarify(
        self,
        field: ClarificationField,
        value: str,
    ) -> Optional[PendingAction]:
        """
        Fill in the missing field from a quick-reply button.

        Returns the patched pending action, or None if nothing is pending.

        Raises:
            UnsupportedClarificationError: the field has no quick-reply
                                           path or the value is invalid
        """
        if self._pending is None:
            return None

        try:
            field = ClarificationField(field)
        except ValueError:
            raise UnsupportedClarificationError(f"Unknown field: {field}")
        if field not in QUICK_CLARIFY_FIELDS:
            raise UnsupportedClarificationError(f"Cannot quick-clarify {field.value}")

        try:
            method = PaymentMethod(value)
        except ValueError:
            raise UnsupportedClarificationError(f"Unknown payment method: {value}")

        self._pending.payment_method = method
        self._pending.needs_clarification = None

        if self._audit_logger:
            self._audit_logger.log_clarification_applied(
                action_id=self._pending.action_id,
                field=field.value,
                value=method.value,
                correlation_id=self._pending.correlation_id,
            )
        return self._pending

    def materialize(self, action: PendingAction) -> Transaction:
        """
        Build the transaction a pending action describes.

        Defaults for missing fields: amount 0, type Xarajat, category
        "Qarz" for debts and "Boshqa" otherwise, payment Naqd.
        """
        default_category = DEBT_CATEGORY if action.intent == Intent.DEBT else DEFAULT_CATEGORY
        return Transaction(
            amount=action.amount or 0,
            kind=action.kind or TransactionKind.EXPENSE,
            category=action.category or default_category,
            date=today_display(self._date_format),
            payment_method=action.payment_method or PaymentMethod.CASH,
            person_name=action.person_name,
        )

    def confirm(self) -> Optional[Transaction]:
        """
        Commit the pending action to the ledger.

        Unknown people named by the action are created in the same
        commit. Returns the new transaction, or None if nothing was
        pending (a repeated confirm never appends twice).

        Raises:
            ClarificationRequiredError: payment method still missing
            StorageError: the commit could not be written; the pending
                          action stays open so the user can retry
        """
        action = self._pending
        if action is None:
            return None
        if not action.is_complete:
            raise ClarificationRequiredError(
                f"Missing {action.needs_clarification.value}"
            )

        transaction = self.materialize(action)
        try:
            self._store.commit(transaction, correlation_id=action.correlation_id)
        except StorageError as e:
            if self._audit_logger:
                self._audit_logger.log_error(
                    error_type="commit_failed",
                    error_message=str(e),
                    details={"action_id": str(action.action_id)},
                    correlation_id=action.correlation_id,
                )
            raise
        self._pending = None

        if self._audit_logger:
            self._audit_logger.log_user_confirmed(
                action_id=action.action_id,
                transaction_id=transaction.id,
                correlation_id=action.correlation_id,
            )
        return transaction

    def cancel(self) -> bool:
        """Discard the pending action. Returns False if nothing was pending."""
        action = self._pending
        if action is None:
            return False

        self._pending = None
        if self._audit_logger:
            self._audit_logger.log_user_cancelled(action.action_id, action.correlation_id)
        return True


class LedgerFlow:
    """
    Direct ledger commands from the history and people screens.
    """

    def __init__(
        self,
        store: LedgerStore,
        validator: Optional[TransactionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._validator = validator or TransactionValidator()
        self._audit_logger = audit_logger

    @property
    def store(self) -> LedgerStore:
        return self._store

    def summary(self) -> LedgerSummary:
        """Balances, people with derived balances, category breakdown."""
        return self._store.summary()

    def add_person(self, name: str) -> tuple[Optional[Person], str]:
        """
        Add a person by name.

        Returns:
            (person, message) - person is None when the name is taken,
            blank or too long
        """
        try:
            person = self._store.add_person(name)
        except DuplicatePersonError:
            return None, DUPLICATE_PERSON_MESSAGE
        except ValidationError:
            return None, INVALID_PERSON_NAME_MESSAGE
        return person, SAVED_MESSAGE

    def edit_transaction(
        self,
        transaction_id: str,
        edit: TransactionEdit,
    ) -> tuple[ValidationResult, str]:
        """
        Apply a form edit to a transaction.

        Returns:
            (validation_result, user_message); the ledger is only
            changed when validation_result.is_valid

        Raises:
            NotFoundError: no transaction with this id
        """
        original = self._store.get(transaction_id)
        if original is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")

        result, replacement = self._validator.validate_edit(
            original, edit, self._store.known_people_names()
        )
        if replacement is not None:
            self._store.replace(transaction_id, replacement)
        elif self._audit_logger:
            self._audit_logger.log_edit_rejected(
                transaction_id,
                [{"field": i.field, "type": i.issue_type} for i in result.issues],
            )

        return result, self._validator.get_user_friendly_summary(result)

    def delete_transaction(self, transaction_id: str, confirmed: bool = False) -> bool:
        """
        Permanently delete a transaction.

        There is no undo, so the caller must pass confirmed=True after
        asking the user.

        Raises:
            ConfirmationRequiredError: confirmed was not set
        """
        if not confirmed:
            raise ConfirmationRequiredError(
                "Deleting a transaction cannot be undone and needs confirmation"
            )
        return self._store.remove(transaction_id)


class AdviceFlow:
    """
    Keeps the dashboard advice line up to date.

    Refreshes are fire-and-forget from the UI's point of view. Each one
    gets a sequence number; a response that comes back after a newer
    refresh was started is discarded, so a stale suggestion never
    overwrites a fresher one.
    """

    def __init__(
        self,
        store: LedgerStore,
        generator: Optional[AdviceGeneratorInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        window: Optional[int] = None,
    ):
        self._store = store
        self._generator = generator
        self._audit_logger = audit_logger
        self._window = window or get_settings().app.advice_window
        self._latest_sequence = 0
        self._current = EMPTY_LEDGER_ADVICE

    @property
    def current(self) -> str:
        return self._current

    @property
    def latest_sequence(self) -> int:
        return self._latest_sequence

    async def refresh(self) -> str:
        """
        Ask for new advice about the latest transactions.

        Returns the advice shown after this refresh settles (which is
        the previous advice if this response turned out to be stale).
        """
        self._latest_sequence += 1
        sequence = self._latest_sequence

        recent = self._store.recent(self._window)
        if not recent:
            self._current = EMPTY_LEDGER_ADVICE
            return self._current

        if self._generator is None:
            advice = ADVICE_FALLBACK
        else:
            try:
                advice = await self._generator.advise(recent)
            except Exception as e:
                if self._audit_logger:
                    self._audit_logger.log_external_service_error(
                        service="advice_generator",
                        error_message=str(e),
                    )
                advice = ADVICE_FALLBACK

        if sequence != self._latest_sequence:
            if self._audit_logger:
                self._audit_logger.log_advice_discarded(sequence, self._latest_sequence)
            return self._current

        self._current = advice
        if self._audit_logger:
            self._audit_logger.log_advice_generated(sequence, len(recent))
        return self._current


def create_app_components(
    storage: Optional[KeyValueStorageInterface] = None,
    resolver: Optional[IntentResolverInterface] = None,
    advice_generator: Optional[AdviceGeneratorInterface] = None,
    use_ai: bool = True,
) -> tuple[ActionPipeline, LedgerFlow, AdviceFlow]:
    """
    Factory function to create all application components.

    Args:
        storage: Storage backend. Defaults to JSON files in the
                 configured data directory.
        resolver / advice_generator: AI collaborators. Default to the
                 Gemini implementations when use_ai is set.
        use_ai: Set to False to run without Gemini (the chat then only
                returns the fallback response).

    Returns:
        (action_pipeline, ledger_flow, advice_flow), all sharing one
        loaded LedgerStore
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)

    audit_logger = AuditLogger()

    if storage is None:
        storage = JsonFileStorage(settings.storage.data_dir)

    store = LedgerStore(
        storage,
        audit_logger=audit_logger,
        transactions_key=settings.storage.transactions_key,
        people_key=settings.storage.people_key,
    )
    store.load()

    if use_ai and (resolver is None or advice_generator is None):
        try:
            gemini = settings.gemini
            resolver = resolver or GeminiIntentResolver(gemini)
            advice_generator = advice_generator or GeminiAdviceGenerator(gemini)
        except Exception as e:
            # Gemini not configured - continue with the ledger only
            logger.warning("gemini_not_configured", error=str(e))

    action_pipeline = ActionPipeline(
        store,
        resolver=resolver,
        audit_logger=audit_logger,
        date_format=settings.app.date_format,
    )
    ledger_flow = LedgerFlow(
        store,
        validator=TransactionValidator(settings.app.max_transaction_amount),
        audit_logger=audit_logger,
    )
    advice_flow = AdviceFlow(
        store,
        generator=advice_generator,
        audit_logger=audit_logger,
        window=settings.app.advice_window,
    )

    return action_pipeline, ledger_flow, advice_flow
