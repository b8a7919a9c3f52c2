"""
Integration tests for the flows in moliya.orchestrator.

The resolver and advice generator are stubs; the ledger is the real
LedgerStore over in-memory storage.
"""

import asyncio
import json

import pytest

from moliya.models import (
    AIResponse,
    AuditEventType,
    ClarificationField,
    Intent,
    PaymentMethod,
    RESOLVER_FALLBACK_MESSAGE,
    TransactionEdit,
    TransactionKind,
)
from moliya.ledger import LedgerStore
from moliya.orchestrator import (
    DUPLICATE_PERSON_MESSAGE,
    INVALID_PERSON_NAME_MESSAGE,
    EMPTY_LEDGER_ADVICE,
    ActionPipeline,
    AdviceFlow,
    ClarificationRequiredError,
    ConfirmationRequiredError,
    LedgerFlow,
    PendingActionExistsError,
    PipelineState,
    UnsupportedClarificationError,
    create_app_components,
)
from moliya.services.storage import InMemoryStorage, NotFoundError, StorageError
from moliya.validation import TransactionValidator

from conftest import StubAdvisor, StubResolver, make_tx


def expense_needing_method(amount: float = 50000) -> AIResponse:
    return AIResponse(
        intent=Intent.TRANSACTION,
        amount=amount,
        kind=TransactionKind.EXPENSE,
        category="Ovqat",
        message="Ovqatga 50 000 so'm. To'lov turi?",
        needs_clarification=ClarificationField.PAYMENT_METHOD,
    )


def debt_to_ali() -> AIResponse:
    return AIResponse(
        intent=Intent.DEBT,
        amount=100000,
        kind=TransactionKind.DEBT_GIVEN,
        payment_method=PaymentMethod.CASH,
        person_name="Ali",
        message="Aliga 100 000 so'm qarz berdingiz",
    )


def make_pipeline(store, audit_logger, *responses) -> ActionPipeline:
    return ActionPipeline(
        store,
        resolver=StubResolver(*responses),
        audit_logger=audit_logger,
        date_format="%d.%m.%Y",
    )


class TestActionPipeline:

    def test_expense_with_payment_clarification(self, store, audit_logger):
        """Text → clarify payment method → confirm → one new transaction."""
        pipeline = make_pipeline(store, audit_logger, expense_needing_method())

        response = asyncio.run(pipeline.process_input("Ovqatga 50 ming"))

        assert response.needs_clarification == ClarificationField.PAYMENT_METHOD
        assert pipeline.state == PipelineState.AWAITING_CLARIFICATION
        assert store.transactions == ()

        with pytest.raises(ClarificationRequiredError):
            pipeline.confirm()
        assert store.transactions == ()

        pipeline.quick_clarify(ClarificationField.PAYMENT_METHOD, "Karta")
        assert pipeline.state == PipelineState.AWAITING_CONFIRMATION

        tx = pipeline.confirm()

        assert pipeline.state == PipelineState.IDLE
        assert store.transactions == (tx,)
        assert tx.amount == 50000
        assert tx.kind == TransactionKind.EXPENSE
        assert tx.category == "Ovqat"
        assert tx.payment_method == PaymentMethod.CARD
        assert store.summary().balance.card == -50000

    def test_debt_creates_person_in_same_commit(self, store, storage, audit_logger):
        pipeline = make_pipeline(store, audit_logger, debt_to_ali())

        asyncio.run(pipeline.process_input("Aliga 100 ming naqd qarz berdim"))
        assert pipeline.state == PipelineState.AWAITING_CONFIRMATION

        tx = pipeline.confirm()

        assert tx.category == "Qarz"
        assert tx.person_name == "Ali"
        assert store.known_people_names() == ["Ali"]
        summary = store.summary()
        assert summary.people[0].balance == 100000
        assert summary.balance.cash == -100000
        assert [p["name"] for p in json.loads(storage.get_item("moliya_people"))] == ["Ali"]

    def test_resolver_receives_known_people(self, store, audit_logger):
        store.add_person("Vali")
        resolver = StubResolver(AIResponse(intent=Intent.QUERY, message="..."))
        pipeline = ActionPipeline(store, resolver=resolver, audit_logger=audit_logger)

        asyncio.run(pipeline.process_input("balans?"))

        assert resolver.calls == [("balans?", ["Vali"])]

    def test_cancel_leaves_ledger_unchanged(self, store, audit_logger):
        pipeline = make_pipeline(store, audit_logger, debt_to_ali())
        asyncio.run(pipeline.process_input("Aliga 100 ming berdim"))

        assert pipeline.cancel() is True

        assert pipeline.state == PipelineState.IDLE
        assert store.transactions == ()
        assert store.people == ()
        assert pipeline.cancel() is False

    def test_cash_expense_scenario(self, store, audit_logger):
        """Ovqatga 50 ming, clarified as Naqd: cash -50000, card untouched."""
        pipeline = make_pipeline(store, audit_logger, expense_needing_method())

        asyncio.run(pipeline.process_input("Ovqatga 50 ming"))
        pipeline.quick_clarify(ClarificationField.PAYMENT_METHOD, "Naqd")
        pipeline.confirm()

        summary = store.summary()
        assert summary.balance.cash == -50000
        assert summary.balance.card == 0
        assert [(c.name, c.value) for c in summary.categories] == [("Ovqat", 50000)]

    def test_card_debt_scenario(self, store, audit_logger):
        """Aliga 100 ming karta orqali: new person Ali at +100000, card -100000."""
        response = debt_to_ali().model_copy(update={"payment_method": PaymentMethod.CARD})
        pipeline = make_pipeline(store, audit_logger, response)

        asyncio.run(pipeline.process_input("Aliga 100 ming karta orqali qarz berdim"))
        tx = pipeline.confirm()

        assert tx.payment_method == PaymentMethod.CARD
        summary = store.summary()
        assert [(p.name, p.balance) for p in summary.people] == [("Ali", 100000)]
        assert summary.balance.card == -100000
        assert summary.balance.cash == 0

    def test_confirm_cancel_confirm_appends_once(self, store, audit_logger):
        pipeline = make_pipeline(store, audit_logger, debt_to_ali())
        asyncio.run(pipeline.process_input("Aliga 100 ming berdim"))

        assert pipeline.confirm() is not None
        assert pipeline.cancel() is False
        assert pipeline.confirm() is None

        assert len(store.transactions) == 1
        assert pipeline.state == PipelineState.IDLE

    def test_oversized_resolver_fields_fall_back(self, store, audit_logger):
        """A response built without validation cannot open a pending action."""
        oversized = AIResponse.model_construct(
            intent=Intent.TRANSACTION,
            message="ok",
            amount=100.0,
            kind=TransactionKind.EXPENSE,
            category="x" * 150,
            payment_method=PaymentMethod.CASH,
            person_name=None,
            needs_clarification=None,
        )
        pipeline = make_pipeline(store, audit_logger, oversized)

        response = asyncio.run(pipeline.process_input("uzun kategoriya"))

        assert response.message == RESOLVER_FALLBACK_MESSAGE
        assert pipeline.state == PipelineState.IDLE
        assert pipeline.confirm() is None
        assert store.transactions == ()

    def test_confirm_when_idle_is_a_no_op(self, store, audit_logger):
        pipeline = make_pipeline(store, audit_logger, debt_to_ali())
        asyncio.run(pipeline.process_input("Aliga 100 ming berdim"))

        assert pipeline.confirm() is not None
        assert pipeline.confirm() is None
        assert len(store.transactions) == 1

    @pytest.mark.parametrize("intent", [Intent.QUERY, Intent.CLARIFICATION])
    def test_non_actionable_intents_stay_idle(self, store, audit_logger, intent):
        pipeline = make_pipeline(store, audit_logger, AIResponse(intent=intent, message="?"))

        response = asyncio.run(pipeline.process_input("salom"))

        assert response.intent == intent
        assert pipeline.pending is None
        assert pipeline.state == PipelineState.IDLE

    def test_resolver_exception_becomes_fallback(self, store, audit_logger):
        pipeline = make_pipeline(store, audit_logger, RuntimeError("boom"))

        response = asyncio.run(pipeline.process_input("nimadir"))

        assert response.message == RESOLVER_FALLBACK_MESSAGE
        assert pipeline.state == PipelineState.IDLE
        assert store.transactions == ()
        types = [e.event_type for e in audit_logger.recent_events()]
        assert AuditEventType.RESOLVER_FALLBACK in types

    def test_no_resolver_configured(self, store, audit_logger):
        pipeline = ActionPipeline(store, resolver=None, audit_logger=audit_logger)
        response = asyncio.run(pipeline.process_input("Ovqatga 5 ming"))
        assert response.message == RESOLVER_FALLBACK_MESSAGE

    def test_blank_input_does_not_call_resolver(self, store, audit_logger):
        resolver = StubResolver()
        pipeline = ActionPipeline(store, resolver=resolver, audit_logger=audit_logger)

        response = asyncio.run(pipeline.process_input("   "))

        assert response.intent == Intent.CLARIFICATION
        assert resolver.calls == []

    def test_new_input_rejected_while_pending(self, store, audit_logger):
        pipeline = make_pipeline(
            store, audit_logger, expense_needing_method(), debt_to_ali()
        )
        asyncio.run(pipeline.process_input("Ovqatga 50 ming"))

        with pytest.raises(PendingActionExistsError):
            asyncio.run(pipeline.process_input("Aliga 100 ming berdim"))

        assert pipeline.pending.category == "Ovqat"

    def test_quick_clarify_rejects_other_fields(self, store, audit_logger):
        pipeline = make_pipeline(store, audit_logger, expense_needing_method())
        asyncio.run(pipeline.process_input("Ovqatga 50 ming"))

        with pytest.raises(UnsupportedClarificationError):
            pipeline.quick_clarify(ClarificationField.PERSON, "Ali")
        with pytest.raises(UnsupportedClarificationError):
            pipeline.quick_clarify(ClarificationField.PAYMENT_METHOD, "Bitcoin")
        assert pipeline.state == PipelineState.AWAITING_CLARIFICATION

    def test_quick_clarify_when_idle(self, store, audit_logger):
        pipeline = make_pipeline(store, audit_logger)
        assert pipeline.quick_clarify(ClarificationField.PAYMENT_METHOD, "Naqd") is None

    def test_missing_fields_get_defaults(self, store, audit_logger):
        pipeline = make_pipeline(
            store,
            audit_logger,
            AIResponse(intent=Intent.TRANSACTION, message="Nimadir sotib oldingiz"),
        )
        asyncio.run(pipeline.process_input("nimadir oldim"))

        tx = pipeline.confirm()

        assert tx.amount == 0
        assert tx.kind == TransactionKind.EXPENSE
        assert tx.category == "Boshqa"
        assert tx.payment_method == PaymentMethod.CASH

    def test_failed_commit_keeps_pending_action(self, audit_logger):
        class BrokenStorage(InMemoryStorage):
            def set_item(self, key, value):
                raise StorageError("disk full")

        store = LedgerStore(BrokenStorage(), audit_logger=audit_logger)
        store.load()
        pipeline = make_pipeline(store, audit_logger, debt_to_ali())
        asyncio.run(pipeline.process_input("Aliga 100 ming berdim"))

        with pytest.raises(StorageError):
            pipeline.confirm()

        assert pipeline.state == PipelineState.AWAITING_CONFIRMATION
        assert store.transactions == ()

    def test_one_turn_is_traceable_by_correlation_id(self, store, audit_logger):
        pipeline = make_pipeline(store, audit_logger, debt_to_ali())
        asyncio.run(pipeline.process_input("Aliga 100 ming berdim"))
        correlation_id = pipeline.pending.correlation_id

        pipeline.confirm()

        types = [e.event_type for e in audit_logger.events_for(correlation_id)]
        assert types == [
            AuditEventType.INPUT_RECEIVED,
            AuditEventType.PENDING_ACTION_CREATED,
            AuditEventType.TRANSACTION_ADDED,
            AuditEventType.PERSON_ADDED,
            AuditEventType.USER_CONFIRMED,
        ]


class TestLedgerFlow:

    @pytest.fixture
    def flow(self, store, audit_logger):
        return LedgerFlow(
            store,
            validator=TransactionValidator(max_amount=10_000_000),
            audit_logger=audit_logger,
        )

    def test_add_person(self, flow):
        person, _ = flow.add_person("Ali")
        assert person.name == "Ali"

        duplicate, message = flow.add_person("ALI")
        assert duplicate is None
        assert message == DUPLICATE_PERSON_MESSAGE
        assert len(flow.store.people) == 1

    def test_edit_transaction(self, flow, store):
        original = store.append(make_tx(100))

        result, _ = flow.edit_transaction(original.id, TransactionEdit(amount="300"))

        assert result.is_valid
        assert store.get(original.id).amount == 300
        assert len(store.transactions) == 1

    def test_rejected_edit_changes_nothing(self, flow, store, audit_logger):
        original = store.append(make_tx(100))

        result, message = flow.edit_transaction(original.id, TransactionEdit(kind="Sovg'a"))

        assert not result.is_valid
        assert store.get(original.id) == original
        assert audit_logger.recent_events(1)[0].event_type == AuditEventType.EDIT_REJECTED

    @pytest.mark.parametrize("name", ["", "   ", "A" * 101])
    def test_add_person_rejects_invalid_names(self, flow, name):
        person, message = flow.add_person(name)

        assert person is None
        assert message == INVALID_PERSON_NAME_MESSAGE
        assert flow.store.people == ()

    def test_overlong_category_edit_is_rejected(self, flow, store):
        original = store.append(make_tx(100))

        result, message = flow.edit_transaction(original.id, TransactionEdit(category="y" * 150))

        assert not result.is_valid
        assert result.issues[0].issue_type == "too_long"
        assert "not saved" in message
        assert store.get(original.id) == original

    def test_edit_unknown_transaction(self, flow):
        with pytest.raises(NotFoundError):
            flow.edit_transaction("missing", TransactionEdit(amount=1))

    def test_edit_recomputes_person_balance(self, flow, store):
        store.add_person("Ali")
        original = store.append(
            make_tx(100, TransactionKind.DEBT_GIVEN, category="Qarz", person="Ali")
        )

        flow.edit_transaction(original.id, TransactionEdit(kind=TransactionKind.DEBT_TAKEN.value))

        assert flow.summary().people[0].balance == -100

    def test_delete_requires_confirmation(self, flow, store):
        tx = store.append(make_tx(100))

        with pytest.raises(ConfirmationRequiredError):
            flow.delete_transaction(tx.id)
        assert len(store.transactions) == 1

        assert flow.delete_transaction(tx.id, confirmed=True) is True
        assert store.transactions == ()


class TestAdviceFlow:

    def test_empty_ledger_does_not_call_generator(self, store, audit_logger):
        advisor = StubAdvisor()
        flow = AdviceFlow(store, generator=advisor, audit_logger=audit_logger, window=5)

        assert asyncio.run(flow.refresh()) == EMPTY_LEDGER_ADVICE
        assert advisor.seen == []

    def test_uses_latest_window(self, store, audit_logger):
        for amount in range(1, 9):
            store.append(make_tx(amount))
        advisor = StubAdvisor("Tejang!")
        flow = AdviceFlow(store, generator=advisor, audit_logger=audit_logger, window=5)

        assert asyncio.run(flow.refresh()) == "Tejang!"
        assert [tx.amount for tx in advisor.seen[0]] == [8, 7, 6, 5, 4]
        assert flow.current == "Tejang!"

    def test_stale_response_is_discarded(self, store, audit_logger):
        store.append(make_tx(100))

        class SlowThenFastAdvisor(StubAdvisor):
            def __init__(self):
                super().__init__()
                self.calls = 0

            async def advise(self, transactions):
                self.calls += 1
                call = self.calls
                if call == 1:
                    await asyncio.sleep(0.05)
                    return "eski"
                return "yangi"

        flow = AdviceFlow(
            store, generator=SlowThenFastAdvisor(), audit_logger=audit_logger, window=5
        )

        async def race():
            slow = asyncio.create_task(flow.refresh())
            await asyncio.sleep(0)
            fast = await flow.refresh()
            return await slow, fast

        slow_result, fast_result = asyncio.run(race())

        assert fast_result == "yangi"
        assert slow_result == "yangi"
        assert flow.current == "yangi"
        types = [e.event_type for e in audit_logger.recent_events()]
        assert AuditEventType.ADVICE_DISCARDED in types

    def test_generator_error_gives_fallback(self, store, audit_logger):
        store.append(make_tx(100))

        class BrokenAdvisor(StubAdvisor):
            async def advise(self, transactions):
                raise RuntimeError("down")

        flow = AdviceFlow(store, generator=BrokenAdvisor(), audit_logger=audit_logger, window=5)
        assert asyncio.run(flow.refresh()) == "Moliya - baraka asosi!"


class TestCreateAppComponents:

    def test_wires_shared_store(self):
        storage = InMemoryStorage()
        pipeline, ledger_flow, advice_flow = create_app_components(
            storage=storage,
            resolver=StubResolver(debt_to_ali()),
            advice_generator=StubAdvisor(),
        )

        asyncio.run(pipeline.process_input("Aliga 100 ming berdim"))
        pipeline.confirm()

        assert ledger_flow.summary().transaction_count == 1
        assert asyncio.run(advice_flow.refresh()) == "Tejang!"

    def test_runs_without_ai(self):
        pipeline, ledger_flow, _ = create_app_components(
            storage=InMemoryStorage(), use_ai=False
        )
        response = asyncio.run(pipeline.process_input("salom"))
        assert response.message == RESOLVER_FALLBACK_MESSAGE


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
