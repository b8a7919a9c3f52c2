"""
Tests for Moliya AI

Test strategy:
1. Unit tests for individual components (models, validators, balances)
2. Integration tests for flows (with stubbed AI services)
3. No real API calls in tests (use stubs)
"""

import pytest
from uuid import uuid4

from moliya.models import (
    AIResponse,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    ClarificationField,
    Intent,
    PaymentMethod,
    PendingAction,
    Person,
    RESOLVER_FALLBACK_MESSAGE,
    Transaction,
    TransactionKind,
    ValidationIssue,
    ValidationResult,
)


class TestLedgerModels:
    """Tests for transaction and person models."""

    def test_transaction_creation(self):
        """Test Transaction model creation with defaults."""
        tx = Transaction(
            amount=50000,
            kind=TransactionKind.EXPENSE,
            category="Ovqat",
            payment_method=PaymentMethod.CARD,
        )
        assert tx.amount == 50000
        assert tx.id
        assert tx.date
        assert tx.person_name is None

    def test_transaction_ids_are_unique(self):
        a = Transaction(amount=1, kind="Xarajat", category="x", paymentMethod="Naqd")
        b = Transaction(amount=1, kind="Xarajat", category="x", paymentMethod="Naqd")
        assert a.id != b.id

    def test_transaction_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            Transaction(
                amount=-100,
                kind=TransactionKind.EXPENSE,
                category="Ovqat",
                payment_method=PaymentMethod.CASH,
            )

    def test_transaction_rounds_float_amount(self):
        tx = Transaction(amount=1500.6, kind="Daromad", category="Oylik", paymentMethod="Karta")
        assert tx.amount == 1501

    def test_transaction_is_frozen(self):
        tx = Transaction(amount=1, kind="Xarajat", category="x", paymentMethod="Naqd")
        with pytest.raises(ValueError):
            tx.amount = 2

    def test_transaction_storage_layout(self):
        """Persisted records use the camelCase keys and display labels."""
        tx = Transaction(
            id="t1",
            amount=100000,
            kind=TransactionKind.DEBT_GIVEN,
            category="Qarz",
            date="05.03.2025",
            payment_method=PaymentMethod.CASH,
            person_name="Ali",
        )
        assert tx.to_storage() == {
            "id": "t1",
            "amount": 100000,
            "type": "Qarz Berdim",
            "category": "Qarz",
            "date": "05.03.2025",
            "paymentMethod": "Naqd",
            "personName": "Ali",
        }

    def test_transaction_loads_from_storage_layout(self):
        tx = Transaction.model_validate({
            "id": "t2",
            "amount": 30000,
            "type": "Xarajat",
            "category": "Yo'l",
            "date": "01.01.2025",
            "paymentMethod": "Karta",
        })
        assert tx.kind == TransactionKind.EXPENSE
        assert tx.payment_method == PaymentMethod.CARD

    def test_blank_person_name_becomes_none(self):
        tx = Transaction(
            amount=1, kind="Xarajat", category="x", paymentMethod="Naqd", personName="  "
        )
        assert tx.person_name is None

    def test_kind_flags(self):
        assert TransactionKind.DEBT_GIVEN.is_debt
        assert TransactionKind.DEBT_TAKEN.is_inflow
        assert TransactionKind.INCOME.is_inflow
        assert not TransactionKind.EXPENSE.is_inflow
        assert not TransactionKind.INCOME.is_debt

    def test_person_matches_case_insensitively(self):
        person = Person(name="Ali")
        assert person.matches("ali")
        assert person.matches(" ALI ")
        assert not person.matches("Vali")
        assert not person.matches(None)

    def test_person_never_persists_balance(self):
        person = Person(name="Ali", balance=5000)
        assert person.to_storage()["balance"] == 0

    def test_person_name_required(self):
        with pytest.raises(ValueError):
            Person(name="   ")


class TestIntentModels:
    """Tests for the resolver contract."""

    def test_ai_response_from_wire_format(self):
        response = AIResponse.model_validate({
            "intent": "transaction",
            "amount": 50000,
            "type": "Xarajat",
            "category": "Ovqat",
            "paymentMethod": None,
            "personName": None,
            "message": "50 000 so'm ovqatga",
            "needsClarification": "paymentMethod",
        })
        assert response.intent == Intent.TRANSACTION
        assert response.kind == TransactionKind.EXPENSE
        assert response.payment_method is None
        assert response.needs_clarification == ClarificationField.PAYMENT_METHOD

    def test_ai_response_requires_message(self):
        with pytest.raises(ValueError):
            AIResponse(intent=Intent.QUERY, message="")

    def test_ai_response_rejects_unknown_intent(self):
        with pytest.raises(ValueError):
            AIResponse.model_validate({"intent": "shopping", "message": "hi"})

    def test_ai_response_unknown_enum_values_become_none(self):
        response = AIResponse.model_validate({
            "intent": "transaction",
            "message": "ok",
            "type": "Sovg'a",
            "paymentMethod": "Bitcoin",
            "needsClarification": "amount",
        })
        assert response.kind is None
        assert response.payment_method is None
        assert response.needs_clarification is None

    def test_ai_response_null_strings_become_none(self):
        response = AIResponse.model_validate({
            "intent": "transaction", "message": "ok", "category": "null", "personName": "",
        })
        assert response.category is None
        assert response.person_name is None

    @pytest.mark.parametrize("field", ["category", "personName"])
    def test_ai_response_text_fields_share_ledger_limits(self, field):
        with pytest.raises(ValueError):
            AIResponse.model_validate({
                "intent": "transaction", "message": "ok", field: "x" * 101,
            })

    def test_debt_requires_person(self):
        with pytest.raises(ValueError, match="Debt intent requires a person name"):
            AIResponse(intent=Intent.DEBT, message="qarz", amount=100)

    def test_fallback(self):
        response = AIResponse.fallback()
        assert response.intent == Intent.CLARIFICATION
        assert response.message == RESOLVER_FALLBACK_MESSAGE

    def test_only_transaction_and_debt_are_actionable(self):
        assert Intent.TRANSACTION.is_actionable
        assert Intent.DEBT.is_actionable
        assert not Intent.QUERY.is_actionable
        assert not Intent.CLARIFICATION.is_actionable

    def test_pending_action_from_response(self):
        correlation_id = uuid4()
        response = AIResponse(
            intent=Intent.TRANSACTION,
            message="ok",
            amount=100,
            needs_clarification=ClarificationField.PAYMENT_METHOD,
        )
        pending = PendingAction.from_response(response, correlation_id)
        assert pending.correlation_id == correlation_id
        assert pending.amount == 100
        assert not pending.is_complete

    def test_pending_action_without_quick_reply_marker_is_complete(self):
        pending = PendingAction(
            intent=Intent.DEBT,
            message="ok",
            person_name="Ali",
            needs_clarification=ClarificationField.CONFIRM,
        )
        assert pending.is_complete


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.INPUT_RECEIVED,
            description="Test input received",
        )
        assert event.event_type == AuditEventType.INPUT_RECEIVED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            description="Transaction added",
            details={"type": "Xarajat", "amount": 1000},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "transaction_added"
        assert log_dict["details"]["amount"] == 1000

    def test_audit_event_builder_user_confirmed(self):
        """Test AuditEventBuilder.user_confirmed."""
        action_id = uuid4()
        correlation_id = uuid4()

        event = AuditEventBuilder.user_confirmed(
            action_id=action_id,
            transaction_id="t1",
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.USER_CONFIRMED
        assert event.entity_id == str(action_id)
        assert event.details["transaction_id"] == "t1"
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_audit_event_builder_transaction_deleted(self):
        event = AuditEventBuilder.transaction_deleted("t9")
        assert event.event_type == AuditEventType.TRANSACTION_DELETED
        assert event.entity_id == "t9"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            transaction_id="t1",
            schema_valid=False,
            semantic_valid=False,
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="invalid_value",
                    message="Amount cannot be negative",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            transaction_id="t1",
            schema_valid=True,
            semantic_valid=True,
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="suspicious_value",
                    message="Amount is zero",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0

    def test_validation_issue_severity_pattern(self):
        with pytest.raises(ValueError):
            ValidationIssue(field="x", issue_type="y", message="z", severity="fatal")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
