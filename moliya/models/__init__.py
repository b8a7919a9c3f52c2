"""
Data Models Package

This package contains all Pydantic models used in Moliya AI.
Ledger records, resolver proposals and audit events all conform to these schemas.
"""

from moliya.models.ledger import (
    Balance,
    CategoryTotal,
    LedgerSummary,
    PaymentMethod,
    Person,
    Transaction,
    TransactionKind,
)
from moliya.models.intent import (
    AIResponse,
    ClarificationField,
    Intent,
    PendingAction,
    RESOLVER_FALLBACK_MESSAGE,
)
from moliya.models.validation import (
    TransactionEdit,
    ValidationIssue,
    ValidationResult,
)
from moliya.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Balance",
    "CategoryTotal",
    "LedgerSummary",
    "PaymentMethod",
    "Person",
    "Transaction",
    "TransactionKind",
    # Intent models
    "AIResponse",
    "ClarificationField",
    "Intent",
    "PendingAction",
    "RESOLVER_FALLBACK_MESSAGE",
    # Validation models
    "TransactionEdit",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
