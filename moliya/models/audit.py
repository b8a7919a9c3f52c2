"""
Audit Models for Moliya AI

Every ledger mutation and every step of the chat pipeline is logged
as an AuditEvent. This provides:
1. Traceability of how each transaction got into the ledger
2. Debugging information when the resolver misbehaves
3. A record of destructive actions (deletes have no undo)

DESIGN DECISION: Audit events are append-only. We never modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Ledger mutations
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    PERSON_ADDED = "person_added"
    PERSON_REJECTED = "person_rejected"

    # Storage
    LEDGER_LOADED = "ledger_loaded"
    LEDGER_LOAD_FAILED = "ledger_load_failed"

    # Chat pipeline
    INPUT_RECEIVED = "input_received"
    PENDING_ACTION_CREATED = "pending_action_created"
    CLARIFICATION_APPLIED = "clarification_applied"
    USER_CONFIRMED = "user_confirmed"
    USER_CANCELLED = "user_cancelled"
    RESOLVER_FALLBACK = "resolver_fallback"

    # Advice
    ADVICE_GENERATED = "advice_generated"
    ADVICE_DISCARDED = "advice_discarded"

    # Edits
    EDIT_REJECTED = "edit_rejected"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'person', 'pending_action')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - one chat turn, from input to confirm/cancel
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_added(tx_id, kind, amount)
        event = AuditEventBuilder.user_confirmed(action_id, tx_id, correlation_id)
    """

    @staticmethod
    def transaction_added(
        transaction_id: str,
        kind: str,
        amount: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction added: {kind} {amount}",
            details={
                "kind": kind,
                "amount": amount,
            },
        )

    @staticmethod
    def transaction_updated(transaction_id: str, amount: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Transaction edited",
            details={"amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(transaction_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Transaction permanently deleted",
            is_user_action=True,
        )

    @staticmethod
    def person_added(
        person_id: str,
        name: str,
        automatic: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSON_ADDED,
            entity_type="person",
            entity_id=person_id,
            correlation_id=correlation_id,
            description=f"Person added: {name}",
            details={
                "name": name,
                "automatic": automatic,
            },
            is_user_action=not automatic,
        )

    @staticmethod
    def person_rejected(name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSON_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="person",
            description=f"Duplicate person name rejected: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def ledger_loaded(transaction_count: int, people_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_LOADED,
            entity_type="ledger",
            description="Ledger loaded from local storage",
            details={
                "transactions": transaction_count,
                "people": people_count,
            },
        )

    @staticmethod
    def ledger_load_failed(collection: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_LOAD_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            description=f"Stored {collection} unreadable, starting empty",
            error_message=error_message,
            details={"collection": collection},
        )

    @staticmethod
    def input_received(text: str, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INPUT_RECEIVED,
            entity_type="chat",
            correlation_id=correlation_id,
            description="User input received",
            details={"length": len(text)},
            is_user_action=True,
        )

    @staticmethod
    def pending_action_created(
        action_id: UUID,
        intent: str,
        needs_clarification: Optional[str],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PENDING_ACTION_CREATED,
            entity_type="pending_action",
            entity_id=str(action_id),
            correlation_id=correlation_id,
            description=f"Pending {intent} action created",
            details={
                "intent": intent,
                "needs_clarification": needs_clarification,
            },
        )

    @staticmethod
    def clarification_applied(
        action_id: UUID,
        field: str,
        value: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLARIFICATION_APPLIED,
            entity_type="pending_action",
            entity_id=str(action_id),
            correlation_id=correlation_id,
            description=f"Clarified {field}",
            details={
                "field": field,
                "value": value,
            },
            is_user_action=True,
        )

    @staticmethod
    def user_confirmed(
        action_id: UUID,
        transaction_id: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_CONFIRMED,
            entity_type="pending_action",
            entity_id=str(action_id),
            correlation_id=correlation_id,
            description="User confirmed pending action",
            details={"transaction_id": transaction_id},
            is_user_action=True,
        )

    @staticmethod
    def user_cancelled(
        action_id: UUID,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_CANCELLED,
            entity_type="pending_action",
            entity_id=str(action_id),
            correlation_id=correlation_id,
            description="User cancelled pending action",
            is_user_action=True,
        )

    @staticmethod
    def resolver_fallback(
        reason: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RESOLVER_FALLBACK,
            severity=AuditSeverity.WARNING,
            entity_type="chat",
            correlation_id=correlation_id,
            description="Intent resolver failed, fallback response used",
            error_message=reason,
        )

    @staticmethod
    def advice_generated(sequence: int, window: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADVICE_GENERATED,
            entity_type="advice",
            description="Financial advice refreshed",
            details={
                "sequence": sequence,
                "window": window,
            },
        )

    @staticmethod
    def advice_discarded(sequence: int, latest: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADVICE_DISCARDED,
            severity=AuditSeverity.DEBUG,
            entity_type="advice",
            description="Stale advice response discarded",
            details={
                "sequence": sequence,
                "latest": latest,
            },
        )

    @staticmethod
    def edit_rejected(transaction_id: str, issues: list[dict]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EDIT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Edit rejected with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
