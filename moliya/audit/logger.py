"""
Audit Logger

DESIGN DECISION: Every ledger mutation and pipeline step is logged.
This provides:
1. Traceability of every transaction back to the chat turn that made it
2. Debugging capability when the resolver misbehaves
3. A record of deletes, which cannot be undone

The audit logger:
- Writes structured JSON lines through structlog
- Keeps a bounded tail of recent events in memory
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace one chat turn end to end
"""

import logging
import sys
from collections import deque
from typing import Optional
from uuid import UUID, uuid4

import structlog

from moliya.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


def configure_logging(level: str = "INFO") -> None:
    """Route structlog through stdlib logging, rendering JSON lines."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
        force=True,
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(ensure_ascii=False)
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Events go to the structured log and to an in-memory tail that the
    app (and the tests) can inspect with recent_events().
    """

    def __init__(self, history_size: int = 200):
        self._logger = structlog.get_logger("moliya.audit")
        self._history: deque[AuditEvent] = deque(maxlen=history_size)

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the event could not be written. Never raises.
        """
        self._history.append(event)

        log_dict = event.to_log_dict()
        try:
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception:
            # Audit must never break the main flow
            return False
        return True

    def recent_events(self, limit: int = 50) -> list[AuditEvent]:
        """Most recent events, newest first."""
        return list(reversed(self._history))[:limit]

    def events_for(self, correlation_id: UUID) -> list[AuditEvent]:
        """All retained events of one chat turn, in order."""
        return [e for e in self._history if e.correlation_id == correlation_id]

    def log_transaction_added(
        self,
        transaction_id: str,
        kind: str,
        amount: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.transaction_added(
            transaction_id=transaction_id,
            kind=kind,
            amount=amount,
            correlation_id=correlation_id,
        ))

    def log_transaction_updated(self, transaction_id: str, amount: int) -> None:
        self.log(AuditEventBuilder.transaction_updated(transaction_id, amount))

    def log_transaction_deleted(self, transaction_id: str) -> None:
        self.log(AuditEventBuilder.transaction_deleted(transaction_id))

    def log_person_added(
        self,
        person_id: str,
        name: str,
        automatic: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.person_added(
            person_id=person_id,
            name=name,
            automatic=automatic,
            correlation_id=correlation_id,
        ))

    def log_person_rejected(self, name: str) -> None:
        self.log(AuditEventBuilder.person_rejected(name))

    def log_ledger_loaded(self, transaction_count: int, people_count: int) -> None:
        self.log(AuditEventBuilder.ledger_loaded(transaction_count, people_count))

    def log_ledger_load_failed(self, collection: str, error_message: str) -> None:
        self.log(AuditEventBuilder.ledger_load_failed(collection, error_message))

    def log_input_received(self, text: str, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.input_received(text, correlation_id))

    def log_pending_action_created(
        self,
        action_id: UUID,
        intent: str,
        needs_clarification: Optional[str],
        correlation_id: Optional[UUID],
    ) -> None:
        self.log(AuditEventBuilder.pending_action_created(
            action_id=action_id,
            intent=intent,
            needs_clarification=needs_clarification,
            correlation_id=correlation_id,
        ))

    def log_clarification_applied(
        self,
        action_id: UUID,
        field: str,
        value: str,
        correlation_id: Optional[UUID],
    ) -> None:
        self.log(AuditEventBuilder.clarification_applied(
            action_id=action_id,
            field=field,
            value=value,
            correlation_id=correlation_id,
        ))

    def log_user_confirmed(
        self,
        action_id: UUID,
        transaction_id: str,
        correlation_id: Optional[UUID],
    ) -> None:
        self.log(AuditEventBuilder.user_confirmed(
            action_id=action_id,
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        ))

    def log_user_cancelled(
        self,
        action_id: UUID,
        correlation_id: Optional[UUID],
    ) -> None:
        self.log(AuditEventBuilder.user_cancelled(action_id, correlation_id))

    def log_resolver_fallback(
        self,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.resolver_fallback(reason, correlation_id))

    def log_advice_generated(self, sequence: int, window: int) -> None:
        self.log(AuditEventBuilder.advice_generated(sequence, window))

    def log_advice_discarded(self, sequence: int, latest: int) -> None:
        self.log(AuditEventBuilder.advice_discarded(sequence, latest))

    def log_edit_rejected(self, transaction_id: str, issues: list[dict]) -> None:
        self.log(AuditEventBuilder.edit_rejected(transaction_id, issues))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a chat turn and pass it through
    clarification and confirmation.
    """
    return uuid4()
