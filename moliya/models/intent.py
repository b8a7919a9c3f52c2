"""
Intent Models for Moliya AI

CRITICAL: Everything in this module is PROPOSED data, not ledger data.

AIResponse is the contract every Intent Resolver must satisfy, no matter
which backend produced it. Only `intent` and `message` are guaranteed;
every other field is advisory and may be None.

PendingAction is the single live proposal held by the Action Pipeline
until the user confirms or cancels it.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from moliya.models.ledger import PaymentMethod, TransactionKind


RESOLVER_FALLBACK_MESSAGE = "Tushunishda xatolik bo'ldi, iltimos aniqroq yozing."


class Intent(str, Enum):
    """Classification of a user utterance."""
    TRANSACTION = "transaction"
    DEBT = "debt"
    QUERY = "query"
    CLARIFICATION = "clarification"

    @property
    def is_actionable(self) -> bool:
        """Only these intents produce a pending action."""
        return self in (Intent.TRANSACTION, Intent.DEBT)


class ClarificationField(str, Enum):
    """
    Field the resolver could not extract with confidence.

    Only PAYMENT_METHOD has a quick-reply path today.
    """
    PAYMENT_METHOD = "paymentMethod"
    PERSON = "person"
    CONFIRM = "confirm"


QUICK_CLARIFY_FIELDS = frozenset({ClarificationField.PAYMENT_METHOD})


def _lenient_enum(enum_cls, v):
    """Advisory enum fields degrade to None instead of failing the response."""
    if v is None or isinstance(v, enum_cls):
        return v
    try:
        return enum_cls(str(v).strip())
    except ValueError:
        return None


class AIResponse(BaseModel):
    """
    Structured output of the Intent Resolver.

    Malformed responses must not get this far: a resolver that cannot
    build a valid AIResponse returns AIResponse.fallback() instead.
    """
    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    intent: Intent
    message: str = Field(..., min_length=1)

    amount: Optional[float] = Field(default=None, ge=0)
    kind: Optional[TransactionKind] = Field(default=None, alias="type")
    category: Optional[str] = Field(default=None, max_length=100)
    payment_method: Optional[PaymentMethod] = Field(
        default=None,
        alias="paymentMethod",
    )
    person_name: Optional[str] = Field(
        default=None,
        max_length=100,
        alias="personName",
    )
    needs_clarification: Optional[ClarificationField] = Field(
        default=None,
        alias="needsClarification",
    )

    @field_validator("kind", mode="before")
    @classmethod
    def lenient_kind(cls, v):
        return _lenient_enum(TransactionKind, v)

    @field_validator("payment_method", mode="before")
    @classmethod
    def lenient_payment_method(cls, v):
        return _lenient_enum(PaymentMethod, v)

    @field_validator("needs_clarification", mode="before")
    @classmethod
    def lenient_clarification(cls, v):
        return _lenient_enum(ClarificationField, v)

    @field_validator("category", "person_name", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        if isinstance(v, str) and v.strip().lower() in ("", "null", "none"):
            return None
        return v

    @model_validator(mode="after")
    def debt_requires_person(self) -> "AIResponse":
        if self.intent == Intent.DEBT and not self.person_name:
            raise ValueError("Debt intent requires a person name")
        return self

    @classmethod
    def fallback(cls) -> "AIResponse":
        """The fixed response used whenever the resolver fails."""
        return cls(
            intent=Intent.CLARIFICATION,
            message=RESOLVER_FALLBACK_MESSAGE,
        )


class PendingAction(BaseModel):
    """
    A resolver proposal awaiting clarification or confirmation.

    Clarification patches are applied in place; confirm turns it into a
    Transaction and the pipeline discards it.
    """
    model_config = ConfigDict(validate_assignment=True)

    action_id: UUID = Field(default_factory=uuid4)
    correlation_id: Optional[UUID] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    intent: Intent
    message: str
    amount: Optional[float] = None
    kind: Optional[TransactionKind] = None
    category: Optional[str] = Field(default=None, max_length=100)
    payment_method: Optional[PaymentMethod] = None
    person_name: Optional[str] = Field(default=None, max_length=100)
    needs_clarification: Optional[ClarificationField] = None

    @classmethod
    def from_response(
        cls,
        response: AIResponse,
        correlation_id: Optional[UUID] = None,
    ) -> "PendingAction":
        return cls(
            correlation_id=correlation_id,
            intent=response.intent,
            message=response.message,
            amount=response.amount,
            kind=response.kind,
            category=response.category,
            payment_method=response.payment_method,
            person_name=response.person_name,
            needs_clarification=response.needs_clarification,
        )

    @property
    def is_complete(self) -> bool:
        # Markers without a quick-reply path do not block confirmation
        return self.needs_clarification not in QUICK_CLARIFY_FIELDS
