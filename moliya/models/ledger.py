"""
Ledger Data Models for Moliya AI

These models define the records held by the Ledger Store and the
figures derived from them.

The field aliases ARE the persisted layout. Transactions and people
are written to local storage as JSON arrays using the camelCase keys
(`paymentMethod`, `personName`, ...), and the enum values are the
labels the user sees in the app (Uzbek).

DESIGN DECISION: Transactions are frozen. An edit never mutates a
record, it replaces it wholesale with a copy that keeps the same id.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


DISPLAY_DATE_FORMAT = "%d.%m.%Y"

DEBT_CATEGORY = "Qarz"
DEFAULT_CATEGORY = "Boshqa"
NO_DATA_CATEGORY = "Ma'lumot yo'q"


def new_id() -> str:
    """Opaque identifier for transactions and people."""
    return uuid4().hex


def today_display(date_format: str = DISPLAY_DATE_FORMAT) -> str:
    """Current date in the display format stored on transactions."""
    return datetime.now().strftime(date_format)


# =============================================================================
# ENUMS
# =============================================================================

class TransactionKind(str, Enum):
    """
    What kind of money movement a transaction records.

    Debt kinds always name a counterparty (see Transaction.person_name).
    """
    EXPENSE = "Xarajat"
    INCOME = "Daromad"
    DEBT_GIVEN = "Qarz Berdim"   # user lent money
    DEBT_TAKEN = "Qarz Oldim"    # user borrowed money

    @property
    def is_debt(self) -> bool:
        return self in (TransactionKind.DEBT_GIVEN, TransactionKind.DEBT_TAKEN)

    @property
    def is_inflow(self) -> bool:
        """Money coming into the user's cash/card."""
        return self in (TransactionKind.INCOME, TransactionKind.DEBT_TAKEN)


class PaymentMethod(str, Enum):
    """Where the money moved: card account or cash."""
    CARD = "Karta"
    CASH = "Naqd"


# =============================================================================
# CORE LEDGER RECORDS
# =============================================================================

class Transaction(BaseModel):
    """
    One financial event.

    `id` is assigned at creation and never reused. Every other field
    may be replaced by an edit (see LedgerStore.replace).
    """
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    id: str = Field(
        default_factory=new_id,
        description="Unique transaction ID"
    )
    amount: int = Field(
        ...,
        ge=0,
        description="Amount in whole currency units (so'm)"
    )
    kind: TransactionKind = Field(
        ...,
        alias="type",
        description="Expense, income or debt direction"
    )
    category: str = Field(
        ...,
        max_length=100,
        description="Free-text category label"
    )
    date: str = Field(
        default_factory=today_display,
        description="Display date, fixed at creation"
    )
    payment_method: PaymentMethod = Field(
        ...,
        alias="paymentMethod",
    )
    person_name: Optional[str] = Field(
        default=None,
        max_length=100,
        alias="personName",
        description="Counterparty for debt transactions"
    )
    note: Optional[str] = Field(
        default=None,
        max_length=500,
    )

    @field_validator("amount", mode="before")
    @classmethod
    def round_amount(cls, v):
        """Amounts are whole units; the resolver sometimes sends floats."""
        if isinstance(v, float):
            return int(round(v))
        return v

    @field_validator("person_name")
    @classmethod
    def blank_person_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    def to_storage(self) -> dict:
        """Serialize using the persisted (camelCase) layout."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Person(BaseModel):
    """
    A named counterparty for debt tracking.

    CRITICAL: `balance` is a display cache only. The authoritative figure
    is always derived from transactions (see ledger.balances). Records
    loaded from storage have it reset to zero.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
    )
    balance: int = Field(
        default=0,
        description="Derived: positive means the person owes the user"
    )

    def matches(self, name: Optional[str]) -> bool:
        """Case-insensitive name comparison."""
        return name is not None and self.name.lower() == name.strip().lower()

    def to_storage(self) -> dict:
        # Never persist a derived balance
        return {"id": self.id, "name": self.name, "balance": 0}


# =============================================================================
# DERIVED FIGURES
# =============================================================================

class Balance(BaseModel):
    """Global card/cash balances."""
    card: int = 0
    cash: int = 0

    @property
    def total(self) -> int:
        return self.card + self.cash


class CategoryTotal(BaseModel):
    """One bucket of the expense category breakdown."""
    name: str
    value: int = 0


class LedgerSummary(BaseModel):
    """Everything the dashboard needs, derived in one pass."""
    balance: Balance
    people: list[Person] = Field(default_factory=list)
    categories: list[CategoryTotal] = Field(default_factory=list)
    transaction_count: int = 0
