"""
Validation Models

Results of checking a user's form edit before it replaces a transaction.
"""

from typing import Optional, Union

from pydantic import BaseModel, Field


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_number', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (coercion, required fields, enum values)
    Stage 2: Semantic validation (debt/person consistency, odd amounts)
    """

    transaction_id: str
    schema_valid: bool
    semantic_valid: bool
    is_valid: bool

    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")


class TransactionEdit(BaseModel):
    """
    Raw values from the edit form.

    Fields left as None keep the original value. `amount` is taken as
    typed by the user and coerced leniently.
    """

    amount: Optional[Union[int, float, str]] = None
    kind: Optional[str] = None
    category: Optional[str] = None
    payment_method: Optional[str] = None
    person_name: Optional[str] = None
    note: Optional[str] = None
