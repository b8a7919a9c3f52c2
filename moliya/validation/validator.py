"""
Two-Stage Validation of Transaction Edits

STAGE 1 - SCHEMA VALIDATION:
- Amount coercion (non-numeric input becomes 0, with a warning)
- Non-negative amount
- Known transaction type and payment method
- Category present, text fields within their length limits

STAGE 2 - SEMANTIC VALIDATION:
- Debt types should name a person, other types should not
- Unusually large or zero amounts
- Person not on the roster

Errors block the edit. Warnings are returned for the UI to show, the
edit still goes through.

DESIGN DECISION: Amount input is lenient on purpose. A typo in the
amount box yields 0 rather than a rejected form; the warning makes the
coercion visible instead of silent.
"""

import re
from typing import Optional, Sequence, Union

from moliya.config import get_settings
from moliya.models.ledger import PaymentMethod, Transaction, TransactionKind
from moliya.models.validation import (
    TransactionEdit,
    ValidationIssue,
    ValidationResult,
)


_LEADING_INT = re.compile(r"^\s*([-+]?\d+)")

# Same bounds as the Transaction / Person fields
MAX_CATEGORY_LENGTH = 100
MAX_NAME_LENGTH = 100
MAX_NOTE_LENGTH = 500


def coerce_amount(raw: Union[int, float, str, None]) -> tuple[int, bool]:
    """
    Parse a user-typed amount.

    Leading digits win ("120 000" -> 120, "5000so'm" -> 5000); anything
    without leading digits becomes 0.

    Returns:
        (amount, was_coerced)
    """
    if isinstance(raw, bool):
        return 0, True
    if isinstance(raw, int):
        return raw, False
    if isinstance(raw, float):
        return int(raw), raw != int(raw)
    if isinstance(raw, str):
        match = _LEADING_INT.match(raw)
        if match:
            value = int(match.group(1))
            return value, match.group(0).strip() != raw.strip()
    return 0, True


class TransactionValidator:
    """
    Validates a form edit against the transaction it replaces.
    """

    def __init__(self, max_amount: Optional[int] = None):
        self._max_amount = max_amount or get_settings().app.max_transaction_amount

    def _validate_schema(
        self,
        original: Transaction,
        edit: TransactionEdit,
    ) -> tuple[bool, list[ValidationIssue], dict]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues, resolved_fields)
        """
        issues = []
        fields = {
            "amount": original.amount,
            "kind": original.kind,
            "category": original.category,
            "payment_method": original.payment_method,
            "person_name": original.person_name,
            "note": original.note,
        }

        if edit.amount is not None:
            amount, coerced = coerce_amount(edit.amount)
            if coerced:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="invalid_number",
                    message=f"Amount {edit.amount!r} is not a whole number, using {amount}",
                    severity="warning",
                    suggested_fix="Enter the amount in digits only",
                ))
            if amount < 0:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="invalid_value",
                    message="Amount cannot be negative",
                    severity="error",
                    suggested_fix="Use the transaction type to record money coming in",
                ))
            fields["amount"] = amount

        if edit.kind is not None:
            try:
                fields["kind"] = TransactionKind(edit.kind)
            except ValueError:
                issues.append(ValidationIssue(
                    field="kind",
                    issue_type="invalid_value",
                    message=f"Unknown transaction type: {edit.kind}",
                    severity="error",
                ))

        if edit.payment_method is not None:
            try:
                fields["payment_method"] = PaymentMethod(edit.payment_method)
            except ValueError:
                issues.append(ValidationIssue(
                    field="payment_method",
                    issue_type="invalid_value",
                    message=f"Unknown payment method: {edit.payment_method}",
                    severity="error",
                ))

        if edit.category is not None:
            category = edit.category.strip()
            if not category:
                issues.append(ValidationIssue(
                    field="category",
                    issue_type="missing",
                    message="Category cannot be empty",
                    severity="error",
                ))
            elif len(category) > MAX_CATEGORY_LENGTH:
                issues.append(ValidationIssue(
                    field="category",
                    issue_type="too_long",
                    message=f"Category is longer than {MAX_CATEGORY_LENGTH} characters",
                    severity="error",
                    suggested_fix="Use a short label such as Ovqat or Yo'l",
                ))
            fields["category"] = category

        if edit.person_name is not None:
            fields["person_name"] = edit.person_name.strip() or None
            if fields["person_name"] and len(fields["person_name"]) > MAX_NAME_LENGTH:
                issues.append(ValidationIssue(
                    field="person_name",
                    issue_type="too_long",
                    message=f"Name is longer than {MAX_NAME_LENGTH} characters",
                    severity="error",
                ))

        if edit.note is not None:
            fields["note"] = edit.note.strip() or None
            if fields["note"] and len(fields["note"]) > MAX_NOTE_LENGTH:
                issues.append(ValidationIssue(
                    field="note",
                    issue_type="too_long",
                    message=f"Note is longer than {MAX_NOTE_LENGTH} characters",
                    severity="error",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues, fields

    def _validate_semantic(
        self,
        fields: dict,
        known_people: Sequence[str],
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Only warnings today: the ledger does not enforce the debt/person
        pairing, it only points it out.
        """
        issues = []
        kind: TransactionKind = fields["kind"]
        person = fields["person_name"]

        if kind.is_debt and not person:
            issues.append(ValidationIssue(
                field="person_name",
                issue_type="missing",
                message="Debt transactions should name a person",
                severity="warning",
                suggested_fix="Add the person's name so the debt shows up in their balance",
            ))
        elif not kind.is_debt and person:
            issues.append(ValidationIssue(
                field="person_name",
                issue_type="inconsistent",
                message=f"{kind.value} transactions do not count towards {person}'s balance",
                severity="warning",
            ))

        if person and not any(p.lower() == person.lower() for p in known_people):
            issues.append(ValidationIssue(
                field="person_name",
                issue_type="unknown_person",
                message=f"{person} is not in your people list",
                severity="info",
            ))

        if fields["amount"] == 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message="Amount is zero",
                severity="warning",
            ))
        elif fields["amount"] > self._max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({fields['amount']:,}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def validate_edit(
        self,
        original: Transaction,
        edit: TransactionEdit,
        known_people: Sequence[str] = (),
    ) -> tuple[ValidationResult, Optional[Transaction]]:
        """
        Run both stages and build the replacement transaction.

        Returns:
            (validation_result, replacement) - replacement is None when
            any error-level issue was found. It keeps the original id
            and date.
        """
        all_issues = []

        schema_valid, schema_issues, fields = self._validate_schema(original, edit)
        all_issues.extend(schema_issues)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(fields, known_people)
            all_issues.extend(semantic_issues)

        result = ValidationResult(
            transaction_id=original.id,
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=[i.message for i in all_issues if i.severity == "warning"],
        )

        if not result.is_valid:
            return result, None

        replacement = Transaction(
            id=original.id,
            date=original.date,
            amount=fields["amount"],
            kind=fields["kind"],
            category=fields["category"],
            payment_method=fields["payment_method"],
            person_name=fields["person_name"],
            note=fields["note"],
        )
        return result, replacement

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        Summary of a validation result for display next to the form.
        """
        if result.is_valid and not result.warnings:
            return "✅ Saqlandi."

        lines = []
        errors = [i for i in result.issues if i.severity == "error"]
        if errors:
            lines.append("❌ The edit was not saved:")
            for issue in errors:
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
