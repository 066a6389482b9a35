"""
Record Validation

Every input passes through two checks before it reaches the store:

STAGE 1 - SHAPE (pydantic):
- Types, dates, enum values, required fields
- Failures are translated into ValidationIssues by issues_from_pydantic()

STAGE 2 - RULES (RecordValidator):
- Non-negative money and stock figures
- Strictly positive weights and quantities where the ledger needs them
- Soft warnings (future dates, overridden expected cash)

IMPORTANT: Validation NEVER silently fixes issues.
Errors block the write; warnings are reported and the write goes ahead.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from charity_ledger.config import AppSettings, get_settings
from charity_ledger.models.records import (
    BankTransactionInput,
    CustomItemInput,
    CustomProductInput,
    FamilyMemberInput,
    FamilyPaymentInput,
    GeneralExpenseInput,
    ItemConsumedInput,
    MiscExpenseInput,
    ProductInput,
    SaleInput,
)
from charity_ledger.models.validation import ValidationIssue, ValidationResult


class ValidationError(Exception):
    """
    Input failed a documented constraint.

    Not retryable: the caller must correct the input and resubmit.
    """

    def __init__(self, entity_type: str, issues: list[ValidationIssue]):
        self.entity_type = entity_type
        self.issues = issues
        errors = [issue.message for issue in issues if issue.severity == "error"]
        super().__init__(
            f"Invalid {entity_type}: " + "; ".join(errors or [i.message for i in issues])
        )


def issues_from_pydantic(error: PydanticValidationError) -> list[ValidationIssue]:
    """Translate a pydantic shape failure into validation issues."""
    issues = []
    for err in error.errors():
        field = ".".join(str(part) for part in err.get("loc", ())) or "input"
        err_type = err.get("type", "invalid")
        if err_type == "missing":
            issue_type = "missing"
        elif err_type == "enum":
            issue_type = "invalid_choice"
        else:
            issue_type = "invalid_format"
        issues.append(ValidationIssue(
            field=field,
            issue_type=issue_type,
            message=f"{field}: {err.get('msg', 'invalid value')}",
            severity="error",
        ))
    return issues


class RecordValidator:
    """
    Business-rule checks for every record input.

    One validate_* method per collection. Each returns a ValidationResult;
    callers raise ValidationError when result.has_errors.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    # -------------------------------------------------------------------------
    # Shared checks
    # -------------------------------------------------------------------------

    @staticmethod
    def _require_text(issues: list[ValidationIssue], field: str, value: Optional[str]) -> None:
        if not value or not value.strip():
            issues.append(ValidationIssue(
                field=field,
                issue_type="missing",
                message=f"{field} is required",
                severity="error",
            ))

    @staticmethod
    def _non_negative(issues: list[ValidationIssue], field: str, value: Optional[Decimal]) -> None:
        if value is not None and value < 0:
            issues.append(ValidationIssue(
                field=field,
                issue_type="negative",
                message=f"{field} cannot be negative (got {value})",
                severity="error",
                suggested_fix="Enter zero or a positive amount",
            ))

    @staticmethod
    def _positive(issues: list[ValidationIssue], field: str, value: Optional[Decimal]) -> None:
        if value is not None and value <= 0:
            issues.append(ValidationIssue(
                field=field,
                issue_type="not_positive",
                message=f"{field} must be greater than zero (got {value})",
                severity="error",
            ))

    def _future_date(self, issues: list[ValidationIssue], field: str, value: Optional[date]) -> None:
        if value is None:
            return
        limit = date.today() + timedelta(days=self._settings.future_date_tolerance_days)
        if value > limit:
            issues.append(ValidationIssue(
                field=field,
                issue_type="future_date",
                message=f"{field} ({value}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

    # -------------------------------------------------------------------------
    # Per-collection rules
    # -------------------------------------------------------------------------

    def validate_product(self, data: ProductInput) -> ValidationResult:
        issues: list[ValidationIssue] = []
        self._require_text(issues, "name", data.name)
        self._non_negative(issues, "sale_price", data.sale_price)
        self._non_negative(issues, "quantity", data.quantity)
        self._future_date(issues, "buying_date", data.buying_date)
        return ValidationResult(entity_type="products", issues=issues)

    def validate_sale(
        self,
        data: SaleInput,
        weight: Optional[Decimal],
        expected_cash: Optional[Decimal],
    ) -> ValidationResult:
        """
        Check a sale once weight and expected cash have been resolved.

        Args:
            data: The submitted sale fields
            weight: Weight sold (given, or derived from before/after weights)
            expected_cash: Expected cash (given, or weight x price)
        """
        issues: list[ValidationIssue] = []
        self._require_text(issues, "product_id", data.product_id)

        self._non_negative(issues, "weight_before_sale", data.weight_before_sale)
        self._non_negative(issues, "weight_after_sale", data.weight_after_sale)

        if weight is None:
            issues.append(ValidationIssue(
                field="weight",
                issue_type="missing",
                message="weight is required (or both weight_before_sale and weight_after_sale)",
                severity="error",
            ))
        elif weight <= 0:
            issues.append(ValidationIssue(
                field="weight",
                issue_type="not_positive",
                message=f"Weight sold must be greater than zero (got {weight})",
                severity="error",
                suggested_fix="Weight after sale must be less than weight before sale",
            ))

        self._non_negative(issues, "price_per_kg", data.price_per_kg)
        self._non_negative(issues, "expected_cash", expected_cash)
        for field in ("received_cash", "topup", "charity", "credit"):
            self._non_negative(issues, field, getattr(data, field))

        if (
            data.expected_cash is not None
            and weight is not None
            and data.expected_cash != weight * data.price_per_kg
        ):
            issues.append(ValidationIssue(
                field="expected_cash",
                issue_type="overridden",
                message=(
                    f"Expected cash {data.expected_cash} differs from "
                    f"weight x price ({weight * data.price_per_kg})"
                ),
                severity="warning",
            ))

        self._future_date(issues, "sale_date", data.sale_date)
        return ValidationResult(entity_type="sales", issues=issues)

    def validate_bank_transaction(self, data: BankTransactionInput) -> ValidationResult:
        issues: list[ValidationIssue] = []
        self._non_negative(issues, "amount", data.amount)
        self._future_date(issues, "transaction_date", data.transaction_date)
        return ValidationResult(entity_type="bank_transactions", issues=issues)

    def validate_general_expense(self, data: GeneralExpenseInput) -> ValidationResult:
        issues: list[ValidationIssue] = []
        self._require_text(issues, "name", data.name)
        self._non_negative(issues, "price", data.price)
        self._positive(issues, "quantity", data.quantity)
        self._non_negative(issues, "weight", data.weight)
        self._future_date(issues, "expense_date", data.expense_date)
        return ValidationResult(entity_type="expenses", issues=issues)

    def validate_misc_expense(self, data: MiscExpenseInput) -> ValidationResult:
        issues: list[ValidationIssue] = []
        self._require_text(issues, "name", data.name)
        self._non_negative(issues, "price", data.price)
        self._positive(issues, "quantity", data.quantity)
        self._future_date(issues, "expense_date", data.expense_date)
        return ValidationResult(entity_type="misc_expenses", issues=issues)

    def validate_consumed_item(self, data: ItemConsumedInput) -> ValidationResult:
        """Run after unit and price have been copied from the source, if any."""
        issues: list[ValidationIssue] = []
        self._require_text(issues, "item_name", data.item_name)
        if data.unit is None:
            issues.append(ValidationIssue(
                field="unit",
                issue_type="missing",
                message="unit is required when it cannot be taken from the source item",
                severity="error",
            ))
        self._positive(issues, "quantity", data.quantity)
        self._non_negative(issues, "weight", data.weight)
        self._non_negative(issues, "price", data.price)
        self._future_date(issues, "consumption_date", data.consumption_date)
        return ValidationResult(entity_type="consumed_items", issues=issues)

    def validate_custom_item(self, data: CustomItemInput) -> ValidationResult:
        issues: list[ValidationIssue] = []
        self._require_text(issues, "name", data.name)
        return ValidationResult(entity_type="custom_items", issues=issues)

    def validate_custom_product(self, data: CustomProductInput) -> ValidationResult:
        issues: list[ValidationIssue] = []
        self._require_text(issues, "name", data.name)
        return ValidationResult(entity_type="custom_products", issues=issues)

    def validate_family_member(self, data: FamilyMemberInput) -> ValidationResult:
        issues: list[ValidationIssue] = []
        self._require_text(issues, "name", data.name)
        self._non_negative(issues, "monthly_amount", data.monthly_amount)
        if data.payment_day is not None and not 1 <= data.payment_day <= 31:
            issues.append(ValidationIssue(
                field="payment_day",
                issue_type="out_of_range",
                message=f"payment_day must be between 1 and 31 (got {data.payment_day})",
                severity="error",
            ))
        return ValidationResult(entity_type="family_members", issues=issues)

    def validate_family_payment(self, data: FamilyPaymentInput) -> ValidationResult:
        issues: list[ValidationIssue] = []
        self._require_text(issues, "family_member_name", data.family_member_name)
        self._non_negative(issues, "amount", data.amount)
        if data.next_payment_due and data.next_payment_due < data.payment_date:
            issues.append(ValidationIssue(
                field="next_payment_due",
                issue_type="inconsistent",
                message="Next payment due date is before the payment date",
                severity="warning",
                suggested_fix="Please verify both dates",
            ))
        return ValidationResult(entity_type="family_payments", issues=issues)

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show to volunteers entering data.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed."

        lines = []

        if result.has_errors:
            lines.append("❌ Please fix the following before saving:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines).strip()
