"""
Two-Stage Validation Pipeline

DESIGN DECISION: Every value that is about to reach storage, whether it is
a new line item or a single field typed into the edit overlay, is validated
before any persistence call is attempted.

STAGE 1 - SCHEMA VALIDATION:
- Required grouping fields present and non-blank
- Numeric fields parse as finite decimals
- Numeric fields are non-negative

STAGE 2 - SEMANTIC VALIDATION:
- Transaction type is a known income or expense tag
- Base item label is not blank once the opaque suffix is split off
- Line value within a sane bound

IMPORTANT: Validation NEVER silently fixes issues.
It reports them, and `ensure_valid` refuses to continue on any error.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from reception_ledger.config import Settings, get_settings
from reception_ledger.models.line_item import (
    EDITABLE_FIELDS,
    NUMERIC_FIELDS,
    BaseItemKey,
    LineItem,
    NewLineItem,
    TransactionType,
    ValidationIssue,
    ValidationResult,
    classify_transaction_type,
)


REQUIRED_TEXT_FIELDS = ("description", "work_group", "transaction_type")


def _max_length(field: str) -> Optional[int]:
    """Length bound declared on the LineItem field, if any."""
    for constraint in LineItem.model_fields[field].metadata:
        max_length = getattr(constraint, "max_length", None)
        if max_length is not None:
            return max_length
    return None


class ValidationError(Exception):
    """Input rejected before reaching storage."""

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        super().__init__(message)
        self.issues = issues or []


def parse_decimal(value: Any) -> Optional[Decimal]:
    """
    Parse a user-supplied number.

    Accepts Decimal, int, float and strings with either decimal separator.
    Returns None when the value is not a finite number.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = Decimal(str(value))
    elif isinstance(value, str):
        cleaned = value.strip().replace(" ", "").replace("\u00a0", "").replace(",", ".")
        if not cleaned:
            return None
        try:
            parsed = Decimal(cleaned)
        except InvalidOperation:
            return None
    else:
        return None
    return parsed if parsed.is_finite() else None


class LineItemValidator:
    """
    Validates line item fields through a two-stage pipeline.

    Stage 1: Schema validation
    Stage 2: Semantic validation (only when stage 1 passes)
    """

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self._app = settings.app
        self._hierarchy = settings.hierarchy

    def _validate_schema(
        self,
        fields: Mapping[str, Any],
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        for name in REQUIRED_TEXT_FIELDS:
            value = fields.get(name)
            if value is None or not str(value).strip():
                issues.append(ValidationIssue(
                    field=name,
                    issue_type="missing",
                    message=f"{name} is required",
                    severity="error",
                ))

        for name in NUMERIC_FIELDS:
            if fields.get(name) is None:
                continue  # Defaults apply
            parsed = parse_decimal(fields[name])
            if parsed is None:
                issues.append(ValidationIssue(
                    field=name,
                    issue_type="invalid_format",
                    message=f"{name} must be a number, got {fields[name]!r}",
                    severity="error",
                ))
            elif parsed < 0:
                issues.append(ValidationIssue(
                    field=name,
                    issue_type="invalid_value",
                    message=f"{name} cannot be negative",
                    severity="error",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_semantic(
        self,
        fields: Mapping[str, Any],
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        kind = classify_transaction_type(
            str(fields["transaction_type"]),
            self._hierarchy.income_tag_set,
            self._hierarchy.expense_tag_set,
        )
        if kind == TransactionType.UNCLASSIFIED:
            issues.append(ValidationIssue(
                field="transaction_type",
                issue_type="unknown_type",
                message=(
                    f"Unknown transaction type {fields['transaction_type']!r}; "
                    "expected an income or expense tag"
                ),
                severity="error",
            ))

        key = BaseItemKey.parse(str(fields["description"]), self._hierarchy.id_delimiter)
        if not key.label:
            issues.append(ValidationIssue(
                field="description",
                issue_type="missing",
                message="Item name is empty once the identifier suffix is removed",
                severity="error",
            ))

        quantity, price = self._numbers(fields)
        if quantity * price > self._app.max_line_value:
            issues.append(ValidationIssue(
                field="price",
                issue_type="suspicious_value",
                message=f"Line value ({quantity * price:,.2f}) seems unusually high",
                severity="warning",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _numbers(self, fields: Mapping[str, Any]) -> tuple[Decimal, Decimal]:
        quantity = parse_decimal(fields.get("quantity"))
        price = parse_decimal(fields.get("price"))
        return (
            self._app.default_quantity if quantity is None else quantity,
            self._app.default_price if price is None else price,
        )

    def validate(self, fields: Mapping[str, Any]) -> ValidationResult:
        """
        Run full two-stage validation pipeline on new item fields.
        """
        all_issues = []

        schema_valid, schema_issues = self._validate_schema(fields)
        all_issues.extend(schema_issues)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(fields)
            all_issues.extend(semantic_issues)

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            issues=all_issues,
        )

    def ensure_valid(self, fields: Mapping[str, Any]) -> NewLineItem:
        """
        Validate new item fields and build the NewLineItem to insert.

        Raises:
            ValidationError: If any error-level issue was found
        """
        result = self.validate(fields)
        if result.has_errors:
            raise ValidationError(self.get_user_friendly_summary(result), result.issues)

        quantity, price = self._numbers(fields)
        return NewLineItem(
            description=str(fields["description"]),
            work_group=str(fields["work_group"]),
            transaction_type=str(fields["transaction_type"]),
            quantity=quantity,
            price=price,
        )

    def validate_field(self, field: str, value: Any) -> Any:
        """
        Validate a single overlay field and return the value to store.

        Text fields may be left blank while editing; they land in the
        "unspecified" bucket until corrected.

        Raises:
            ValidationError: Unknown field or malformed value
        """
        if field not in EDITABLE_FIELDS:
            raise ValidationError(
                f"Field {field!r} is not editable",
                [ValidationIssue(
                    field=field,
                    issue_type="not_editable",
                    message=f"Field {field!r} is not editable",
                    severity="error",
                )],
            )

        if field in NUMERIC_FIELDS:
            parsed = parse_decimal(value)
            if parsed is None or parsed < 0:
                message = f"{field} must be a non-negative number, got {value!r}"
                raise ValidationError(message, [ValidationIssue(
                    field=field,
                    issue_type="invalid_value",
                    message=message,
                    severity="error",
                )])
            return parsed

        if value is None:
            return ""
        if not isinstance(value, str):
            message = f"{field} must be text, got {type(value).__name__}"
            raise ValidationError(message, [ValidationIssue(
                field=field,
                issue_type="invalid_format",
                message=message,
                severity="error",
            )])

        cleaned = value.strip()
        max_length = _max_length(field)
        if max_length is not None and len(cleaned) > max_length:
            message = f"{field} must be at most {max_length} characters"
            raise ValidationError(message, [ValidationIssue(
                field=field,
                issue_type="too_long",
                message=message,
                severity="error",
            )])
        return cleaned

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        Generate a user-friendly summary of validation results.
        """
        if result.is_valid and not result.warnings:
            return "All checks passed."

        lines = []
        errors = [i for i in result.issues if i.severity == "error"]
        if errors:
            lines.append("Please fill in all required fields:")
            for issue in errors:
                lines.append(f"  - {issue.message}")

        if result.warnings:
            lines.append("Please verify the following:")
            for warning in result.warnings:
                lines.append(f"  - {warning}")

        return "\n".join(lines)
