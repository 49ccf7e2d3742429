"""Approval Gate - Server-described approval checklist evaluation

Each approval field becomes a typed rule carrying its own expectation. Rules
are evaluated by a single dispatch function; no eval() and no per-field
branching outside this module.
"""
from datetime import date
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field

from ..domain.models import ApprovalFieldRule, ApprovalFieldResponse, ValidationReport
from ..domain.enums import ApprovalFieldType, ComparisonType, DateComparisonType
from ..utils.time import to_calendar_date
from ..utils.logger import get_logger
from .custom_field_validator import parse_number

logger = get_logger(__name__)


# ============================================================================
# Rules
# ============================================================================

class _BaseRule(BaseModel):
    field_id: str
    field_name: str
    is_required: bool = False


class BooleanRule(_BaseRule):
    kind: Literal["boolean"] = "boolean"
    expected: Optional[bool] = None


class NumberRule(_BaseRule):
    kind: Literal["number"] = "number"
    comparison: Optional[ComparisonType] = None
    expected: Optional[float] = None

    @property
    def has_comparison(self) -> bool:
        return self.comparison is not None and self.expected is not None


class TextRule(_BaseRule):
    kind: Literal["text"] = "text"
    long: bool = False


class SingleSelectRule(_BaseRule):
    kind: Literal["single_select"] = "single_select"
    options: List[str] = Field(default_factory=list)


class MultiSelectRule(_BaseRule):
    kind: Literal["multi_select"] = "multi_select"
    options: List[str] = Field(default_factory=list)


class DateRule(_BaseRule):
    kind: Literal["date"] = "date"
    comparison: Optional[DateComparisonType] = None
    expected: Optional[date] = None
    expected_end: Optional[date] = None

    @property
    def has_comparison(self) -> bool:
        return self.comparison is not None and self.expected is not None


ApprovalRule = Annotated[
    Union[BooleanRule, NumberRule, TextRule, SingleSelectRule, MultiSelectRule, DateRule],
    Field(discriminator="kind")
]


COMPARISON_LABELS = {
    ComparisonType.EQUAL_TO: "equal to",
    ComparisonType.LESS_THAN: "less than",
    ComparisonType.GREATER_THAN: "greater than",
}

DATE_COMPARISON_LABELS = {
    DateComparisonType.BEFORE: "before",
    DateComparisonType.AFTER: "after",
    DateComparisonType.BETWEEN: "between",
    DateComparisonType.EXACT: "exactly on",
}


def build_rule(field: ApprovalFieldRule) -> ApprovalRule:
    """Turn a flat approval field definition into its typed rule"""
    base = {
        "field_id": field.id,
        "field_name": field.field_name,
        "is_required": field.is_required,
    }
    field_type = field.field_type

    if field_type == ApprovalFieldType.BOOLEAN:
        return BooleanRule(expected=field.expected_value_boolean, **base)
    elif field_type == ApprovalFieldType.NUMBER:
        return NumberRule(
            comparison=field.comparison_type,
            expected=field.expected_value_number,
            **base
        )
    elif field_type in (ApprovalFieldType.SHORT_TEXT, ApprovalFieldType.LONG_TEXT):
        return TextRule(long=field_type == ApprovalFieldType.LONG_TEXT, **base)
    elif field_type == ApprovalFieldType.SINGLE_SELECT:
        return SingleSelectRule(options=field.options or [], **base)
    elif field_type == ApprovalFieldType.MULTI_SELECT:
        return MultiSelectRule(options=field.options or [], **base)
    else:  # DATE
        return DateRule(
            comparison=field.date_comparison_type,
            expected=field.expected_date,
            expected_end=field.expected_date_end,
            **base
        )


# ============================================================================
# Evaluation
# ============================================================================

def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or (isinstance(value, str) and not value.strip())


def evaluate_rule(rule: ApprovalRule, value: Any) -> Optional[str]:
    """
    Evaluate one rule against a response

    Returns:
        None when satisfied, otherwise the violation message
    """
    if rule.kind == "boolean":
        if rule.expected is None:
            if rule.is_required and not isinstance(value, bool):
                return "This field is required"
            return None
        if value is not rule.expected:
            return f"This field must be set to {'Yes' if rule.expected else 'No'}"
        return None

    elif rule.kind == "number":
        if _is_empty(value):
            if rule.is_required or rule.has_comparison:
                return "This field is required"
            return None
        number = parse_number(value)
        if number is None:
            return "Please enter a valid number"
        if rule.has_comparison and not _compare_number(number, rule.comparison, rule.expected):
            return f"Value must be {COMPARISON_LABELS[rule.comparison]} {_format_number(rule.expected)}"
        return None

    elif rule.kind == "text":
        if rule.is_required and _is_empty(value):
            return "This field is required"
        return None

    elif rule.kind == "single_select":
        if _is_empty(value):
            return "Please select an option" if rule.is_required else None
        if rule.options and value not in rule.options:
            return "Please select one of the available options"
        return None

    elif rule.kind == "multi_select":
        if not isinstance(value, (list, tuple)) or len(value) == 0:
            return "Please select at least one option" if rule.is_required else None
        return None

    elif rule.kind == "date":
        if _is_empty(value):
            if rule.is_required or rule.has_comparison:
                return "This field is required"
            return None
        response = to_calendar_date(value)
        if response is None:
            return "Please enter a valid date"
        if rule.has_comparison and not _compare_date(response, rule):
            return _date_message(rule)
        return None

    logger.warning(f"Unknown approval rule kind: {rule.kind}")
    return "This field cannot be validated"


def _compare_number(value: float, comparison: ComparisonType, expected: float) -> bool:
    if comparison == ComparisonType.EQUAL_TO:
        return value == expected
    elif comparison == ComparisonType.LESS_THAN:
        return value < expected
    elif comparison == ComparisonType.GREATER_THAN:
        return value > expected
    return True


def _compare_date(value: date, rule: DateRule) -> bool:
    if rule.comparison == DateComparisonType.BEFORE:
        return value < rule.expected
    elif rule.comparison == DateComparisonType.AFTER:
        return value > rule.expected
    elif rule.comparison == DateComparisonType.EXACT:
        return value == rule.expected
    elif rule.comparison == DateComparisonType.BETWEEN:
        if rule.expected_end is None:
            return value >= rule.expected
        return rule.expected <= value <= rule.expected_end
    return True


def _date_message(rule: DateRule) -> str:
    label = DATE_COMPARISON_LABELS[rule.comparison]
    message = f"Date must be {label} {rule.expected.isoformat()}"
    if rule.comparison == DateComparisonType.BETWEEN and rule.expected_end is not None:
        message += f" and {rule.expected_end.isoformat()}"
    return message


# ============================================================================
# Schema
# ============================================================================

class ApprovalSchema(BaseModel):
    """Validator for one approval checklist"""

    rules: List[ApprovalRule] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.rules

    def validate_responses(self, values: Dict[str, Any]) -> ValidationReport:
        """Evaluate every rule and report all violations together"""
        errors: List[str] = []
        for rule in self.rules:
            message = evaluate_rule(rule, values.get(rule.field_id))
            if message:
                errors.append(f"{rule.field_name}: {message}")
        return ValidationReport(is_valid=not errors, errors=errors)

    def to_responses(self, project_id: str, values: Dict[str, Any]) -> List[ApprovalFieldResponse]:
        """Format responses for submission, omitting empty values"""
        responses: List[ApprovalFieldResponse] = []

        for rule in self.rules:
            value = values.get(rule.field_id)
            response = ApprovalFieldResponse(project_id=project_id, field_id=rule.field_id)

            if rule.kind == "boolean":
                if isinstance(value, bool):
                    response.value_boolean = value
            elif rule.kind == "number":
                response.value_number = parse_number(value)
            elif rule.kind == "text":
                if not _is_empty(value):
                    if rule.long:
                        response.value_long_text = str(value)
                    else:
                        response.value_short_text = str(value)
            elif rule.kind == "single_select":
                if not _is_empty(value):
                    response.value_single_select = str(value)
            elif rule.kind == "multi_select":
                if isinstance(value, (list, tuple)) and len(value) > 0:
                    response.value_multi_select = [str(v) for v in value]
            elif rule.kind == "date":
                response.value_date = to_calendar_date(value)

            if response.model_dump(exclude={"project_id", "field_id"}, exclude_none=True):
                responses.append(response)

        return responses


class ApprovalGate:
    """Builds approval schemas; inert when there is nothing to approve"""

    def build_schema(self, fields: List[ApprovalFieldRule]) -> ApprovalSchema:
        return ApprovalSchema(rules=[build_rule(field) for field in fields])

    def is_active(self, fields: List[ApprovalFieldRule]) -> bool:
        return len(fields) > 0
