"""Custom Field Validator - Presence/shape checks for reason custom fields"""
import math
from typing import Any, Dict, List, Optional

from ..domain.models import CustomFieldDefinition, CustomFieldResponse, ValidationReport
from ..domain.enums import CustomFieldType


def parse_number(value: Any) -> Optional[float]:
    """Parse a response to a finite number, or None"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        if not value.strip():
            return None
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class CustomFieldValidator:
    """
    Validate reason custom field responses

    Custom fields only gate on presence and shape; there is no expected value.
    """

    def validate(
        self,
        fields: List[CustomFieldDefinition],
        responses: Dict[str, Any]
    ) -> ValidationReport:
        errors: List[str] = []

        for field in fields:
            if not field.is_required:
                continue

            message = self._check_required(field, responses.get(field.id))
            if message:
                errors.append(message)

        return ValidationReport(is_valid=not errors, errors=errors)

    def _check_required(self, field: CustomFieldDefinition, value: Any) -> Optional[str]:
        if field.field_type == CustomFieldType.MULTI_SELECT:
            if not isinstance(value, (list, tuple)) or len(value) == 0:
                return f"{field.field_name} is required - please select at least one option"
            return None

        if field.field_type == CustomFieldType.BOOLEAN:
            # False is a valid answer
            return f"{field.field_name} is required" if value is None else None

        if _is_blank(value):
            return f"{field.field_name} is required"

        if field.field_type == CustomFieldType.NUMBER and parse_number(value) is None:
            return f"{field.field_name} must be a valid number"

        return None

    def format_responses(
        self,
        fields: List[CustomFieldDefinition],
        responses: Dict[str, Any]
    ) -> List[CustomFieldResponse]:
        """Convert raw responses to the transition payload, skipping empty ones"""
        formatted: List[CustomFieldResponse] = []

        for field in fields:
            value = responses.get(field.id)
            response = CustomFieldResponse(custom_field_id=field.id, field_type=field.field_type)

            if field.field_type == CustomFieldType.BOOLEAN:
                if isinstance(value, bool):
                    response.value_boolean = value
            elif field.field_type == CustomFieldType.NUMBER:
                response.value_number = parse_number(value)
            elif field.field_type == CustomFieldType.SHORT_TEXT:
                response.value_short_text = None if _is_blank(value) else str(value)
            elif field.field_type == CustomFieldType.LONG_TEXT:
                response.value_long_text = None if _is_blank(value) else str(value)
            elif field.field_type == CustomFieldType.MULTI_SELECT:
                if isinstance(value, (list, tuple)) and len(value) > 0:
                    response.value_multi_select = [str(v) for v in value]

            if self._has_value(response):
                formatted.append(response)

        return formatted

    @staticmethod
    def _has_value(response: CustomFieldResponse) -> bool:
        return any(
            v is not None for v in (
                response.value_boolean, response.value_number, response.value_short_text,
                response.value_long_text, response.value_multi_select,
            )
        )
