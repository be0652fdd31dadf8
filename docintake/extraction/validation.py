"""Value transformation and validation for extracted fields"""

import re
from datetime import datetime
from typing import List, Optional

from ..models import FieldTransformation, FieldValidation


DATE_INPUT_FORMATS = [
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%d.%m.%Y",
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%d-%m-%Y",
    "%d %B %Y",
    "%d %b %Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%Y-%m-%dT%H:%M:%S",
]


def parse_date(value: str) -> Optional[datetime]:
    """Parse a date in one of the common formats, None if none applies"""
    for fmt in DATE_INPUT_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt)
        except ValueError:
            continue
    return None


def apply_transformation(value: str, transformation: Optional[FieldTransformation]) -> str:
    """
    Normalise a raw extracted value

    Args:
        value: Raw value from an extraction method
        transformation: Steps to apply; None only trims whitespace

    Returns:
        Transformed value (possibly empty)
    """
    if transformation is None:
        return value.strip()

    result = value
    if transformation.trim_whitespace:
        result = result.strip()
    if transformation.collapse_whitespace:
        result = re.sub(r"\s+", " ", result).strip()
    if transformation.to_lower:
        result = result.lower()
    if transformation.to_upper:
        result = result.upper()
    if transformation.remove_special_characters:
        result = re.sub(r"[^\w\s]", "", result)
    if transformation.date_format and result:
        parsed = parse_date(result)
        if parsed is not None:
            result = parsed.strftime(transformation.date_format)
    return result


def _parse_number(value: str) -> Optional[float]:
    cleaned = re.sub(r"[\s,]", "", value)
    cleaned = re.sub(r"^[^\d\-+.]+|[^\d.]+$", "", cleaned)
    try:
        return float(cleaned)
    except ValueError:
        return None


def validate_value(value: str, validation: Optional[FieldValidation]) -> List[str]:
    """
    Check a transformed value against a field's validation rule

    Returns:
        List of validation errors; empty when the value passes
    """
    if validation is None:
        return []

    errors = []
    flags = 0 if validation.case_sensitive else re.IGNORECASE

    if validation.pattern and not re.fullmatch(validation.pattern, value, flags):
        errors.append(f"Value '{value}' does not match pattern {validation.pattern}")

    if validation.min_length is not None and len(value) < validation.min_length:
        errors.append(f"Value is shorter than {validation.min_length} characters")
    if validation.max_length is not None and len(value) > validation.max_length:
        errors.append(f"Value is longer than {validation.max_length} characters")

    if validation.min_value is not None or validation.max_value is not None:
        number = _parse_number(value)
        if number is None:
            errors.append(f"Value '{value}' is not numeric")
        else:
            if validation.min_value is not None and number < validation.min_value:
                errors.append(f"Value {number} is below minimum {validation.min_value}")
            if validation.max_value is not None and number > validation.max_value:
                errors.append(f"Value {number} is above maximum {validation.max_value}")

    if validation.allowed_values:
        if validation.case_sensitive:
            allowed = value in validation.allowed_values
        else:
            allowed = value.lower() in {v.lower() for v in validation.allowed_values}
        if not allowed:
            errors.append(f"Value '{value}' is not one of: {', '.join(validation.allowed_values)}")

    return errors
