"""Constraint checks for coerced cell values."""

import re
from collections.abc import Sequence
from functools import lru_cache
from typing import Any

from stockbox.models.fields import FieldDescriptor, FieldOption, FieldType

from .constants import EMAIL_PATTERN
from .converters import is_empty, parse_date

_EMAIL = re.compile(EMAIL_PATTERN)


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str] | None:
    try:
        return re.compile(pattern)
    except re.error:
        return None


def _format_bound(bound: float) -> str:
    return str(int(bound)) if float(bound).is_integer() else str(bound)


def validate_value(
    value: Any,
    field: FieldDescriptor,
    decimal_separator: str = "comma",
    options: Sequence[FieldOption] | None = None,
) -> str | None:
    """Check a coerced value against a field's constraints.

    Checks run in order: required, type, numeric bounds, length bounds,
    pattern, select or reference membership. The first failure wins.

    Args:
        value: Value produced by coerce_value().
        field: Descriptor holding the constraints.
        decimal_separator: Only used to phrase the number error message.
        options: Loaded records of a reference field. Without them any
            reference value is accepted.

    Returns:
        A human-readable message, or None if the value is valid.
    """
    if is_empty(value):
        if field.required:
            return f"{field.display_label} is required"
        return None

    if field.type == FieldType.NUMBER:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            separator = "comma" if decimal_separator == "comma" else "dot"
            return f"Value must be a number (use {separator} as decimal separator)"
        if field.min is not None and value < field.min:
            return f"Minimum value is {_format_bound(field.min)}"
        if field.max is not None and value > field.max:
            return f"Maximum value is {_format_bound(field.max)}"

    elif field.type == FieldType.BOOLEAN:
        if not isinstance(value, bool):
            return "Value must be Yes/No, True/False or 1/0"

    elif field.type == FieldType.DATE:
        # coerce_value() leaves unparsable dates as the raw text
        if parse_date(str(value)) != value:
            return "Invalid date. Use YYYY-MM-DD or DD/MM/YYYY"

    elif field.type == FieldType.EMAIL:
        if not _EMAIL.match(str(value)):
            return "Invalid email"

    text = value if isinstance(value, str) else None
    if text is not None:
        if field.min_length is not None and len(text) < field.min_length:
            return f"Minimum of {field.min_length} characters"
        if field.max_length is not None and len(text) > field.max_length:
            return f"Maximum of {field.max_length} characters"

    if field.pattern:
        regex = _compile(field.pattern)
        if regex is None or not regex.search(str(value)):
            return field.pattern_message or "Invalid format"

    if field.type == FieldType.SELECT and field.options:
        if value not in field.option_values:
            return f"Invalid value. Options: {', '.join(field.option_values)}"

    if field.type == FieldType.REFERENCE and options:
        if str(value) not in {option.value for option in options}:
            return f"Unknown {field.display_label}: {value}"

    return None
