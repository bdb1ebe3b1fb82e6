"""Cell value coercion for grid imports.

Every function here is pure and tolerant: unparsable input never raises,
it is handed back unchanged (or as None) so validation can report it.
"""

import math
import re
from collections.abc import Sequence
from datetime import date
from typing import Any

from stockbox.models.fields import FieldDescriptor, FieldOption, FieldType

from .constants import FALSY_TOKENS, IDENTIFIER_KEYWORDS, TRUTHY_TOKENS

_NON_DIGITS = re.compile(r"\D")
_NUMBER_TEXT = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_DMY_DATE = re.compile(r"^(\d{2})/(\d{2})/(\d{4})")


def clean_digits(value: str) -> str:
    """Remove every non-digit character (masks, spaces, punctuation)."""
    return _NON_DIGITS.sub("", value)


def is_identifier_field(key: str) -> bool:
    """Check if a field key names a masked identifier (tax id, phone, postal code)."""
    lowered = key.lower()
    return any(keyword in lowered for keyword in IDENTIFIER_KEYWORDS)


def is_empty(value: Any) -> bool:
    """True for None and blank strings. False and 0 are values."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def parse_number(value: str, decimal_separator: str = "comma") -> int | float | None:
    """Parse a number honouring the decimal separator.

    Args:
        value: Text such as "1.234,56" (comma) or "1,234.56" (dot).
        decimal_separator: "comma" or "dot".

    Returns:
        An int when the text has no fractional part, a float otherwise,
        or None if the text is not a finite number.
    """
    if not value or not isinstance(value, str):
        return None

    normalized = value.strip().replace(" ", "")
    if decimal_separator == "comma":
        normalized = normalized.replace(".", "").replace(",", ".", 1)
    else:
        normalized = normalized.replace(",", "")

    if not _NUMBER_TEXT.match(normalized):
        return None

    try:
        number = float(normalized)
    except (ValueError, OverflowError):
        return None
    if not math.isfinite(number):
        return None

    if "." not in normalized and "e" not in normalized.lower():
        return int(normalized)
    return number


def parse_boolean(value: str) -> bool | None:
    """Parse common yes/no tokens (Portuguese and English)."""
    if isinstance(value, bool):
        return value
    token = str(value).strip().lower()
    if token in TRUTHY_TOKENS:
        return True
    if token in FALSY_TOKENS:
        return False
    return None


def parse_date(value: str) -> str | None:
    """Normalize YYYY-MM-DD or DD/MM/YYYY text to an ISO date string."""
    if not value:
        return None
    text = value.strip()

    match = _ISO_DATE.match(text)
    if match:
        year, month, day = (int(part) for part in match.groups())
    else:
        match = _DMY_DATE.match(text)
        if not match:
            return None
        day, month, year = (int(part) for part in match.groups())

    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _match_option(value: str, options: Sequence[FieldOption]) -> str:
    """Map a label or value to the option's value, labels first."""
    lowered = value.lower()
    for option in options:
        if option.label.lower() == lowered:
            return option.value
    for option in options:
        if option.value.lower() == lowered:
            return option.value
    return value


def coerce_value(
    raw: Any,
    field: FieldDescriptor,
    decimal_separator: str = "comma",
    options: Sequence[FieldOption] | None = None,
) -> Any:
    """Turn raw cell input into the typed value for a field.

    Args:
        raw: The pasted or typed value.
        field: Descriptor of the target column.
        decimal_separator: "comma" or "dot" for number fields.
        options: Records loaded for a reference field, as id/name options.
            A matching name is replaced by its id.

    Returns:
        The typed value, "" for empty input, or the trimmed raw text when it
        cannot be parsed for the field's type.
    """
    if raw is None:
        return ""
    if not isinstance(raw, str):
        # Already typed (set programmatically or from a spreadsheet cell)
        if field.type == FieldType.NUMBER and isinstance(raw, (int, float)) and not isinstance(raw, bool):
            return raw
        if field.type == FieldType.BOOLEAN and isinstance(raw, bool):
            return raw
        raw = str(raw)

    text = raw.strip()
    if not text:
        return ""

    if is_identifier_field(field.key) and field.type in (FieldType.TEXT, FieldType.REFERENCE):
        return clean_digits(text)

    if field.type == FieldType.NUMBER:
        number = parse_number(text, decimal_separator)
        return text if number is None else number
    if field.type == FieldType.BOOLEAN:
        flag = parse_boolean(text)
        return text if flag is None else flag
    if field.type == FieldType.DATE:
        parsed = parse_date(text)
        return text if parsed is None else parsed
    if field.type == FieldType.SELECT:
        return _match_option(text, field.options)
    if field.type == FieldType.REFERENCE and options:
        return _match_option(text, options)

    return text
