"""Data models for the StockBox import engine."""

from stockbox.models.fields import (
    EntityDefinition,
    FieldDescriptor,
    FieldOption,
    FieldType,
    enabled_fields,
)
from stockbox.models.progress import (
    ImportProgress,
    ImportResult,
    ImportResultRow,
    ImportRowData,
    ImportStatus,
    RowError,
)
from stockbox.models.validation import ValidationError, ValidationResult

__all__ = [
    "EntityDefinition",
    "FieldDescriptor",
    "FieldOption",
    "FieldType",
    "enabled_fields",
    "ImportProgress",
    "ImportResult",
    "ImportResultRow",
    "ImportRowData",
    "ImportStatus",
    "RowError",
    "ValidationError",
    "ValidationResult",
]
