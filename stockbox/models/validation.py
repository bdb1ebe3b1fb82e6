"""Validation report models produced by the spreadsheet grid."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ValidationError(BaseModel):
    """A single (row, field) violation."""

    model_config = ConfigDict(frozen=True)

    row: int  # 1-based, for display
    column: int  # index in enabled-field display order
    field_key: str
    message: str
    value: Any = None


class ValidationResult(BaseModel):
    """Aggregate outcome of a validation pass over the filled rows."""

    model_config = ConfigDict(frozen=True)

    valid: bool
    total_rows: int
    valid_rows: int = 0
    invalid_rows: int = 0
    errors: list[ValidationError] = Field(default_factory=list)

    def errors_for_row(self, row: int) -> list[ValidationError]:
        """Return the errors reported for a 1-based row number."""
        return [error for error in self.errors if error.row == row]
