"""In-memory spreadsheet grid backing the bulk import screens.

The grid keeps a block of rows sized ahead of what the user has entered.
Pasting and editing only coerce values; validation is a separate, explicit
pass so large pastes stay cheap.
"""

import logging
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from stockbox.models.fields import FieldDescriptor, FieldOption, FieldType, enabled_fields
from stockbox.models.progress import ImportRowData
from stockbox.models.validation import ValidationError, ValidationResult

from .constants import DECIMAL_SEPARATORS, GROW_BY, GROW_THRESHOLD, INITIAL_ROWS, MIN_ROWS
from .converters import coerce_value, is_empty
from .validators import validate_value

logger = logging.getLogger(__name__)


@dataclass
class GridRow:
    """One prospective entity: cell values keyed by field key."""

    cells: dict[str, Any] = field(default_factory=dict)

    @property
    def is_filled(self) -> bool:
        """True if the user entered anything in any cell."""
        return any(not is_empty(value) for value in self.cells.values())


def _assign(data: dict[str, Any], key: str, value: Any) -> None:
    """Set a value, expanding dotted keys ("profile.name") into nested dicts."""
    parts = key.split(".")
    target = data
    for part in parts[:-1]:
        target = target.setdefault(part, {})
    target[parts[-1]] = value


class SpreadsheetGrid:
    """Editable tabular dataset for one entity type's enabled fields."""

    def __init__(
        self,
        fields: Sequence[FieldDescriptor],
        decimal_separator: str = "comma",
        initial_rows: int = INITIAL_ROWS,
        min_rows: int = MIN_ROWS,
        reference_options: Mapping[str, Sequence[FieldOption]] | None = None,
    ):
        """Initialize the grid with blank rows.

        Args:
            fields: Field schema; disabled fields are ignored.
            decimal_separator: "comma" (1.234,56) or "dot" (1,234.56).
            initial_rows: Rows allocated on creation and after clear_all().
            min_rows: Rows always kept after removals and schema changes.
            reference_options: Loaded records per referenced entity type, used
                to turn names into ids and to flag unknown references.
        """
        if decimal_separator not in DECIMAL_SEPARATORS:
            raise ValueError(f"decimal_separator must be one of {DECIMAL_SEPARATORS}")
        self.decimal_separator = decimal_separator
        self._initial_rows = max(initial_rows, min_rows)
        self._min_rows = min_rows
        self._reference_options: dict[str, list[FieldOption]] = {
            entity: list(options) for entity, options in (reference_options or {}).items()
        }
        self._headers = enabled_fields(list(fields))
        self._rows: list[GridRow] = self._blank_rows(self._initial_rows)
        self._last_validation: ValidationResult | None = None

    # =========================================================================
    # Read access
    # =========================================================================

    @property
    def headers(self) -> tuple[FieldDescriptor, ...]:
        """Enabled fields in display order."""
        return self._headers

    @property
    def rows(self) -> tuple[GridRow, ...]:
        return tuple(self._rows)

    @property
    def row_count(self) -> int:
        return len(self._rows)

    @property
    def filled_row_count(self) -> int:
        return sum(1 for row in self._rows if row.is_filled)

    @property
    def validation_errors(self) -> list[ValidationError]:
        """Errors from the most recent validate() call."""
        if self._last_validation is None:
            return []
        return list(self._last_validation.errors)

    def iter_filled_rows(self) -> Iterator[tuple[int, GridRow]]:
        """Yield (row_index, row) for every filled row, in grid order."""
        for index, row in enumerate(self._rows):
            if row.is_filled:
                yield index, row

    def get_cell(self, row_index: int, key: str) -> Any:
        self._check_row_index(row_index)
        return self._rows[row_index].cells.get(key, "")

    # =========================================================================
    # Mutation
    # =========================================================================

    def set_cell(self, row_index: int, key: str, raw: Any) -> Any:
        """Edit one cell; the value is coerced for its field.

        Returns:
            The stored (coerced) value.
        """
        self._check_row_index(row_index)
        descriptor = self._field(key)
        value = self._coerce(raw, descriptor)
        self._rows[row_index].cells[key] = value
        self._ensure_trailing_buffer()
        return value

    def apply_pasted_data(self, matrix: Sequence[Sequence[Any]], start_row: int = 0) -> int:
        """Paste a block of cells, mapping columns by position.

        Column N of the block goes to the Nth enabled field. Pasted rows
        replace the target rows entirely; cells beyond the block's width
        become blank and columns beyond the last field are ignored. The grid
        grows if the block does not fit. No validation happens here.

        Args:
            matrix: Rows of cell values, typically strings from a clipboard.
            start_row: 0-based grid row receiving the first pasted row.

        Returns:
            Number of rows written.
        """
        if start_row < 0:
            raise ValueError("start_row must be >= 0")

        needed = start_row + len(matrix)
        if needed > len(self._rows):
            self._rows.extend(self._blank_rows(needed - len(self._rows)))

        width = len(self._headers)
        ignored_columns = 0
        for offset, raw_row in enumerate(matrix):
            cells: dict[str, Any] = {}
            for col, descriptor in enumerate(self._headers):
                raw = raw_row[col] if col < len(raw_row) else ""
                cells[descriptor.key] = self._coerce(raw, descriptor)
            ignored_columns = max(ignored_columns, len(raw_row) - width)
            self._rows[start_row + offset] = GridRow(cells)

        if ignored_columns > 0:
            logger.debug("Ignored %d pasted column(s) beyond the %d enabled fields", ignored_columns, width)

        self._pad_to_min_rows()
        self._ensure_trailing_buffer()
        logger.debug("Pasted %d row(s) at row %d", len(matrix), start_row)
        return len(matrix)

    def add_row(self) -> None:
        self._rows.append(self._blank_row())

    def add_rows(self, count: int) -> None:
        self._rows.extend(self._blank_rows(count))

    def remove_row(self, row_index: int) -> None:
        self._check_row_index(row_index)
        del self._rows[row_index]
        self._pad_to_min_rows()

    def clear_all(self) -> None:
        """Reset to the initial empty grid for the current schema."""
        self._rows = self._blank_rows(self._initial_rows)
        self._last_validation = None

    def update_headers(self, fields: Sequence[FieldDescriptor]) -> None:
        """Switch to a new field schema, keeping data for keys still present."""
        self._headers = enabled_fields(list(fields))
        self._rows = [
            GridRow({f.key: row.cells.get(f.key, "") for f in self._headers}) for row in self._rows
        ]
        self._pad_to_min_rows()
        self._last_validation = None

    def set_reference_options(self, entity_type: str, options: Sequence[FieldOption]) -> None:
        """Load the records of a referenced entity.

        Cells already holding a record's name are switched to its id.
        """
        self._reference_options[entity_type] = list(options)
        for descriptor in self._headers:
            if descriptor.type != FieldType.REFERENCE or descriptor.reference_entity != entity_type:
                continue
            for row in self._rows:
                value = row.cells.get(descriptor.key, "")
                if not is_empty(value):
                    row.cells[descriptor.key] = self._coerce(value, descriptor)
        self._last_validation = None

    # =========================================================================
    # Validation and extraction
    # =========================================================================

    def validate(self) -> ValidationResult:
        """Validate every filled row against the enabled fields.

        Empty rows are skipped and do not count toward total_rows. Row
        numbers in errors are 1-based grid positions; column indices follow
        the display order.
        """
        errors: list[ValidationError] = []
        total_rows = valid_rows = invalid_rows = 0

        for index, row in self.iter_filled_rows():
            total_rows += 1
            row_has_error = False
            for column, descriptor in enumerate(self._headers):
                value = self._effective_value(row, descriptor)
                message = validate_value(value, descriptor, self.decimal_separator, self._options_for(descriptor))
                if message:
                    errors.append(
                        ValidationError(
                            row=index + 1,
                            column=column,
                            field_key=descriptor.key,
                            message=message,
                            value=value,
                        )
                    )
                    row_has_error = True
            if row_has_error:
                invalid_rows += 1
            else:
                valid_rows += 1

        result = ValidationResult(
            valid=not errors,
            total_rows=total_rows,
            valid_rows=valid_rows,
            invalid_rows=invalid_rows,
            errors=errors,
        )
        self._last_validation = result
        logger.info(
            "Validated %d row(s): %d valid, %d invalid, %d error(s)",
            total_rows,
            valid_rows,
            invalid_rows,
            len(errors),
        )
        return result

    def get_row_data(self) -> list[ImportRowData]:
        """Snapshot the filled rows for an import run.

        Defaults are applied to empty cells, empty values are omitted, and
        row_index is the row's position in the full grid.
        """
        snapshot: list[ImportRowData] = []
        for index, row in self.iter_filled_rows():
            data: dict[str, Any] = {}
            for descriptor in self._headers:
                value = self._effective_value(row, descriptor)
                if is_empty(value):
                    continue
                _assign(data, descriptor.key, value)
            snapshot.append(ImportRowData(row_index=index, data=data))
        return snapshot

    # =========================================================================
    # Internals
    # =========================================================================

    def _blank_row(self) -> GridRow:
        return GridRow({f.key: "" for f in self._headers})

    def _blank_rows(self, count: int) -> list[GridRow]:
        return [self._blank_row() for _ in range(max(count, 0))]

    def _pad_to_min_rows(self) -> None:
        if len(self._rows) < self._min_rows:
            self._rows.extend(self._blank_rows(self._min_rows - len(self._rows)))

    def _ensure_trailing_buffer(self) -> None:
        last_filled = -1
        for index in range(len(self._rows) - 1, -1, -1):
            if self._rows[index].is_filled:
                last_filled = index
                break
        if last_filled >= 0 and last_filled >= len(self._rows) - GROW_THRESHOLD:
            self._rows.extend(self._blank_rows(GROW_BY))

    def _effective_value(self, row: GridRow, descriptor: FieldDescriptor) -> Any:
        value = row.cells.get(descriptor.key, "")
        if is_empty(value) and descriptor.default_value is not None:
            return self._coerce(descriptor.default_value, descriptor)
        return value

    def _options_for(self, descriptor: FieldDescriptor) -> list[FieldOption] | None:
        if descriptor.type != FieldType.REFERENCE or descriptor.reference_entity is None:
            return None
        return self._reference_options.get(descriptor.reference_entity)

    def _coerce(self, raw: Any, descriptor: FieldDescriptor) -> Any:
        return coerce_value(raw, descriptor, self.decimal_separator, self._options_for(descriptor))

    def _field(self, key: str) -> FieldDescriptor:
        for descriptor in self._headers:
            if descriptor.key == key:
                return descriptor
        raise KeyError(f"No enabled field with key {key!r}")

    def _check_row_index(self, row_index: int) -> None:
        if not 0 <= row_index < len(self._rows):
            raise IndexError(f"Row {row_index} out of range (0..{len(self._rows) - 1})")
