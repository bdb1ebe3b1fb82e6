"""Export service for grid contents, failed rows and import templates."""

import csv
import io
import re
from collections.abc import Sequence
from datetime import date, datetime
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from stockbox.models.fields import FieldDescriptor, FieldType, enabled_fields
from stockbox.models.progress import RowError
from stockbox.services.import_service.grid import SpreadsheetGrid

HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="1F4E79", end_color="1F4E79", fill_type="solid")
HEADER_ALIGNMENT = Alignment(horizontal="center")

DATA_SHEET = "Data"
INSTRUCTIONS_SHEET = "Instructions"
INSTRUCTION_HEADERS = ["Field", "Required", "Description", "Accepted values"]


def _format_value(value: Any, decimal_separator: str = "comma") -> str:
    """Render a cell so that pasting it back yields the same value."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        text = str(int(value)) if value.is_integer() else repr(value)
        return text.replace(".", ",") if decimal_separator == "comma" else text
    return str(value)


def _lookup(data: dict[str, Any] | None, key: str) -> Any:
    """Read a possibly dotted key from nested row data."""
    current: Any = data or {}
    for part in key.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


def _generate_filename(kind: str, label: str, extension: str) -> str:
    """Build a download filename, e.g. template_products_20250101.xlsx."""
    slug = re.sub(r"\s+", "_", label.strip().lower())
    stamp = datetime.now().strftime("%Y%m%d")
    return f"{kind}_{slug}_{stamp}.{extension}"


def export_grid_to_csv(grid: SpreadsheetGrid, delimiter: str = ",", include_header: bool = True) -> str:
    """Export the filled rows of a grid as delimited text.

    Only values containing the delimiter, a quote or a line break are quoted.

    Args:
        grid: The grid to export.
        delimiter: Field separator.
        include_header: Whether to start with a line of column labels.

    Returns:
        The delimited text, one line per filled row.
    """
    output = io.StringIO()
    writer = csv.writer(output, delimiter=delimiter, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")

    if include_header:
        writer.writerow([f.display_label for f in grid.headers])

    for _, row in grid.iter_filled_rows():
        writer.writerow([_format_value(row.cells.get(f.key), grid.decimal_separator) for f in grid.headers])

    return output.getvalue()


def export_failed_rows_to_csv(
    errors: Sequence[RowError],
    fields: Sequence[FieldDescriptor],
    delimiter: str = ",",
    decimal_separator: str = "comma",
) -> str:
    """Export failed rows with their error messages.

    The field columns follow the enabled field order, so the data columns
    can be fixed and pasted straight back into a grid.
    """
    columns = enabled_fields(list(fields))
    output = io.StringIO()
    writer = csv.writer(output, delimiter=delimiter, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")

    writer.writerow(["Row", "Error", *[f.display_label for f in columns]])
    for error in errors:
        writer.writerow(
            [
                error.row,
                error.message,
                *[_format_value(_lookup(error.data, f.key), decimal_separator) for f in columns],
            ]
        )

    return output.getvalue()


def example_value(field: FieldDescriptor) -> str | int | float:
    """Sample value shown in the template's example row."""
    key = field.key.lower()
    if field.type == FieldType.NUMBER:
        if "price" in key or "salary" in key:
            return 1500.0
        return 1
    if field.type == FieldType.EMAIL or "email" in key:
        return "example@email.com"
    if field.type == FieldType.DATE:
        return date.today().isoformat()
    if field.type == FieldType.BOOLEAN:
        return "Yes"
    if field.type == FieldType.SELECT:
        return field.options[0].label if field.options else ""
    if field.type == FieldType.REFERENCE:
        return f"ID or name of {field.display_label}"
    if "cnpj" in key:
        return "12.345.678/0001-90"
    if "cpf" in key:
        return "123.456.789-00"
    if "phone" in key or "telefone" in key:
        return "(11) 99999-9999"
    if "cep" in key or "postal" in key:
        return "01234-567"
    return f"Example {field.display_label}"


def accepted_values(field: FieldDescriptor) -> str:
    """Human description of what a column accepts."""
    if field.type == FieldType.SELECT and field.options:
        return ", ".join(option.label for option in field.options)
    if field.type == FieldType.BOOLEAN:
        return "Yes, No, 1, 0, true, false"
    if field.type == FieldType.DATE:
        return "Date as YYYY-MM-DD or DD/MM/YYYY"
    if field.type == FieldType.NUMBER:
        text = "Number"
        if field.min is not None:
            text += f" (min: {field.min:g})"
        if field.max is not None:
            text += f" (max: {field.max:g})"
        return text
    if field.type == FieldType.EMAIL:
        return "Valid email"
    if "cnpj" in field.key.lower():
        return "CNPJ with or without mask"
    if "cpf" in field.key.lower():
        return "CPF with or without mask"
    return ""


def _style_header(ws: Any, headers: list[str]) -> None:
    for col_idx, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col_idx, value=header)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGNMENT
    ws.freeze_panes = "A2"


def build_import_template(
    fields: Sequence[FieldDescriptor],
    entity_label: str,
    include_example: bool = True,
) -> bytes:
    """Build an XLSX template for filling an import offline.

    Args:
        fields: Field schema; only enabled fields become columns.
        entity_label: Entity name, stored as the workbook title.
        include_example: Whether to add a sample row under the headers.

    Returns:
        XLSX content as bytes.
    """
    columns = enabled_fields(list(fields))
    wb = Workbook()

    ws = wb.active
    ws.title = DATA_SHEET
    headers = [f.display_label for f in columns]
    _style_header(ws, headers)
    if include_example:
        for col_idx, field in enumerate(columns, 1):
            ws.cell(row=2, column=col_idx, value=example_value(field))
    for col_idx, header in enumerate(headers, 1):
        ws.column_dimensions[get_column_letter(col_idx)].width = max(len(header) + 2, 15)

    instructions = wb.create_sheet(INSTRUCTIONS_SHEET)
    _style_header(instructions, INSTRUCTION_HEADERS)
    for row_idx, field in enumerate(columns, 2):
        instructions.cell(row=row_idx, column=1, value=field.display_label)
        instructions.cell(row=row_idx, column=2, value="Yes" if field.required else "No")
        instructions.cell(row=row_idx, column=3, value=field.description or "")
        instructions.cell(row=row_idx, column=4, value=accepted_values(field))
    for col_idx, width in enumerate((25, 15, 50, 30), 1):
        instructions.column_dimensions[get_column_letter(col_idx)].width = width

    wb.properties.title = f"{entity_label} import template"

    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()


def template_filename(entity_label: str) -> str:
    return _generate_filename("template", entity_label, "xlsx")
