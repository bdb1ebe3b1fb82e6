"""Tests for grid, failed-row and template exports."""

import csv
import io
import re

from openpyxl import load_workbook

from stockbox.models.fields import FieldDescriptor, FieldOption, FieldType
from stockbox.models.progress import RowError
from stockbox.services.export_service import (
    accepted_values,
    build_import_template,
    example_value,
    export_failed_rows_to_csv,
    export_grid_to_csv,
    template_filename,
)
from stockbox.services.import_service import SpreadsheetGrid, parse_csv


# =============================================================================
# Grid CSV
# =============================================================================


def test_export_grid_csv(basic_fields: list[FieldDescriptor]) -> None:
    """Only filled rows are written; comma decimals get quoted."""
    grid = SpreadsheetGrid(basic_fields)
    grid.apply_pasted_data([["Widget", "10,50"], ["", ""], ["Gadget", "3"]])

    content = export_grid_to_csv(grid)

    assert content == 'Name,Price\nWidget,"10,5"\nGadget,3\n'


def test_export_grid_csv_without_header(basic_fields: list[FieldDescriptor]) -> None:
    grid = SpreadsheetGrid(basic_fields)
    grid.apply_pasted_data([["Widget", "1"]])
    assert export_grid_to_csv(grid, include_header=False) == "Widget,1\n"


def test_export_grid_semicolon_pastes_back(product_fields: list[FieldDescriptor]) -> None:
    """Exported rows parse and paste back into an equivalent grid."""
    grid = SpreadsheetGrid(product_fields)
    grid.apply_pasted_data(
        [["Widget; deluxe", "1.234,5", "sim", "01/03/2024", "DRAFT", "a@b.com", "12345678000190"]]
    )

    content = export_grid_to_csv(grid, delimiter=";")
    headers, rows = parse_csv(content.encode("utf-8"))
    assert headers[0] == "Name"

    copy = SpreadsheetGrid(product_fields)
    copy.apply_pasted_data(rows)
    assert copy.get_row_data() == grid.get_row_data()


def test_export_grid_dot_separator(basic_fields: list[FieldDescriptor]) -> None:
    grid = SpreadsheetGrid(basic_fields, decimal_separator="dot")
    grid.apply_pasted_data([["Widget", "2.25"]])
    assert export_grid_to_csv(grid, include_header=False) == "Widget,2.25\n"


def test_export_grid_uses_custom_labels() -> None:
    fields = [FieldDescriptor(key="name", label="Name", custom_label="Product name")]
    grid = SpreadsheetGrid(fields)
    assert export_grid_to_csv(grid) == "Product name\n"


# =============================================================================
# Failed rows CSV
# =============================================================================


def test_export_failed_rows(product_fields: list[FieldDescriptor]) -> None:
    errors = [
        RowError(row=3, message="Duplicate code", data={"name": "Widget", "price": 9.9, "contact": {"email": "a@b.com"}}),
        RowError(row=7, message="CNPJ must have 14 digits", data=None),
    ]

    content = export_failed_rows_to_csv(errors, product_fields)
    rows = list(csv.reader(io.StringIO(content)))

    assert rows[0][:3] == ["Row", "Error", "Name"]
    assert "Internal" not in rows[0]
    assert len(rows[0]) == 2 + 7
    assert rows[1][:4] == ["3", "Duplicate code", "Widget", "9,9"]
    assert rows[1][7] == "a@b.com"
    assert rows[2] == ["7", "CNPJ must have 14 digits"] + [""] * 7


def test_export_failed_rows_booleans(product_fields: list[FieldDescriptor]) -> None:
    errors = [RowError(row=1, message="x", data={"active": False})]
    content = export_failed_rows_to_csv(errors, product_fields, delimiter=";")
    assert content.splitlines()[1].split(";")[4] == "false"


# =============================================================================
# Import template
# =============================================================================


def test_build_import_template(product_fields: list[FieldDescriptor]) -> None:
    content = build_import_template(product_fields, "Products")
    wb = load_workbook(io.BytesIO(content))

    assert wb.sheetnames == ["Data", "Instructions"]
    assert wb.properties.title == "Products import template"

    data = wb["Data"]
    headers = [cell.value for cell in data[1]]
    assert headers == ["Name", "Price", "Active", "Launch date", "Status", "Email", "CNPJ"]
    assert data["A1"].font.bold
    assert data.freeze_panes == "A2"
    example = [cell.value for cell in data[2]]
    assert example[1] == 1500
    assert example[2] == "Yes"
    assert example[4] == "Active"
    assert example[5] == "example@email.com"
    assert example[6] == "12.345.678/0001-90"

    instructions = wb["Instructions"]
    assert [cell.value for cell in instructions[1]] == ["Field", "Required", "Description", "Accepted values"]
    assert [cell.value for cell in instructions[2]][:2] == ["Name", "Yes"]
    assert instructions.max_row == 1 + 7
    assert instructions.column_dimensions["C"].width == 50


def test_build_import_template_without_example(basic_fields: list[FieldDescriptor]) -> None:
    wb = load_workbook(io.BytesIO(build_import_template(basic_fields, "Products", include_example=False)))
    assert wb["Data"].max_row == 1


def test_accepted_values() -> None:
    select = FieldDescriptor(
        key="status",
        label="Status",
        type=FieldType.SELECT,
        options=[FieldOption(value="A", label="Active"), FieldOption(value="I", label="Inactive")],
    )
    assert accepted_values(select) == "Active, Inactive"
    number = FieldDescriptor(key="qty", label="Qty", type=FieldType.NUMBER, min=0, max=99.5)
    assert accepted_values(number) == "Number (min: 0) (max: 99.5)"
    assert accepted_values(FieldDescriptor(key="cnpj", label="CNPJ")) == "CNPJ with or without mask"
    assert accepted_values(FieldDescriptor(key="notes", label="Notes")) == ""


def test_example_value_reference() -> None:
    field = FieldDescriptor(key="categoryId", label="Category", type=FieldType.REFERENCE)
    assert example_value(field) == "ID or name of Category"


def test_template_filename() -> None:
    assert re.fullmatch(r"template_raw_materials_\d{8}\.xlsx", template_filename("Raw Materials"))
