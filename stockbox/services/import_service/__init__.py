"""Import service package: grid editing, validation, file parsing and batch import."""

from .constants import (
    CNPJ_LENGTH,
    DEFAULT_BATCH_SIZE,
    DEFAULT_DELAY_BETWEEN_BATCHES,
    DEFAULT_DELAY_BETWEEN_ITEMS,
    ENRICHMENT_BATCH_SIZE,
    ENRICHMENT_DELAY_BETWEEN_BATCHES,
    ENRICHMENT_DELAY_BETWEEN_ITEMS,
    MAX_ROWS,
    RATE_LIMIT_DELAY,
)
from .converters import (
    clean_digits,
    coerce_value,
    is_empty,
    is_identifier_field,
    parse_boolean,
    parse_date,
    parse_number,
)
from .grid import GridRow, SpreadsheetGrid
from .parsers import detect_delimiter, parse_csv, parse_import_file, parse_xlsx
from .processor import ImportOptions, ImportProcessController, extract_entity_id
from .validators import validate_value

__all__ = [
    # Constants
    "CNPJ_LENGTH",
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_DELAY_BETWEEN_BATCHES",
    "DEFAULT_DELAY_BETWEEN_ITEMS",
    "ENRICHMENT_BATCH_SIZE",
    "ENRICHMENT_DELAY_BETWEEN_BATCHES",
    "ENRICHMENT_DELAY_BETWEEN_ITEMS",
    "MAX_ROWS",
    "RATE_LIMIT_DELAY",
    # Converters
    "clean_digits",
    "coerce_value",
    "is_empty",
    "is_identifier_field",
    "parse_boolean",
    "parse_date",
    "parse_number",
    # Validators
    "validate_value",
    # Grid
    "GridRow",
    "SpreadsheetGrid",
    # Parsers
    "detect_delimiter",
    "parse_csv",
    "parse_import_file",
    "parse_xlsx",
    # Processor
    "ImportOptions",
    "ImportProcessController",
    "extract_entity_id",
]
