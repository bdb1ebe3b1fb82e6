"""Bulk import a CSV or XLSX file into the inventory API.

The file's header row is skipped; data columns are mapped by position to the
entity's enabled fields, exactly like pasting into the import grid.

Exit codes:
    0   every row was imported (or validated, with --validate-only)
    1   the file could not be read or failed validation
    2   the import finished with failed rows, was cancelled or failed

Examples:
    stockbox-import products.csv --entity products
    stockbox-import fabricantes.xlsx --entity manufacturers --enrich --errors-out failed.csv

Reference columns (supplier, template, ...) may hold a record's name; names are
resolved to ids from the API before validation.
"""

import argparse
import asyncio
import logging
import signal
import sys
from collections.abc import Callable
from pathlib import Path

from stockbox.config.loader import load_config, load_secrets
from stockbox.config.settings import Settings
from stockbox.exceptions import UnknownEntityError
from stockbox.models.fields import FieldOption, FieldType, enabled_fields
from stockbox.models.progress import ImportProgress, ImportResult, ImportRowData, ImportStatus
from stockbox.models.validation import ValidationResult
from stockbox.services.api_client import ApiClient, HttpApiClient
from stockbox.services.export_service import export_failed_rows_to_csv
from stockbox.services.field_catalog import FieldCatalog, load_field_catalog
from stockbox.services.import_service.grid import SpreadsheetGrid
from stockbox.services.import_service.parsers import parse_import_file
from stockbox.services.import_service.processor import ImportOptions, ImportProcessController
from stockbox.services.reference_data import load_reference_options
from stockbox.services.registry_enrichment import (
    ENRICHABLE_ENTITIES,
    CompanyRegistryClient,
    RegistryEnrichedImportController,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_INCOMPLETE = 2

MAX_PRINTED_ERRORS = 50


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stockbox-import",
        description="Bulk import a spreadsheet into the StockBox inventory API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("file", type=Path, help="CSV or XLSX file with a header row")
    parser.add_argument("--entity", "-e", required=True, help="Entity type, e.g. products")
    parser.add_argument("--catalog", type=Path, help="Field catalog YAML (default: bundled catalog)")
    parser.add_argument("--config", type=Path, help="config.toml to use instead of the search paths")
    parser.add_argument("--api-url", help="Inventory API base URL")
    parser.add_argument("--decimal-separator", choices=("comma", "dot"), help="Decimal separator of number cells")
    parser.add_argument("--validate-only", action="store_true", help="Validate the file without importing")
    parser.add_argument("--enrich", action="store_true", help="Enrich rows from the company registry")
    parser.add_argument(
        "--skip-references", action="store_true", help="Send reference cells as typed instead of resolving names"
    )
    parser.add_argument("--errors-out", type=Path, help="Write failed rows to this CSV file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log per-row detail")
    return parser


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_FILE_NAME = "stockbox-import.log"


def configure_logging(level: str, verbose: bool = False, log_dir: Path | None = None) -> logging.Handler | None:
    """Log to the console and, when log_dir is set, to a file in it.

    Returns:
        The file handler, or None when logging to the console only.
    """
    log_level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=log_level, format=LOG_FORMAT)
    if log_dir is None:
        return None

    log_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_dir / LOG_FILE_NAME, encoding="utf-8")
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    package_logger = logging.getLogger("stockbox")
    package_logger.addHandler(handler)
    if package_logger.getEffectiveLevel() > log_level:
        package_logger.setLevel(log_level)
    return handler


async def fetch_reference_options(
    settings: Settings, catalog: FieldCatalog, entity_type: str
) -> dict[str, list[FieldOption]]:
    """Load the records behind the entity's reference fields, if it has any."""
    fields = catalog.get_entity_fields(entity_type)
    if not any(f.type == FieldType.REFERENCE for f in enabled_fields(fields)):
        return {}
    async with HttpApiClient(settings.api_base_url, token=settings.api_token, timeout=settings.api.timeout) as client:
        return await load_reference_options(client, catalog, fields)


def load_grid(
    path: Path,
    catalog: FieldCatalog,
    entity_type: str,
    settings: Settings,
    decimal_separator: str,
    reference_options: dict[str, list[FieldOption]] | None = None,
) -> SpreadsheetGrid:
    """Read a file and paste its data rows into a new grid."""
    headers, rows = parse_import_file(path.name, path.read_bytes())
    grid = SpreadsheetGrid(
        catalog.get_entity_fields(entity_type),
        decimal_separator=decimal_separator,
        initial_rows=settings.grid.initial_rows,
        min_rows=settings.grid.min_rows,
        reference_options=reference_options,
    )
    if len(headers) != len(grid.headers):
        logger.warning(
            "File has %d column(s) but %s has %d enabled field(s); columns are mapped by position",
            len(headers),
            entity_type,
            len(grid.headers),
        )
    grid.apply_pasted_data(rows)
    return grid


def print_validation(result: ValidationResult, grid: SpreadsheetGrid) -> None:
    print(f"Validated {result.total_rows} row(s): {result.valid_rows} valid, {result.invalid_rows} invalid")
    labels = {f.key: f.display_label for f in grid.headers}
    for error in result.errors[:MAX_PRINTED_ERRORS]:
        print(f"  Row {error.row}, {labels.get(error.field_key, error.field_key)}: {error.message}")
    if len(result.errors) > MAX_PRINTED_ERRORS:
        print(f"  ... and {len(result.errors) - MAX_PRINTED_ERRORS} more error(s)")


def progress_logger() -> Callable[[ImportProgress], None]:
    """on_progress callback that logs once per batch."""
    last_batch = 0

    def on_progress(progress: ImportProgress) -> None:
        nonlocal last_batch
        if progress.current_batch != last_batch:
            last_batch = progress.current_batch
            logger.info(
                "Batch %d/%d, %d/%d row(s) processed (%.1f%%)",
                progress.current_batch,
                progress.total_batches,
                progress.processed,
                progress.total,
                progress.percent,
            )

    return on_progress


async def run_controller(
    controller: ImportProcessController, rows: list[ImportRowData]
) -> tuple[ImportResult, ImportProgress]:
    """Run an import, cancelling it cleanly on Ctrl+C."""
    loop = asyncio.get_running_loop()
    handler_installed = False
    try:
        loop.add_signal_handler(signal.SIGINT, controller.cancel_import)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        logger.debug("SIGINT handler not available; Ctrl+C will abort the process")

    try:
        result = await controller.start_import(rows)
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)
    return result, controller.progress


async def run_import(
    rows: list[ImportRowData],
    settings: Settings,
    endpoint: str,
    entity_type: str,
    enrich: bool = False,
    api_client: ApiClient | None = None,
) -> tuple[ImportResult, ImportProgress]:
    """Import rows through the generic or the registry-enriched controller."""
    if api_client is None:
        async with HttpApiClient(settings.api_base_url, token=settings.api_token, timeout=settings.api.timeout) as client:
            return await run_import(rows, settings, endpoint, entity_type, enrich, client)

    if not enrich:
        options = ImportOptions.from_config(settings.importer, on_progress=progress_logger())
        return await run_controller(ImportProcessController(api_client, endpoint, options), rows)

    enrichment = settings.enrichment
    async with CompanyRegistryClient(enrichment.registry_url, enrichment.timeout) as registry:
        controller = RegistryEnrichedImportController(
            api_client,
            endpoint,
            registry,
            entity_type,
            options=ImportOptions.for_enrichment(enrichment, on_progress=progress_logger()),
            registry_rate_limit_delay=enrichment.rate_limit_delay,
        )
        return await run_controller(controller, rows)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    config = load_config(args.config)
    if args.api_url:
        config.api.base_url = args.api_url
    settings = Settings(config=config, secrets=load_secrets())
    configure_logging(settings.log_level, args.verbose, settings.log_dir)

    try:
        catalog = load_field_catalog(args.catalog)
        endpoint = catalog.get_api_endpoint(args.entity)
    except (OSError, ValueError, UnknownEntityError) as e:
        print(f"Error: {e}")
        return EXIT_INVALID

    if args.enrich and args.entity not in ENRICHABLE_ENTITIES:
        print(f"Error: --enrich supports only {', '.join(ENRICHABLE_ENTITIES)}")
        return EXIT_INVALID

    decimal_separator = args.decimal_separator or settings.decimal_separator
    reference_options = None
    if not args.skip_references:
        reference_options = asyncio.run(fetch_reference_options(settings, catalog, args.entity))

    try:
        grid = load_grid(args.file, catalog, args.entity, settings, decimal_separator, reference_options)
    except (OSError, ValueError) as e:
        print(f"Error: could not read {args.file}: {e}")
        return EXIT_INVALID

    validation = grid.validate()
    print_validation(validation, grid)
    if not validation.valid:
        return EXIT_INVALID
    if args.validate_only:
        return EXIT_OK

    rows = grid.get_row_data()
    if not rows:
        print("Nothing to import.")
        return EXIT_OK

    try:
        result, progress = asyncio.run(run_import(rows, settings, endpoint, args.entity, args.enrich))
    except KeyboardInterrupt:
        print("\nAborted.")
        return EXIT_INCOMPLETE

    print(
        f"Import {progress.status.value}: {result.imported_rows} imported, "
        f"{result.failed_rows} failed, {result.total_rows - len(result.results)} not processed"
    )
    if args.errors_out and progress.errors:
        args.errors_out.write_text(
            export_failed_rows_to_csv(progress.errors, grid.headers, decimal_separator=decimal_separator),
            encoding="utf-8",
        )
        print(f"Failed rows written to {args.errors_out}")

    if progress.status == ImportStatus.COMPLETED and result.success:
        return EXIT_OK
    return EXIT_INCOMPLETE


if __name__ == "__main__":
    sys.exit(main())
