"""Tests for the stockbox-import command line tool."""

import logging
from pathlib import Path

import httpx
import pytest
from fastapi import FastAPI
from httpx import ASGITransport

from helpers import FakeApiClient
from stockbox.cli import importer
from stockbox.cli.importer import (
    EXIT_INCOMPLETE,
    EXIT_INVALID,
    EXIT_OK,
    LOG_FILE_NAME,
    build_parser,
    configure_logging,
    main,
    run_import,
)
from stockbox.config.schema import ImporterConfig, SecretsConfig, StockboxConfig
from stockbox.config.settings import Settings
from stockbox.models.progress import ImportRowData, ImportStatus

CATALOG = """\
entities:
  products:
    label: Product
    api_endpoint: /v1/products
    fields:
      - {key: name, label: Name, required: true}
      - {key: price, label: Price, type: number}
  rejects:
    label: Reject
    api_endpoint: /v1/rejected
    fields:
      - {key: name, label: Name, required: true}
  stocked:
    label: Stocked product
    api_endpoint: /v1/products
    fields:
      - {key: name, label: Name, required: true}
      - {key: supplierId, label: Supplier, type: reference, reference_entity: suppliers}
"""


@pytest.fixture
def cli_catalog(tmp_path: Path) -> Path:
    path = tmp_path / "catalog.yaml"
    path.write_text(CATALOG)
    return path


@pytest.fixture
def products_csv(tmp_path: Path) -> Path:
    path = tmp_path / "products.csv"
    path.write_text("Name;Price\nWidget;10,50\nGadget;3\n", encoding="utf-8")
    return path


@pytest.fixture
def fast_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STOCKBOX_IMPORTER_DELAY_BETWEEN_ITEMS", "0")
    monkeypatch.setenv("STOCKBOX_IMPORTER_DELAY_BETWEEN_BATCHES", "0")


@pytest.fixture
def backend(monkeypatch: pytest.MonkeyPatch, inventory_app: FastAPI) -> FastAPI:
    """Route the CLI's HTTP client to the fake inventory backend."""
    real_client = importer.HttpApiClient

    def client_factory(base_url: str, token: str | None = None, timeout: float = 30.0):
        transport = ASGITransport(app=inventory_app)
        return real_client(base_url, token=token, client=httpx.AsyncClient(transport=transport, base_url=base_url))

    monkeypatch.setattr(importer, "HttpApiClient", client_factory)
    return inventory_app


class TestValidateOnly:
    """--validate-only runs."""

    def test_valid_file(self, cli_catalog: Path, products_csv: Path, capsys) -> None:
        code = main([str(products_csv), "--entity", "products", "--catalog", str(cli_catalog), "--validate-only"])
        assert code == EXIT_OK
        assert "Validated 2 row(s): 2 valid, 0 invalid" in capsys.readouterr().out

    def test_invalid_file(self, cli_catalog: Path, tmp_path: Path, capsys) -> None:
        path = tmp_path / "bad.csv"
        path.write_text("Name,Price\n,1\nWidget,abc\n")

        code = main([str(path), "-e", "products", "--catalog", str(cli_catalog), "--validate-only"])

        out = capsys.readouterr().out
        assert code == EXIT_INVALID
        assert "Row 1, Name: Name is required" in out
        assert "Row 2, Price:" in out

    def test_dot_separator_flag(self, cli_catalog: Path, tmp_path: Path) -> None:
        path = tmp_path / "dot.csv"
        path.write_text("Name,Price\nWidget,10.5\n")
        args = [str(path), "-e", "products", "--catalog", str(cli_catalog), "--validate-only"]
        assert main(args + ["--decimal-separator", "dot"]) == EXIT_OK


class TestErrors:
    """Argument and input errors exit with 1."""

    def test_unknown_entity(self, cli_catalog: Path, products_csv: Path, capsys) -> None:
        code = main([str(products_csv), "-e", "spaceships", "--catalog", str(cli_catalog)])
        assert code == EXIT_INVALID
        assert "Unknown entity type: spaceships" in capsys.readouterr().out

    def test_enrich_requires_registry_entity(self, cli_catalog: Path, products_csv: Path) -> None:
        assert main([str(products_csv), "-e", "products", "--catalog", str(cli_catalog), "--enrich"]) == EXIT_INVALID

    def test_missing_file(self, cli_catalog: Path, tmp_path: Path, capsys) -> None:
        code = main([str(tmp_path / "nope.csv"), "-e", "products", "--catalog", str(cli_catalog)])
        assert code == EXIT_INVALID
        assert "could not read" in capsys.readouterr().out

    def test_unsupported_file(self, cli_catalog: Path, tmp_path: Path) -> None:
        path = tmp_path / "data.pdf"
        path.write_bytes(b"%PDF")
        assert main([str(path), "-e", "products", "--catalog", str(cli_catalog)]) == EXIT_INVALID

    def test_entity_is_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["file.csv"])


class TestImport:
    """Full runs against the fake backend."""

    def test_import_success(self, cli_catalog: Path, products_csv: Path, backend: FastAPI, fast_env, capsys) -> None:
        code = main([str(products_csv), "-e", "products", "--catalog", str(cli_catalog)])

        assert code == EXIT_OK
        assert [item["name"] for item in backend.state.items] == ["Widget", "Gadget"]
        assert backend.state.items[0]["price"] == 10.5
        assert "Import completed: 2 imported, 0 failed, 0 not processed" in capsys.readouterr().out

    def test_import_with_failures_writes_errors(
        self, cli_catalog: Path, tmp_path: Path, backend: FastAPI, fast_env
    ) -> None:
        path = tmp_path / "rejects.csv"
        path.write_text("Name\nWidget\nGadget\n")
        errors_out = tmp_path / "failed.csv"

        code = main([str(path), "-e", "rejects", "--catalog", str(cli_catalog), "--errors-out", str(errors_out)])

        assert code == EXIT_INCOMPLETE
        assert errors_out.read_text(encoding="utf-8").splitlines() == [
            "Row,Error,Name",
            "1,Duplicate code,Widget",
            "2,Duplicate code,Gadget",
        ]

    def test_nothing_to_import(self, cli_catalog: Path, tmp_path: Path, capsys) -> None:
        path = tmp_path / "empty.csv"
        path.write_text("Name,Price\n")
        assert main([str(path), "-e", "products", "--catalog", str(cli_catalog)]) == EXIT_OK
        assert "Nothing to import." in capsys.readouterr().out

    def test_api_url_flag(
        self,
        cli_catalog: Path,
        products_csv: Path,
        backend: FastAPI,
        fast_env,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        seen: list[str] = []
        factory = importer.HttpApiClient

        def recording_factory(base_url: str, **kwargs):
            seen.append(base_url)
            return factory(base_url, **kwargs)

        monkeypatch.setattr(importer, "HttpApiClient", recording_factory)
        args = [str(products_csv), "-e", "products", "--catalog", str(cli_catalog), "--api-url", "http://test/api"]

        assert main(args) == EXIT_OK
        assert seen == ["http://test/api"]
        assert len(backend.state.items) == 2


@pytest.mark.asyncio
async def test_run_import_with_client() -> None:
    config = StockboxConfig(importer=ImporterConfig(batch_size=2, delay_between_items=0, delay_between_batches=0))
    settings = Settings(config, SecretsConfig())
    api = FakeApiClient()
    rows = [ImportRowData(row_index=i, data={"name": f"Item {i}"}) for i in range(3)]

    result, progress = await run_import(rows, settings, "/v1/products", "products", api_client=api)

    assert result.imported_rows == 3
    assert progress.status == ImportStatus.COMPLETED
    assert progress.total_batches == 2
    assert len(api.calls) == 3


class TestReferences:
    """Supplier names in the file are resolved against the API."""

    def test_names_are_imported_as_ids(self, cli_catalog: Path, tmp_path: Path, backend: FastAPI, fast_env) -> None:
        path = tmp_path / "stocked.csv"
        path.write_text("Name,Supplier\nWidget,Acme Supplies\nGadget,sup-2\n")

        code = main([str(path), "-e", "stocked", "--catalog", str(cli_catalog)])

        assert code == EXIT_OK
        assert [item["supplierId"] for item in backend.state.items] == ["sup-1", "sup-2"]

    def test_unknown_name_fails_validation(self, cli_catalog: Path, tmp_path: Path, backend: FastAPI, capsys) -> None:
        path = tmp_path / "stocked.csv"
        path.write_text("Name,Supplier\nWidget,Initech\n")

        code = main([str(path), "-e", "stocked", "--catalog", str(cli_catalog), "--validate-only"])

        assert code == EXIT_INVALID
        assert "Row 1, Supplier: Unknown Supplier: Initech" in capsys.readouterr().out

    def test_skip_references_sends_text(self, cli_catalog: Path, tmp_path: Path, backend: FastAPI, fast_env) -> None:
        path = tmp_path / "stocked.csv"
        path.write_text("Name,Supplier\nWidget,Initech\n")

        code = main([str(path), "-e", "stocked", "--catalog", str(cli_catalog), "--skip-references"])

        assert code == EXIT_OK
        assert backend.state.items[0]["supplierId"] == "Initech"


def test_log_file_written_to_log_dir(tmp_path: Path) -> None:
    log_dir = tmp_path / "logs"
    package_logger = logging.getLogger("stockbox")
    previous_level = package_logger.level

    handler = configure_logging("INFO", log_dir=log_dir)
    try:
        logging.getLogger("stockbox.services.import_service").warning("Row %d failed: %s", 3, "Duplicate code")
        handler.flush()
        lines = (log_dir / LOG_FILE_NAME).read_text(encoding="utf-8").splitlines()
    finally:
        package_logger.removeHandler(handler)
        package_logger.setLevel(previous_level)
        handler.close()

    assert lines[-1].endswith("WARNING stockbox.services.import_service: Row 3 failed: Duplicate code")


def test_no_log_dir_means_console_only() -> None:
    assert configure_logging("INFO") is None
