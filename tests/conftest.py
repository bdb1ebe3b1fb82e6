"""Pytest configuration and fixtures for StockBox tests."""

import os
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from fastapi import Body, FastAPI
from fastapi.responses import JSONResponse, PlainTextResponse
from httpx import ASGITransport, AsyncClient

from stockbox.config.settings import reset_settings
from stockbox.models.fields import FieldDescriptor, FieldOption, FieldType

DATA_DIR = Path(__file__).parent / "data"


# =============================================================================
# Field schemas
# =============================================================================


@pytest.fixture
def basic_fields() -> list[FieldDescriptor]:
    """Two required fields: a text name and a number price."""
    return [
        FieldDescriptor(key="name", label="Name", type=FieldType.TEXT, required=True, order=0),
        FieldDescriptor(key="price", label="Price", type=FieldType.NUMBER, required=True, order=1),
    ]


@pytest.fixture
def product_fields() -> list[FieldDescriptor]:
    """A richer schema exercising every field type."""
    return [
        FieldDescriptor(key="name", label="Name", required=True, order=0, max_length=20),
        FieldDescriptor(key="price", label="Price", type=FieldType.NUMBER, order=1, min=0, max=1000),
        FieldDescriptor(key="active", label="Active", type=FieldType.BOOLEAN, order=2, default_value=True),
        FieldDescriptor(key="launch", label="Launch date", type=FieldType.DATE, order=3),
        FieldDescriptor(
            key="status",
            label="Status",
            type=FieldType.SELECT,
            order=4,
            default_value="ACTIVE",
            options=[FieldOption(value="ACTIVE", label="Active"), FieldOption(value="DRAFT", label="Draft")],
        ),
        FieldDescriptor(key="contact.email", label="Email", type=FieldType.EMAIL, order=5),
        FieldDescriptor(
            key="cnpj",
            label="CNPJ",
            order=6,
            pattern="^[0-9]{14}$",
            pattern_message="CNPJ must have 14 digits",
        ),
        FieldDescriptor(key="internal", label="Internal", order=7, enabled=False),
    ]


@pytest.fixture
def catalog_path() -> Path:
    return DATA_DIR / "catalog.yaml"


# =============================================================================
# Fake inventory backend
# =============================================================================


def create_inventory_app() -> FastAPI:
    """A tiny FastAPI stand-in for the inventory API."""
    app = FastAPI(title="StockBox Test Backend")
    app.state.items = []
    app.state.rate_limit_remaining = 0

    @app.post("/api/v1/products")
    async def create_product(payload: dict[str, Any] = Body(...)) -> JSONResponse:
        if app.state.rate_limit_remaining > 0:
            app.state.rate_limit_remaining -= 1
            return JSONResponse(status_code=429, content={"error": "Too many requests"}, headers={"Retry-After": "0"})
        if not payload.get("name"):
            return JSONResponse(status_code=400, content={"message": "name is required"})
        item_id = f"prod-{len(app.state.items) + 1}"
        app.state.items.append({"id": item_id, **payload})
        return JSONResponse(status_code=201, content={"id": item_id})

    @app.post("/api/v1/manufacturers")
    async def create_manufacturer(payload: dict[str, Any] = Body(...)) -> JSONResponse:
        item_id = f"mfr-{len(app.state.items) + 1}"
        app.state.items.append({"id": item_id, **payload})
        return JSONResponse(status_code=201, content={"manufacturer": {"id": item_id}})

    @app.get("/api/v1/suppliers")
    async def list_suppliers() -> JSONResponse:
        return JSONResponse(
            status_code=200,
            content={
                "suppliers": [
                    {"id": "sup-1", "name": "Acme Supplies"},
                    {"id": "sup-2", "name": "Globex"},
                ]
            },
        )

    @app.post("/api/v1/rejected")
    async def rejected(payload: dict[str, Any] = Body(...)) -> JSONResponse:
        return JSONResponse(status_code=200, content={"success": False, "message": "Duplicate code"})

    @app.post("/api/v1/broken")
    async def broken(payload: dict[str, Any] = Body(...)) -> PlainTextResponse:
        return PlainTextResponse("boom", status_code=500)

    return app


@pytest.fixture
def inventory_app() -> FastAPI:
    return create_inventory_app()


@pytest_asyncio.fixture
async def inventory_client(inventory_app: FastAPI):
    """httpx client wired to the fake backend through ASGITransport."""
    transport = ASGITransport(app=inventory_app)
    async with AsyncClient(transport=transport, base_url="http://test/api") as client:
        yield client


# =============================================================================
# Configuration isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Keep tests away from real config files and STOCKBOX_ variables."""
    for name in list(os.environ):
        if name.startswith("STOCKBOX_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("stockbox.config.loader.get_config_search_paths", lambda: [tmp_path / "config.toml"])
    monkeypatch.setattr("stockbox.config.loader.get_secrets_search_paths", lambda: [tmp_path / "secrets.env"])
    reset_settings()
    yield
    reset_settings()
