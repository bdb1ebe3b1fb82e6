"""Invoke tasks for StockBox development."""

from pathlib import Path

from invoke import task
from invoke.context import Context


@task
def test(ctx: Context, verbose: bool = False, coverage: bool = False) -> None:
    """Run the test suite.

    Args:
        ctx: Invoke context
        verbose: Enable verbose output
        coverage: Run with coverage report
    """
    cmd = "uv run pytest"
    if verbose:
        cmd += " -v"
    if coverage:
        cmd += " --cov=stockbox --cov-report=term-missing"
    ctx.run(cmd, pty=True)


@task
def validate(ctx: Context, file: str, entity: str, catalog: str = "") -> None:
    """Validate an import file without sending anything to the API.

    Args:
        ctx: Invoke context
        file: CSV or XLSX file to check
        entity: Entity type, e.g. products
        catalog: Field catalog YAML (default: bundled catalog)
    """
    cmd = f"uv run stockbox-import {file} --entity {entity} --validate-only"
    if catalog:
        cmd += f" --catalog {catalog}"
    ctx.run(cmd, pty=True)


@task
def template(ctx: Context, entity: str, catalog: str = "", output: str = "") -> None:
    """Write an XLSX import template for an entity.

    Args:
        ctx: Invoke context
        entity: Entity type, e.g. products
        catalog: Field catalog YAML (default: bundled catalog)
        output: Output path (default: template_<entity>_<date>.xlsx)
    """
    from stockbox.services.export_service import build_import_template, template_filename
    from stockbox.services.field_catalog import load_field_catalog

    field_catalog = load_field_catalog(catalog or None)
    definition = field_catalog.get_entity_definition(entity)
    path = Path(output or template_filename(definition.label_plural or definition.label))
    path.write_bytes(build_import_template(field_catalog.get_entity_fields(entity), definition.label))
    print(f"Template written to {path}")


@task
def clean(ctx: Context) -> None:
    """Clean up caches and build artifacts."""
    for pattern in ["__pycache__", "*.pyc", "*.pyo", ".pytest_cache"]:
        ctx.run(f"find . -name '{pattern}' -exec rm -rf {{}} + 2>/dev/null || true", warn=True)

    for path in ["build", "dist", "*.egg-info", ".eggs"]:
        ctx.run(f"rm -rf {path} 2>/dev/null || true", warn=True)
