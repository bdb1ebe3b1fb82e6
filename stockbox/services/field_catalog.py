"""Field schema catalog for importable entities.

Entity definitions live in YAML so new entity types and columns can be added
without code changes. A default catalog ships with the package.
"""

import logging
from importlib import resources
from pathlib import Path
from typing import Any, Protocol

import yaml
from pydantic import ValidationError

from stockbox.exceptions import UnknownEntityError
from stockbox.models.fields import EntityDefinition, FieldDescriptor

logger = logging.getLogger(__name__)

DEFAULT_CATALOG = "entities.yaml"


class FieldSchemaProvider(Protocol):
    """Source of the ordered field schema for an entity type."""

    def get_entity_fields(self, entity_type: str) -> list[FieldDescriptor]: ...

    def get_base_path(self, entity_type: str) -> str: ...


class FieldCatalog:
    """In-memory FieldSchemaProvider over a set of EntityDefinitions."""

    def __init__(self, definitions: dict[str, EntityDefinition] | list[EntityDefinition]):
        if isinstance(definitions, dict):
            definitions = list(definitions.values())
        self._definitions = {definition.entity_type: definition for definition in definitions}

    def __contains__(self, entity_type: object) -> bool:
        return entity_type in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)

    def get_entity_definition(self, entity_type: str) -> EntityDefinition:
        try:
            return self._definitions[entity_type]
        except KeyError:
            raise UnknownEntityError(entity_type) from None

    def get_entity_fields(self, entity_type: str) -> list[FieldDescriptor]:
        """All fields of an entity, enabled or not, sorted by order."""
        return sorted(self.get_entity_definition(entity_type).fields, key=lambda f: f.order)

    def get_required_fields(self, entity_type: str) -> list[FieldDescriptor]:
        return [f for f in self.get_entity_fields(entity_type) if f.required]

    def get_optional_fields(self, entity_type: str) -> list[FieldDescriptor]:
        return [f for f in self.get_entity_fields(entity_type) if not f.required]

    def get_api_endpoint(self, entity_type: str) -> str:
        return self.get_entity_definition(entity_type).api_endpoint or f"/v1/{entity_type}"

    def get_base_path(self, entity_type: str) -> str:
        return self.get_entity_definition(entity_type).base_path or f"/import/{entity_type}"

    def list_entity_types(self, module: str | None = None) -> list[str]:
        """Entity types in catalog order, optionally limited to one module."""
        return [
            entity_type
            for entity_type, definition in self._definitions.items()
            if module is None or definition.module == module
        ]


def _definitions_from_data(data: Any, source: str) -> list[EntityDefinition]:
    if not isinstance(data, dict) or not isinstance(data.get("entities"), dict):
        raise ValueError(f"{source}: expected a mapping with an 'entities' section")

    definitions = []
    for entity_type, body in data["entities"].items():
        body = dict(body or {})
        body.setdefault("entity_type", entity_type)
        # Field order defaults to position in the file
        fields = body.get("fields") or []
        for position, field in enumerate(fields):
            if isinstance(field, dict):
                field.setdefault("order", position)
        try:
            definitions.append(EntityDefinition.model_validate(body))
        except ValidationError as e:
            raise ValueError(f"{source}: invalid definition for {entity_type!r}: {e}") from e
    return definitions


def load_field_catalog(path: Path | str | None = None) -> FieldCatalog:
    """Load entity definitions from a YAML file.

    Args:
        path: Catalog file. None loads the catalog bundled with the package.

    Returns:
        FieldCatalog with one definition per entity.

    Raises:
        ValueError: If the file is not a valid catalog.
        FileNotFoundError: If the file does not exist.
    """
    if path is None:
        text = resources.files("stockbox.data").joinpath(DEFAULT_CATALOG).read_text(encoding="utf-8")
        source = DEFAULT_CATALOG
    else:
        text = Path(path).read_text(encoding="utf-8")
        source = str(path)

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValueError(f"{source}: invalid YAML: {e}") from e

    catalog = FieldCatalog(_definitions_from_data(data, source))
    logger.debug("Loaded %d entity definition(s) from %s", len(catalog), source)
    return catalog
