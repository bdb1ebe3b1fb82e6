"""Records of referenced entities, used to resolve names typed into reference cells.

A product row can name its supplier ("Acme Supplies") instead of giving its
id. The grid needs the supplier records to swap the name for the id and to
flag names that match nothing.
"""

import logging
from collections.abc import Iterable, Sequence
from typing import Any, Protocol

from stockbox.exceptions import ApiError
from stockbox.models.fields import FieldDescriptor, FieldOption, FieldType
from stockbox.services.field_catalog import FieldCatalog

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_FIELD = "name"


class ReferenceSource(Protocol):
    """Backend able to list an entity collection."""

    async def list_entities(self, endpoint: str) -> list[dict[str, Any]]: ...


def entity_options(records: Iterable[dict[str, Any]], display_field: str = DEFAULT_DISPLAY_FIELD) -> list[FieldOption]:
    """Turn API records into id/name options.

    Records without an id are skipped; a record without the display field is
    labelled with its id.
    """
    options: list[FieldOption] = []
    for record in records:
        record_id = record.get("id")
        if record_id is None or record_id == "":
            continue
        label = record.get(display_field)
        options.append(FieldOption(value=str(record_id), label=str(label) if label else str(record_id)))
    return options


def reference_endpoint(catalog: FieldCatalog, entity_type: str) -> str:
    """API collection of a referenced entity, even one the catalog does not import."""
    if entity_type in catalog:
        return catalog.get_api_endpoint(entity_type)
    return f"/v1/{entity_type}"


async def load_reference_options(
    source: ReferenceSource,
    catalog: FieldCatalog,
    fields: Sequence[FieldDescriptor],
) -> dict[str, list[FieldOption]]:
    """Fetch the records behind every reference field.

    Args:
        source: Client used to list each referenced collection.
        catalog: Catalog giving the collections' endpoints.
        fields: Schema of the entity being imported.

    Returns:
        Options keyed by referenced entity type. An entity whose records
        could not be fetched is left out, so its cells are sent as typed.
    """
    display_fields: dict[str, str] = {}
    for descriptor in fields:
        if descriptor.type == FieldType.REFERENCE and descriptor.enabled and descriptor.reference_entity:
            display_fields.setdefault(
                descriptor.reference_entity, descriptor.reference_display_field or DEFAULT_DISPLAY_FIELD
            )

    loaded: dict[str, list[FieldOption]] = {}
    for entity_type, display_field in display_fields.items():
        endpoint = reference_endpoint(catalog, entity_type)
        try:
            records = await source.list_entities(endpoint)
        except ApiError as e:
            logger.warning("Could not load %s from %s: %s", entity_type, endpoint, e)
            continue
        loaded[entity_type] = entity_options(records, display_field)
        logger.debug("Loaded %d %s record(s)", len(loaded[entity_type]), entity_type)
    return loaded
