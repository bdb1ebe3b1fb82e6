"""Field descriptors describing the columns of an importable entity."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FieldType(str, Enum):
    """Data type of an importable field."""

    TEXT = "text"
    NUMBER = "number"
    EMAIL = "email"
    BOOLEAN = "boolean"
    DATE = "date"
    SELECT = "select"
    REFERENCE = "reference"  # FK to another entity


class FieldOption(BaseModel):
    """One allowed value of a select field."""

    model_config = ConfigDict(frozen=True)

    value: str
    label: str


class FieldDescriptor(BaseModel):
    """Describes one column: how it is labelled, coerced and validated."""

    model_config = ConfigDict(frozen=True)

    key: str
    label: str
    type: FieldType = FieldType.TEXT
    required: bool = False
    enabled: bool = True
    order: int = 0
    description: str | None = None
    custom_label: str | None = None
    default_value: str | int | float | bool | None = None

    options: list[FieldOption] = Field(default_factory=list)

    reference_entity: str | None = None
    reference_display_field: str | None = None

    # Constraints
    min_length: int | None = None
    max_length: int | None = None
    min: float | None = None
    max: float | None = None
    pattern: str | None = None
    pattern_message: str | None = None

    @property
    def display_label(self) -> str:
        """Label shown in headers and messages."""
        return self.custom_label or self.label

    @property
    def option_values(self) -> list[str]:
        return [option.value for option in self.options]


class EntityDefinition(BaseModel):
    """An importable entity type and its ordered field schema."""

    model_config = ConfigDict(frozen=True)

    entity_type: str
    label: str
    label_plural: str | None = None
    description: str | None = None
    api_endpoint: str | None = None
    base_path: str | None = None
    module: str | None = None
    fields: list[FieldDescriptor] = Field(default_factory=list)

    @field_validator("fields")
    @classmethod
    def _keys_are_unique(cls, fields: list[FieldDescriptor]) -> list[FieldDescriptor]:
        seen: set[str] = set()
        for field in fields:
            if field.key in seen:
                raise ValueError(f"Duplicate field key: {field.key}")
            seen.add(field.key)
        return fields


def enabled_fields(fields: list[FieldDescriptor] | tuple[FieldDescriptor, ...]) -> tuple[FieldDescriptor, ...]:
    """Return the enabled fields in display order.

    Sorting is stable, so fields sharing an ``order`` keep their schema order.
    """
    return tuple(sorted((f for f in fields if f.enabled), key=lambda f: f.order))
