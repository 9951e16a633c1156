"""
Field classification.

Partitions a model schema's fields into the six named sets the projections
are built from:

- required: ``required`` is true
- optional: every other field
- generated: ``generate`` is set
- defaulted: ``default`` is a concrete (non-None) value or factory
- value_templated: ``value`` is a template string
- timestamped: ``timestamp`` is true, or the field is the schema's
  created/updated timestamp attribute

Required and optional are exhaustive and mutually exclusive; the other four
are independent flags. Every set keeps schema order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import TypeAdapter, ValidationError

from .errors import SchemaConflictError
from .fields import (
    ArrayField,
    DateField,
    FieldBase,
    NumberField,
    StringField,
    TypedArrayField,
)
from .values import is_known_generator, template_fields

if TYPE_CHECKING:  # pragma: no cover
    from .base import ModelSchema

SET_NAMES = (
    "required",
    "optional",
    "generated",
    "defaulted",
    "value_templated",
    "timestamped",
)

TIMESTAMP_TYPES = (DateField, StringField, NumberField)


@dataclass(frozen=True)
class FieldSets:
    """Classification result for one model schema."""

    model: str
    fields: tuple[str, ...]
    required: tuple[str, ...]
    optional: tuple[str, ...]
    generated: tuple[str, ...]
    defaulted: tuple[str, ...]
    value_templated: tuple[str, ...]
    timestamped: tuple[str, ...]

    @property
    def computed(self) -> tuple[str, ...]:
        """Fields the system can fill in itself, in schema order."""
        computed = {
            *self.generated,
            *self.defaulted,
            *self.value_templated,
            *self.timestamped,
        }
        return tuple(name for name in self.fields if name in computed)

    def membership(self, name: str) -> frozenset[str]:
        """Return the names of the sets ``name`` belongs to."""
        if name not in self.fields:
            raise KeyError(f"{self.model} has no field '{name}'")
        return frozenset(s for s in SET_NAMES if name in getattr(self, s))


def is_timestamped(schema: ModelSchema, field: FieldBase) -> bool:
    return field.timestamp or field.name in schema.timestamp_fields


def classify(schema: ModelSchema) -> FieldSets:
    """
    Classify every field of ``schema``.

    Parameters
    ----------
    schema : ModelSchema
        The model schema to classify.

    Returns
    -------
    FieldSets
        The six field sets, each in schema order.
    """
    items = list(schema.items())
    return FieldSets(
        model=schema.name,
        fields=tuple(name for name, _ in items),
        required=tuple(name for name, f in items if f.required),
        optional=tuple(name for name, f in items if not f.required),
        generated=tuple(name for name, f in items if f.generate is not None),
        defaulted=tuple(name for name, f in items if f.has_default),
        value_templated=tuple(
            name for name, f in items if isinstance(f.value, str)
        ),
        timestamped=tuple(name for name, f in items if is_timestamped(schema, f)),
    )


def check_schema(schema: ModelSchema) -> None:
    """
    Reject contradictory field definitions.

    Raises
    ------
    SchemaConflictError
        Naming the model and field of the first conflict found.
    """
    names = set(schema.keys())
    for name, field in schema.items():
        for message in _field_conflicts(schema, field, names):
            raise SchemaConflictError(message, model=schema.name, field=name)


def _field_conflicts(schema: ModelSchema, field: FieldBase, names: set[str]):
    if field.required and field.nulls:
        yield "required fields cannot allow nulls"

    if field.generate is not None:
        if not is_known_generator(field.generate):
            yield (
                f"unknown generate expression {field.generate!r}; "
                "use true, 'uuid', 'uid' or 'uid(N)'"
            )
        elif not isinstance(field, StringField):
            yield f"generated values are strings, not '{field.type_name}'"

    if field.timestamp and not isinstance(field, TIMESTAMP_TYPES):
        yield f"timestamp fields must be date, string or number, not '{field.type_name}'"
    elif field.name in schema.timestamp_fields and not isinstance(
        field, TIMESTAMP_TYPES
    ):
        yield (
            f"timestamp attribute must be date, string or number, "
            f"not '{field.type_name}'"
        )

    if isinstance(field, TypedArrayField) and field.items is None:
        yield "typed-array fields require 'items'"

    if field.value is not None:
        if not isinstance(field.value, str):
            yield "value templates must be strings"
        else:
            unknown = [n for n in template_fields(field.value) if n not in names]
            if unknown:
                yield f"value template references unknown field(s): {', '.join(unknown)}"

    if field.enum is not None:
        if not field.enum:
            yield "enum must list at least one value"
        elif isinstance(field, (StringField, NumberField)):
            base = TypeAdapter(field.get_python_type())
            for member in field.enum:
                if not _conforms(base, member):
                    yield f"enum value {member!r} is not a valid '{field.type_name}'"
        else:
            yield f"enum is only valid for string or number fields, not '{field.type_name}'"

    if field.has_default and not callable(field.default):
        if not _conforms(
            TypeAdapter(field.get_resolved_type()), field.default, strict=False
        ):
            yield f"default {field.default!r} does not match the field type or enum"

    if isinstance(field, ArrayField) and field.items is not None:
        if field.items.required or field.items.generate is not None:
            yield "array items cannot be required or generated"


def _conforms(adapter: TypeAdapter, value, strict: bool = True) -> bool:
    try:
        adapter.validate_python(value, strict=strict)
    except ValidationError:
        return False
    return True
