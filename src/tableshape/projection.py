"""
Entity projection.

Combines a schema's field sets into the four operation shapes:

- entity: required fields are mandatory and non-null; optional fields may be
  absent, and may be null only where nulls are allowed.
- create: like entity, except that required fields the system can compute
  (generated, defaulted, value-templated, timestamped) become optional. A
  caller may override a computed value, never null it.
- update: every field optional; optional fields may be set to null to
  remove them; required fields, when supplied, must be non-null.
- find: every field optional; each accepts a literal or one predicate.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:  # pragma: no cover
    from .base import ModelSchema

SHAPE_KINDS = ("entity", "create", "update", "find")


@dataclass(frozen=True)
class ShapeField:
    """One field of a projected shape."""

    name: str
    mandatory: bool
    nullable: bool
    predicates: bool = False


@dataclass(frozen=True)
class Shape:
    """A projected shape: which fields it has and how each may be supplied."""

    kind: str
    model: str
    fields: tuple[ShapeField, ...]

    def __getitem__(self, name: str) -> ShapeField:
        for field in self.fields:
            if field.name == name:
                return field
        raise KeyError(f"{self.model} {self.kind} shape has no field '{name}'")

    def __contains__(self, name: object) -> bool:
        return any(field.name == name for field in self.fields)

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(field.name for field in self.fields)

    @property
    def mandatory(self) -> tuple[str, ...]:
        """Names of the fields every instance must carry."""
        return tuple(field.name for field in self.fields if field.mandatory)


def allows_nulls(schema: ModelSchema, name: str) -> bool:
    """True when an optional field may hold an explicit null."""
    field = schema[name]
    if field.required:
        return False
    if field.nulls is not None:
        return field.nulls
    return schema.params.nulls


def project_entity(schema: ModelSchema) -> Shape:
    """Project the full entity shape."""
    sets = schema.classify()
    required = set(sets.required)
    return Shape(
        kind="entity",
        model=schema.name,
        fields=tuple(
            ShapeField(
                name=name,
                mandatory=name in required,
                nullable=allows_nulls(schema, name),
            )
            for name in sets.fields
        ),
    )


def project_create(schema: ModelSchema) -> Shape:
    """
    Project the create-input shape.

    Exclusions from the mandatory set are applied in order: defaulted,
    generated, value-templated, timestamped.
    """
    sets = schema.classify()
    mandatory = [name for name in sets.fields if name in set(sets.required)]
    for excluded in (
        sets.defaulted,
        sets.generated,
        sets.value_templated,
        sets.timestamped,
    ):
        mandatory = [name for name in mandatory if name not in excluded]
    entity = project_entity(schema)
    return Shape(
        kind="create",
        model=schema.name,
        fields=tuple(
            ShapeField(
                name=field.name,
                mandatory=field.name in mandatory,
                nullable=field.nullable,
            )
            for field in entity.fields
        ),
    )


def project_update(schema: ModelSchema) -> Shape:
    """Project the update-input shape; the required definition wins on overlap."""
    sets = schema.classify()
    required = set(sets.required)
    return Shape(
        kind="update",
        model=schema.name,
        fields=tuple(
            ShapeField(name=name, mandatory=False, nullable=name not in required)
            for name in sets.fields
        ),
    )


def project_find(schema: ModelSchema) -> Shape:
    """Project the find-filter shape."""
    sets = schema.classify()
    return Shape(
        kind="find",
        model=schema.name,
        fields=tuple(
            ShapeField(name=name, mandatory=False, nullable=False, predicates=True)
            for name in sets.fields
        ),
    )


_PROJECTIONS = {
    "entity": project_entity,
    "create": project_create,
    "update": project_update,
    "find": project_find,
}


def project(schema: ModelSchema, kind: str) -> Shape:
    """Project ``schema`` into the shape named ``kind``."""
    try:
        projection = _PROJECTIONS[kind]
    except KeyError:
        raise ValueError(
            f"Unknown shape kind {kind!r}; expected one of {', '.join(SHAPE_KINDS)}"
        ) from None
    shape = projection(schema)
    logger.debug(
        f"Projected {schema.name} {kind} shape; mandatory: {list(shape.mandatory)}"
    )
    return shape
