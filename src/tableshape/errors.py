"""
Exception types raised while loading schemas, building filters and
validating entity shapes.

- SchemaConflictError for contradictory field attribute combinations,
  raised when a model schema is built.
- FilterConstructionError for find filters that use an operator the field's
  type does not support, raised when the filter is built.
- ProjectionViolation for create/update/entity instances that omit a
  mandatory field or carry a disallowed null.
- EntityNotFoundError for Model API lookups made with ``throw=True`` and
  updates of missing entities; EntityExistsError for creates over an
  existing key.

Every error names the model and, where there is one, the field.
"""

from __future__ import annotations

__all__ = [
    "TableShapeError",
    "SchemaConflictError",
    "FilterConstructionError",
    "ProjectionViolation",
    "EntityNotFoundError",
    "EntityExistsError",
]


class TableShapeError(ValueError):
    """Base class for all tableshape errors."""

    def __init__(
        self, message: str, *, model: str | None = None, field: str | None = None
    ):
        self.model = model
        self.field = field
        self.detail = message
        prefix = ""
        if model and field:
            prefix = f"{model}.{field}: "
        elif model:
            prefix = f"{model}: "
        elif field:
            prefix = f"{field}: "
        super().__init__(prefix + message)


class SchemaConflictError(TableShapeError):
    """A field's attribute combination is contradictory."""


class FilterConstructionError(TableShapeError):
    """A find filter uses an operator incompatible with the field's type."""


class ProjectionViolation(TableShapeError):
    """
    An instance does not satisfy its projected shape.

    ``fields`` lists every offending field name; ``field`` is the first one.
    """

    def __init__(self, message: str, *, model: str | None, fields: list[str]):
        self.fields = list(fields)
        super().__init__(
            message, model=model, field=self.fields[0] if self.fields else None
        )


class EntityNotFoundError(TableShapeError):
    """No stored entity matches the given key."""


class EntityExistsError(TableShapeError):
    """A create would overwrite an existing entity."""
