"""Core `ModelSchema` class: an ordered, immutable mapping of field descriptors."""

import copy
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Iterator

from loguru import logger

from .classify import FieldSets, check_schema, classify
from .config import SchemaParams
from .errors import SchemaConflictError
from .fields import DateField, FieldBase, ObjectField, field_from_dict


class ModelSchema(Mapping):
    """
    Schema for one entity type.

    Fields may be given as descriptors (``Field(...)``) or as schema document
    entries (``{"type": "string", "required": True}``). Field order is
    insertion order. Unless ``params.timestamps`` is false, the model also
    gets ``date`` fields for the created/updated timestamp attributes when it
    does not declare them itself.

    Contradictory definitions raise ``SchemaConflictError`` here, when the
    schema is built, never later.

    Examples
    --------
        >>> from tableshape import ModelSchema
        >>> User = ModelSchema("User", {
        ...     "pk": {"type": "string", "value": "user#${id}", "hidden": True},
        ...     "id": {"type": "string", "generate": "uuid", "required": True},
        ...     "email": {"type": "string", "required": True},
        ...     "age": {"type": "number"},
        ... })
        >>> User.classify().required
        ('id', 'email')
        >>> list(User)
        ['pk', 'id', 'email', 'age', 'created', 'updated']
    """

    def __init__(
        self,
        name: str,
        fields: Mapping[str, Any],
        params: SchemaParams | Mapping[str, Any] | None = None,
        *,
        nested: bool = False,
    ):
        self.name = name
        if isinstance(params, SchemaParams):
            self.params = params
        else:
            self.params = SchemaParams.model_validate(params or {})
        self.is_nested = nested

        collected: dict[str, FieldBase] = {}
        for field_name, spec in fields.items():
            try:
                field = field_from_dict(field_name, spec)
            except SchemaConflictError as e:
                raise SchemaConflictError(e.detail, model=name, field=field_name) from e
            if field.name != field_name:
                # Descriptors may be shared between schemas; never rename in place
                field = copy.copy(field)
                field.name = field_name
            collected[field_name] = field

        for attr in self.timestamp_fields:
            if attr not in collected:
                stamp = DateField(timestamp=True)
                stamp.name = attr
                collected[attr] = stamp

        self._fields = MappingProxyType(collected)
        check_schema(self)

        self._nested: dict[str, ModelSchema] = {}
        for field_name, field in collected.items():
            if isinstance(field, ObjectField) and field.schema is not None:
                self._nested[field_name] = ModelSchema(
                    f"{name}.{field_name}", field.schema, self.params, nested=True
                )

        self._field_sets: FieldSets | None = None
        self._shapes: dict[str, Any] = {}
        self._models: dict[str, Any] = {}
        logger.debug(f"Loaded model schema '{name}' with fields {list(collected)}")

    # Mapping interface

    def __getitem__(self, key: str) -> FieldBase:
        return self._fields[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"ModelSchema({self.name!r}, fields={list(self._fields)})"

    @property
    def timestamp_fields(self) -> tuple[str, ...]:
        """Created/updated timestamp attribute names (none for nested schemas)."""
        if self.is_nested:
            return ()
        return self.params.timestamp_fields

    def fields(self) -> dict[str, FieldBase]:
        """
        Return all fields defined in this schema.

        Returns
        -------
        dict[str, FieldBase]
            Copy of the mapping of field names to descriptors.
        """
        return dict(self._fields)

    def nested(self, field_name: str) -> "ModelSchema":
        """Return the nested schema of an object field."""
        try:
            return self._nested[field_name]
        except KeyError:
            raise KeyError(
                f"{self.name}.{field_name} is not an object field with a schema"
            ) from None

    def classify(self) -> FieldSets:
        """Return the six field sets (computed once; schemas are immutable)."""
        if self._field_sets is None:
            self._field_sets = classify(self)
        return self._field_sets

    def shape(self, kind: str):
        """
        Return the projected shape of ``kind``.

        Parameters
        ----------
        kind : str
            One of ``"entity"``, ``"create"``, ``"update"`` or ``"find"``.
        """
        from .projection import project

        if kind not in self._shapes:
            self._shapes[kind] = project(self, kind)
        return self._shapes[kind]

    def entity_shape(self):
        """Full entity shape."""
        return self.shape("entity")

    def create_shape(self):
        """Create-input shape."""
        return self.shape("create")

    def update_shape(self):
        """Update-input shape."""
        return self.shape("update")

    def find_shape(self):
        """Find-filter shape."""
        return self.shape("find")

    def to_pydantic(self, kind: str = "entity") -> type:
        """
        Generate a Pydantic BaseModel validating instances of a shape.

        Parameters
        ----------
        kind : str, default "entity"
            One of ``"entity"``, ``"create"`` or ``"update"``.

        Returns
        -------
        type
            A dynamically created Pydantic BaseModel class.

        Examples
        --------
            >>> from tableshape import ModelSchema
            >>> User = ModelSchema("User", {"email": {"type": "string", "required": True}})
            >>> UserCreate = User.to_pydantic("create")
            >>> UserCreate(email="a@example.com").model_dump(exclude_unset=True)
            {'email': 'a@example.com'}
        """
        from .generators.pydantic import create_pydantic_model

        if kind not in self._models:
            self._models[kind] = create_pydantic_model(self, kind)
        return self._models[kind]

    def validate(self, kind: str, properties: Mapping[str, Any]) -> dict[str, Any]:
        """
        Validate ``properties`` against a shape and return the clean mapping.

        Keys absent from ``properties`` stay absent in the result.

        Raises
        ------
        ProjectionViolation
            Naming every offending field.
        """
        from .generators.pydantic import validate_instance

        return validate_instance(self, kind, properties)

    def build_filter(self, expressions: Mapping[str, Any] | None):
        """Build a ``FindFilter`` from a mapping of field name to literal or operator."""
        from .predicates import build_filter

        return build_filter(self, expressions)

    def to_dict(self) -> dict[str, Any]:
        """Return the schema as a model entry of a schema document."""
        return {name: field.to_dict() for name, field in self._fields.items()}
