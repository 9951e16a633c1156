"""
Model API: create, get, find, update and remove entities of one model.

The API validates every input against the projected shapes and fills in
computed values; reading and writing items is delegated to a ``Store``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from loguru import logger

from .base import ModelSchema
from .classify import is_timestamped
from .errors import EntityNotFoundError, ProjectionViolation, SchemaConflictError
from .fields import DateField, NumberField
from .paged import Paged
from .projection import allows_nulls
from .store import Store
from .values import expand_template, generate_value


class Model:
    """
    Entity operations for one model schema.

    ``init`` is synchronous and touches no store. Every other operation is a
    coroutine. Lookups that find nothing return None; pass ``throw=True``
    to get ``EntityNotFoundError`` instead.

    Parameters
    ----------
    schema : ModelSchema
        The model's schema. It must declare the store's key attributes,
        and its ``typeField`` must be the store's type attribute.
    store : Store, optional
        Table the entities live in. Only ``init`` works without one.

    Examples
    --------
        >>> import asyncio
        >>> from tableshape import MemoryStore, Model, ModelSchema
        >>> User = Model(ModelSchema("User", {
        ...     "pk": {"type": "string", "value": "user#${id}", "hidden": True},
        ...     "sk": {"type": "string", "value": "user#", "hidden": True},
        ...     "id": {"type": "string", "generate": "uuid", "required": True},
        ...     "email": {"type": "string", "required": True},
        ... }), MemoryStore())
        >>> user = asyncio.run(User.create({"email": "alice@example.com"}))
        >>> sorted(user)
        ['created', 'email', 'id', 'updated']
    """

    def __init__(self, schema: ModelSchema, store: Store | None = None):
        self.schema = schema
        self.name = schema.name
        self.params = schema.params
        self.store = store
        if store is not None:
            missing = [k for k in store.key_fields if k not in schema]
            if missing:
                raise SchemaConflictError(
                    f"store key attribute(s) {missing} are not declared",
                    model=self.name,
                )
            if store.type_field != self.params.type_field:
                raise SchemaConflictError(
                    f"store type attribute '{store.type_field}' does not match "
                    f"typeField '{self.params.type_field}'",
                    model=self.name,
                )

    def __repr__(self) -> str:
        return f"Model({self.name!r})"

    # Value computation

    def _timestamp(self, field, now: datetime) -> Any:
        if isinstance(field, DateField):
            return now
        if isinstance(field, NumberField):
            return int(now.timestamp())
        return now.isoformat()

    def _source(self, field) -> str | None:
        """First applicable computation for a field: default, generate, value, timestamp."""
        if field.has_default:
            return "default"
        if field.generate is not None:
            return "generate"
        if isinstance(field.value, str):
            return "value"
        if is_timestamped(self.schema, field):
            return "timestamp"
        return None

    def _expand_templates(
        self, item: dict[str, Any], names: list[str]
    ) -> None:
        pending = list(names)
        # Templates may reference other templates; resolve until stable
        while pending:
            resolved = []
            for name in pending:
                expanded = expand_template(self.schema[name].value, item)
                if expanded is not None:
                    item[name] = expanded
                    resolved.append(name)
            if not resolved:
                break
            pending = [name for name in pending if name not in resolved]
        for name in pending:
            logger.warning(
                f"{self.name}.{name}: value template {self.schema[name].value!r} "
                f"left unexpanded; referenced fields are missing"
            )

    def _fill_create(self, values: dict[str, Any], now: datetime) -> dict[str, Any]:
        item = dict(values)
        templates = []
        for name, field in self.schema.items():
            if name in item:
                continue
            source = self._source(field)
            if source == "default":
                item[name] = field.get_default()
            elif source == "generate":
                item[name] = generate_value(field.generate)
            elif source == "timestamp":
                item[name] = self._timestamp(field, now)
            elif source == "value":
                templates.append(name)
        self._expand_templates(item, templates)
        return item

    def _build(self, properties: Mapping[str, Any] | None) -> dict[str, Any]:
        values = self.schema.validate("create", properties or {})
        item = self._fill_create(values, datetime.now(timezone.utc))
        return self.schema.validate("entity", item)

    def _key(self, properties: Mapping[str, Any]) -> dict[str, Any]:
        """Compute the store key from (possibly partial) properties."""
        if self.store is None:
            raise RuntimeError(f"Model '{self.name}' has no store")
        values = dict(properties)
        key = {}
        for name in self.store.key_fields:
            value = values.get(name)
            template = self.schema[name].value
            if value is None and isinstance(template, str):
                value = expand_template(template, values)
            if value is None:
                raise ProjectionViolation(
                    "key attribute is missing and cannot be computed",
                    model=self.name,
                    fields=[name],
                )
            key[name] = value
        return key

    def _entity(self, item: dict[str, Any]) -> dict[str, Any]:
        """Strip store-only attributes from a stored item."""
        entity = dict(item)
        entity.pop(self.params.type_field, None)
        return entity

    def _read(self, entity: dict[str, Any], hidden: bool | None) -> dict[str, Any]:
        show_hidden = self.params.hidden if hidden is None else hidden
        result = self._entity(entity)
        if not show_hidden:
            for name, field in self.schema.items():
                if field.hidden:
                    result.pop(name, None)
        return result

    async def _fetch(self, properties: Mapping[str, Any]) -> dict[str, Any] | None:
        item = await self.store.get(self._key(properties))  # type: ignore[union-attr]
        if item is None or item.get(self.params.type_field) != self.name:
            return None
        return self._entity(item)

    def _not_found(self, properties: Mapping[str, Any], throw: bool) -> None:
        if throw:
            raise EntityNotFoundError(
                f"no entity matches {dict(properties)}", model=self.name
            )
        return None

    # Operations

    def init(
        self, properties: Mapping[str, Any] | None = None, *, hidden: bool | None = None
    ) -> dict[str, Any]:
        """
        Build an entity in memory without writing it.

        Computed values are filled in for fields the caller left out, in the
        order default, generate, value template, timestamp.

        Raises
        ------
        ProjectionViolation
            If ``properties`` is not a valid create input or the result is
            not a complete entity.
        """
        return self._read(self._build(properties), hidden)

    async def create(
        self,
        properties: Mapping[str, Any],
        *,
        exists: bool | None = False,
        hidden: bool | None = None,
    ) -> dict[str, Any]:
        """
        Create and store an entity.

        Raises
        ------
        ProjectionViolation
            If a mandatory field is missing or a value is invalid.
        EntityExistsError
            If an entity with the same key exists (unless ``exists=None``).
        """
        entity = self._build(properties)
        self._key(entity)
        await self.store.put(  # type: ignore[union-attr]
            {**entity, self.params.type_field: self.name}, exists=exists
        )
        logger.info(f"Created {self.name} {self._key(entity)}")
        return self._read(entity, hidden)

    async def get(
        self,
        properties: Mapping[str, Any],
        *,
        hidden: bool | None = None,
        throw: bool = False,
    ) -> dict[str, Any] | None:
        """Return the entity with the key given by ``properties``, or None."""
        values = self.schema.validate("update", properties)
        entity = await self._fetch(values)
        if entity is None:
            return self._not_found(properties, throw)
        return self._read(entity, hidden)

    async def load(
        self,
        properties: Mapping[str, Any],
        *,
        hidden: bool | None = None,
        throw: bool = False,
    ) -> dict[str, Any] | None:
        """Same as ``get``."""
        return await self.get(properties, hidden=hidden, throw=throw)

    async def find(
        self,
        properties: Mapping[str, Any] | None = None,
        *,
        limit: int | None = None,
        next: Any = None,
        reverse: bool = False,
        hidden: bool | None = None,
    ) -> Paged:
        """
        Return one page of entities matching a find filter.

        Raises
        ------
        FilterConstructionError
            If the filter uses an operator the field type does not support.
        """
        where = self.schema.build_filter(properties)
        page = await self.store.query(  # type: ignore[union-attr]
            self.name, where, limit=limit, next=next, reverse=reverse
        )
        return Paged(
            tuple(self._read(item, hidden) for item in page),
            count=page.count,
            next=page.next,
            prev=page.prev,
        )

    async def scan(
        self,
        properties: Mapping[str, Any] | None = None,
        *,
        limit: int | None = None,
        next: Any = None,
        hidden: bool | None = None,
    ) -> Paged:
        """Return one page of entities of this model, optionally filtered."""
        return await self.find(properties, limit=limit, next=next, hidden=hidden)

    async def update(
        self,
        properties: Mapping[str, Any],
        *,
        hidden: bool | None = None,
    ) -> dict[str, Any]:
        """
        Apply a partial update.

        Unspecified fields keep their values. An explicit None removes an
        optional field (or stores a null where nulls are allowed). The
        updated timestamp and non-key value templates are refreshed.

        Raises
        ------
        ProjectionViolation
            If a required field is set to None or a value is invalid.
        EntityNotFoundError
            If no entity has the given key.
        """
        values = self.schema.validate("update", properties)
        existing = await self._fetch(values)
        if existing is None:
            raise EntityNotFoundError(
                f"cannot update; no entity matches {dict(properties)}",
                model=self.name,
            )
        entity = self._merge(existing, values)
        await self.store.put(  # type: ignore[union-attr]
            {**entity, self.params.type_field: self.name}, exists=True
        )
        logger.info(f"Updated {self.name} {self._key(entity)}: {sorted(values)}")
        return self._read(entity, hidden)

    async def upsert(
        self,
        properties: Mapping[str, Any],
        *,
        hidden: bool | None = None,
    ) -> dict[str, Any]:
        """Update the entity if it exists, otherwise create it."""
        values = self.schema.validate("update", properties)
        try:
            key = self._key(values)
        except ProjectionViolation:
            # Key derives from generated values; nothing to update
            return await self.create(properties, hidden=hidden)
        if await self._fetch(key) is None:
            return await self.create(properties, hidden=hidden)
        return await self.update(properties, hidden=hidden)

    async def remove(
        self,
        properties: Mapping[str, Any],
        *,
        many: bool = False,
        hidden: bool | None = None,
        throw: bool = False,
    ) -> dict[str, Any] | list[dict[str, Any]] | None:
        """
        Remove the entity with the given key, or with ``many=True`` every
        entity matching ``properties`` as a find filter.

        Returns the removed entity (a list with ``many=True``), or None when
        nothing matched.
        """
        if many:
            removed = []
            token = None
            while True:
                page = await self.find(properties, next=token, hidden=True)
                for entity in page:
                    await self.store.delete(self._key(entity))  # type: ignore[union-attr]
                    removed.append(self._read(entity, hidden))
                token = page.next
                if token is None:
                    break
            logger.info(f"Removed {len(removed)} {self.name} entities")
            if not removed:
                return self._not_found(properties, throw)
            return removed

        values = self.schema.validate("update", properties)
        existing = await self._fetch(values)
        if existing is None:
            return self._not_found(properties, throw)
        await self.store.delete(self._key(existing))  # type: ignore[union-attr]
        logger.info(f"Removed {self.name} {self._key(existing)}")
        return self._read(existing, hidden)

    def _merge(
        self, existing: dict[str, Any], values: dict[str, Any]
    ) -> dict[str, Any]:
        item = dict(existing)
        for name, value in values.items():
            if value is None and not allows_nulls(self.schema, name):
                item.pop(name, None)
            else:
                item[name] = value

        now = datetime.now(timezone.utc)
        key_fields = set(self.store.key_fields)  # type: ignore[union-attr]
        templates = []
        for name, field in self.schema.items():
            if name in values or name in key_fields:
                continue
            source = self._source(field)
            if source == "value":
                templates.append(name)
            elif source == "timestamp" and name != self.params.created_field:
                item[name] = self._timestamp(field, now)
        self._expand_templates(item, templates)
        return self.schema.validate("entity", item)
