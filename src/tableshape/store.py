"""Storage collaborator interface and an in-memory single-table store."""

from __future__ import annotations

import copy
from typing import Any, Protocol, runtime_checkable

from loguru import logger

from .errors import EntityExistsError, EntityNotFoundError
from .paged import Paged
from .predicates import FindFilter


@runtime_checkable
class Store(Protocol):
    """
    What the Model API needs from a table.

    Items are plain mappings holding every attribute, including the type
    attribute (``type_field``) naming the model. Keys are mappings of the
    ``key_fields``.
    Continuation tokens in the returned ``Paged`` are opaque to callers.
    """

    key_fields: tuple[str, ...]
    type_field: str

    async def put(self, item: dict[str, Any], *, exists: bool | None = None) -> None:
        """Write ``item``. ``exists`` False/True requires the key to be absent/present."""
        ...

    async def get(self, key: dict[str, Any]) -> dict[str, Any] | None:
        ...

    async def delete(self, key: dict[str, Any]) -> dict[str, Any] | None:
        ...

    async def query(
        self,
        type_name: str,
        where: FindFilter | None = None,
        *,
        limit: int | None = None,
        next: Any = None,
        reverse: bool = False,
    ) -> Paged:
        ...


class MemoryStore:
    """
    In-memory table holding the items of every model.

    Items are ordered by their key values. ``query`` scans the items of one
    model type; its ``next`` token is the key of the last item returned
    (None on the last page), ``prev`` the key of the first item when the
    page did not start at the beginning, and ``count`` the number of items
    on the page.

    Parameters
    ----------
    hash_key : str, default "pk"
        Partition key attribute.
    sort_key : str or None, default "sk"
        Sort key attribute, or None for hash-only keys.
    type_field : str, default "_type"
        Attribute holding the model name.
    """

    def __init__(
        self,
        hash_key: str = "pk",
        sort_key: str | None = "sk",
        type_field: str = "_type",
    ):
        self.hash_key = hash_key
        self.sort_key = sort_key
        self.type_field = type_field
        self._items: dict[tuple, dict[str, Any]] = {}

    @property
    def key_fields(self) -> tuple[str, ...]:
        if self.sort_key is None:
            return (self.hash_key,)
        return (self.hash_key, self.sort_key)

    def _key(self, item: dict[str, Any]) -> tuple:
        missing = [name for name in self.key_fields if item.get(name) is None]
        if missing:
            raise KeyError(f"Item is missing key attribute(s): {missing}")
        return tuple(item[name] for name in self.key_fields)

    @staticmethod
    def _order(key: tuple) -> tuple:
        return tuple(str(part) for part in key)

    def __len__(self) -> int:
        return len(self._items)

    async def put(self, item: dict[str, Any], *, exists: bool | None = None) -> None:
        key = self._key(item)
        model = item.get(self.type_field)
        if exists is False and key in self._items:
            raise EntityExistsError(f"an item with key {key} already exists", model=model)
        if exists is True and key not in self._items:
            raise EntityNotFoundError(f"no item with key {key}", model=model)
        self._items[key] = copy.deepcopy(item)
        logger.debug(f"Put {model} item {key}")

    async def get(self, key: dict[str, Any]) -> dict[str, Any] | None:
        item = self._items.get(self._key(key))
        return copy.deepcopy(item) if item is not None else None

    async def delete(self, key: dict[str, Any]) -> dict[str, Any] | None:
        item = self._items.pop(self._key(key), None)
        if item is not None:
            logger.debug(f"Deleted {item.get(self.type_field)} item {self._key(key)}")
        return item

    async def query(
        self,
        type_name: str,
        where: FindFilter | None = None,
        *,
        limit: int | None = None,
        next: Any = None,
        reverse: bool = False,
    ) -> Paged:
        ordered = sorted(
            self._items.items(), key=lambda kv: self._order(kv[0]), reverse=reverse
        )
        matched = [
            item
            for _, item in ordered
            if item.get(self.type_field) == type_name
            and (where is None or where.matches(item))
        ]

        start = 0
        if next is not None:
            after = self._order(self._key(next))
            for index, item in enumerate(matched):
                position = self._order(self._key(item))
                if (position < after) if reverse else (position > after):
                    start = index
                    break
            else:
                start = len(matched)

        end = len(matched) if limit is None else start + limit
        page = matched[start:end]
        next_token = None
        if page and end < len(matched):
            next_token = {name: page[-1][name] for name in self.key_fields}
        prev_token = None
        if page and start > 0:
            prev_token = {name: page[0][name] for name in self.key_fields}

        logger.debug(
            f"Query {type_name}: {len(matched)} matched, returning {len(page)}"
        )
        return Paged(
            tuple(copy.deepcopy(item) for item in page),
            count=len(page),
            next=next_token,
            prev=prev_token,
        )
