"""Paged results returned by find and scan."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import polars as pl

if TYPE_CHECKING:  # pragma: no cover
    from .base import ModelSchema


@dataclass(frozen=True)
class Paged(Sequence):
    """
    An immutable page of entities.

    Attributes
    ----------
    items : tuple
        The entities on this page, in store order.
    count : int, optional
        Number of items the store reports for the request. How this relates
        to the total number of matches is defined by the store.
    next, prev : Any, optional
        Opaque continuation tokens, passed back to the store unchanged.
    """

    items: tuple[dict[str, Any], ...] = ()
    count: int | None = None
    next: Any = None
    prev: Any = None

    def __post_init__(self):
        if not isinstance(self.items, tuple):
            object.__setattr__(self, "items", tuple(self.items))

    def __getitem__(self, index):
        return self.items[index]

    def __len__(self) -> int:
        return len(self.items)

    def to_polars(self, schema: ModelSchema | None = None) -> pl.DataFrame:
        """
        Return the page as a DataFrame, one row per entity.

        With a schema, columns follow schema order and take the schema's
        Polars dtypes where a field has one; other columns are inferred.
        """
        rows = list(self.items)
        if schema is None:
            return pl.from_dicts(rows, infer_schema_length=None) if rows else pl.DataFrame()

        from .generators.polars import polars_schema

        overrides = polars_schema(schema)
        columns = [name for name in schema if any(name in row for row in rows)]
        extra = sorted({key for row in rows for key in row} - set(schema))
        ordered = [{name: row.get(name) for name in columns + extra} for row in rows]
        if not ordered:
            return pl.DataFrame(schema={n: d for n, d in overrides.items()})
        return pl.from_dicts(
            ordered,
            schema_overrides={n: overrides[n] for n in columns if n in overrides},
            infer_schema_length=None,
        )
