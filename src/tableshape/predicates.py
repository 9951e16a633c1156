"""
Find-filter predicate algebra.

A find filter maps each field to either a literal (implicit equality) or
exactly one named operator:

    {"age": {"between": [18, 30]}, "name": {"begins": "Al"}, "active": True}

``=`` and ``<>`` apply to every field type. ``between``, ``<``, ``<=``,
``>=`` and ``>`` need an orderable type (number, string, date), and
``begins``/``begins_with`` need a string field. Violations raise
``FilterConstructionError`` when the filter is built. Fields combine by
conjunction.

Predicates compile to Polars expressions and evaluate against Python
mappings, so a filter can run over a DataFrame or a list of entities.
"""

from __future__ import annotations

import functools
import operator
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, ClassVar

import polars as pl
from loguru import logger
from pydantic import TypeAdapter, ValidationError

from .errors import FilterConstructionError
from .fields import FieldBase
from .values import as_utc

if TYPE_CHECKING:  # pragma: no cover
    from .base import ModelSchema

OPERATORS = ("begins", "begins_with", "between", "<", "<=", "=", "<>", ">=", ">")
PREFIX_OPERATORS = frozenset({"begins", "begins_with"})
ORDERING_OPERATORS = frozenset({"between", "<", "<=", ">=", ">"})
EQUALITY_OPERATORS = frozenset({"=", "<>"})


@dataclass(frozen=True)
class Predicate:
    """
    One field condition of a find filter.

    Parameters
    ----------
    field : str
        Field name.
    op : str
        One of ``OPERATORS``.
    value : Any
        Operand; a ``(low, high)`` tuple for ``between``.
    implicit : bool, default False
        True when the predicate came from a bare literal.
    """

    field: str
    op: str
    value: Any
    implicit: bool = False

    POLARS_OPS: ClassVar[dict[str, Callable[[pl.Expr, Any], pl.Expr]]] = {
        "begins": lambda col, v: col.str.starts_with(v),
        "begins_with": lambda col, v: col.str.starts_with(v),
        # String bounds would be read as column names; wrap them as literals
        "between": lambda col, v: col.is_between(
            pl.lit(v[0]), pl.lit(v[1]), closed="both"
        ),
        "<": lambda col, v: col < pl.lit(v),
        "<=": lambda col, v: col <= pl.lit(v),
        "=": lambda col, v: col == pl.lit(v),
        "<>": lambda col, v: col.ne_missing(pl.lit(v)),
        ">=": lambda col, v: col >= pl.lit(v),
        ">": lambda col, v: col > pl.lit(v),
    }

    PYTHON_OPS: ClassVar[dict[str, Callable[[Any, Any], bool]]] = {
        "begins": lambda a, v: isinstance(a, str) and a.startswith(v),
        "begins_with": lambda a, v: isinstance(a, str) and a.startswith(v),
        "between": lambda a, v: v[0] <= a <= v[1],
        "<": operator.lt,
        "<=": operator.le,
        "=": operator.eq,
        "<>": operator.ne,
        ">=": operator.ge,
        ">": operator.gt,
    }

    def to_polars(self, dtype: pl.DataType | None = None) -> pl.Expr:
        """
        Compile to a Polars boolean expression.

        Parameters
        ----------
        dtype : pl.DataType, optional
            Dtype of the column. Date operands are compared in UTC: against
            a time-zone-aware column directly, otherwise as naive UTC values.
        """
        column = pl.col(self.field)
        value = self.value
        if _holds_datetime(value):
            if isinstance(dtype, pl.Datetime) and dtype.time_zone is not None:
                column = column.dt.convert_time_zone("UTC")
            else:
                value = _map_operand(value, lambda v: v.replace(tzinfo=None))
        return self.POLARS_OPS[self.op](column, value)

    def matches(self, entity: Mapping[str, Any]) -> bool:
        """
        Evaluate against an entity mapping.

        A missing or null attribute only satisfies ``<>``. Naive datetimes
        are taken to be UTC.
        """
        actual = entity.get(self.field)
        if actual is None:
            return self.op == "<>"
        if isinstance(actual, datetime):
            actual = as_utc(actual)
        expected = _map_operand(self.value, lambda v: v)
        return bool(self.PYTHON_OPS[self.op](actual, expected))

    def to_expression(self) -> Any:
        """Return the filter-document form: the literal, or ``{op: value}``."""
        if self.implicit:
            return self.value
        value = list(self.value) if self.op == "between" else self.value
        return {self.op: value}


class FieldRef:
    """
    Reference to a field for building predicates in code.

    Created with ``col()``. Comparison operators return predicates rather
    than booleans:

        >>> from tableshape import col
        >>> col("age") >= 18
        Predicate(field='age', op='>=', value=18, implicit=False)
        >>> col("name").begins("Al")
        Predicate(field='name', op='begins', value='Al', implicit=False)

    The predicates are checked against a schema by ``build_filter()``.
    """

    def __init__(self, name: str):
        self.name = name

    def __lt__(self, other: Any) -> Predicate:
        return Predicate(self.name, "<", other)

    def __le__(self, other: Any) -> Predicate:
        return Predicate(self.name, "<=", other)

    def __gt__(self, other: Any) -> Predicate:
        return Predicate(self.name, ">", other)

    def __ge__(self, other: Any) -> Predicate:
        return Predicate(self.name, ">=", other)

    def __eq__(self, other: Any) -> Predicate:  # type: ignore[override]
        # Intentional override: DSL returns predicates, not bool
        return Predicate(self.name, "=", other)

    def __ne__(self, other: Any) -> Predicate:  # type: ignore[override]
        # Intentional override: DSL returns predicates, not bool
        return Predicate(self.name, "<>", other)

    __hash__ = None  # type: ignore[assignment]

    def begins(self, prefix: str) -> Predicate:
        """Prefix match."""
        return Predicate(self.name, "begins", prefix)

    def begins_with(self, prefix: str) -> Predicate:
        """Prefix match (alias of ``begins``)."""
        return Predicate(self.name, "begins_with", prefix)

    def between(self, low: Any, high: Any) -> Predicate:
        """Inclusive range."""
        return Predicate(self.name, "between", (low, high))


def col(name: str) -> FieldRef:
    """Create a field reference for building find-filter predicates."""
    return FieldRef(name)


@dataclass(frozen=True)
class FindFilter:
    """Conjunction of per-field predicates for one model."""

    model: str
    predicates: tuple[Predicate, ...] = ()

    def __iter__(self):
        return iter(self.predicates)

    def __len__(self) -> int:
        return len(self.predicates)

    def __getitem__(self, field: str) -> Predicate:
        for predicate in self.predicates:
            if predicate.field == field:
                return predicate
        raise KeyError(f"{self.model} filter has no condition on '{field}'")

    @property
    def fields(self) -> tuple[str, ...]:
        return tuple(p.field for p in self.predicates)

    def to_polars(self, dtypes: Mapping[str, pl.DataType] | None = None) -> pl.Expr:
        """
        Compile to one Polars expression (``True`` when empty).

        ``dtypes`` maps column names to dtypes, e.g. ``df.schema``.
        """
        if not self.predicates:
            return pl.lit(True)
        dtypes = dtypes or {}
        return functools.reduce(
            operator.and_, (p.to_polars(dtypes.get(p.field)) for p in self.predicates)
        )

    def matches(self, entity: Mapping[str, Any]) -> bool:
        """True when every predicate holds for ``entity``."""
        return all(p.matches(entity) for p in self.predicates)

    def to_dict(self) -> dict[str, Any]:
        """Return the filter-document form."""
        return {p.field: p.to_expression() for p in self.predicates}


def check_operator(model: str, field: FieldBase, op: str) -> None:
    """
    Ensure ``op`` is applicable to ``field``'s type.

    Raises
    ------
    FilterConstructionError
        For unknown operators and operators the type does not support.
    """
    if op not in OPERATORS:
        raise FilterConstructionError(
            f"unknown operator {op!r}; expected one of {', '.join(OPERATORS)}",
            model=model,
            field=field.name,
        )
    if op in PREFIX_OPERATORS and not field.prefixable:
        raise FilterConstructionError(
            f"'{op}' requires a string field, not '{field.type_name}'",
            model=model,
            field=field.name,
        )
    if op in ORDERING_OPERATORS and not field.orderable:
        raise FilterConstructionError(
            f"'{op}' requires an orderable field (number, string, date), "
            f"not '{field.type_name}'",
            model=model,
            field=field.name,
        )


def build_predicate(schema: ModelSchema, name: str, expression: Any) -> Predicate:
    """
    Build the predicate for one field of a find filter.

    Parameters
    ----------
    schema : ModelSchema
        Schema of the model being queried.
    name : str
        Field name.
    expression : Any
        A literal, a single-operator mapping such as ``{"between": [1, 5]}``,
        or a ``Predicate`` built with ``col()``.

    Raises
    ------
    FilterConstructionError
        For unknown fields, more than one operator, operators the field
        type does not support, and operands of the wrong type.
    """
    if name not in schema:
        raise FilterConstructionError("unknown field", model=schema.name, field=name)
    field = schema[name]

    if isinstance(expression, Predicate):
        op, operand, implicit = expression.op, expression.value, expression.implicit
    elif isinstance(expression, Mapping) and any(k in OPERATORS for k in expression):
        if len(expression) != 1:
            raise FilterConstructionError(
                f"expected exactly one operator, got {sorted(map(str, expression))}; "
                "operators cannot be combined on one field",
                model=schema.name,
                field=name,
            )
        ((op, operand),) = expression.items()
        implicit = False
    else:
        op, operand, implicit = "=", expression, True

    check_operator(schema.name, field, op)
    value = _coerce_operand(schema.name, field, op, operand)
    return Predicate(name, op, value, implicit)


def build_filter(
    schema: ModelSchema,
    expressions: Mapping[str, Any] | Iterable[Predicate] | None,
) -> FindFilter:
    """
    Build a ``FindFilter`` for ``schema``.

    Parameters
    ----------
    schema : ModelSchema
        Schema of the model being queried.
    expressions : mapping or iterable of Predicate, optional
        Field name to literal/operator mapping, or predicates from ``col()``.
        None gives an empty (match-all) filter.
    """
    if expressions is None:
        return FindFilter(schema.name)
    if isinstance(expressions, FindFilter):
        expressions = list(expressions.predicates)

    if isinstance(expressions, Mapping):
        items = list(expressions.items())
    elif isinstance(expressions, Iterable) and not isinstance(expressions, (str, bytes)):
        items = []
        for predicate in expressions:
            if not isinstance(predicate, Predicate):
                raise FilterConstructionError(
                    f"expected Predicate, got {type(predicate).__name__}",
                    model=schema.name,
                )
            items.append((predicate.field, predicate))
    else:
        raise FilterConstructionError(
            f"filter must be a mapping or predicates, not {type(expressions).__name__}",
            model=schema.name,
        )

    seen: set[str] = set()
    predicates = []
    for name, expression in items:
        if name in seen:
            raise FilterConstructionError(
                "only one condition per field is allowed",
                model=schema.name,
                field=name,
            )
        seen.add(name)
        predicates.append(build_predicate(schema, name, expression))

    logger.debug(f"Built {schema.name} filter on {sorted(seen)}")
    return FindFilter(schema.name, tuple(predicates))


def _coerce_operand(model: str, field: FieldBase, op: str, operand: Any) -> Any:
    """Validate the operand against the field type and return the parsed value."""
    if operand is None:
        raise FilterConstructionError(
            f"null is not a valid operand for '{op}'", model=model, field=field.name
        )

    if op in PREFIX_OPERATORS:
        target: Any = str
    elif op in ORDERING_OPERATORS:
        target = field.get_python_type()
    else:
        target = field.get_resolved_type()
    adapter = TypeAdapter(target)

    if op == "between":
        if isinstance(operand, (str, bytes, Mapping)) or not isinstance(
            operand, Iterable
        ):
            raise FilterConstructionError(
                "'between' takes a [low, high] pair", model=model, field=field.name
            )
        bounds = list(operand)
        if len(bounds) != 2:
            raise FilterConstructionError(
                f"'between' takes a [low, high] pair, got {len(bounds)} value(s)",
                model=model,
                field=field.name,
            )
        low, high = (
            _normalize(_validate(adapter, model, field, op, b)) for b in bounds
        )
        try:
            inverted = low > high
        except TypeError:
            inverted = False
        if inverted:
            logger.warning(
                f"{model}.{field.name}: 'between' bounds are inverted "
                f"({low!r} > {high!r}); the condition matches nothing"
            )
        return (low, high)

    return _normalize(_validate(adapter, model, field, op, operand))


def _normalize(value: Any) -> Any:
    # Stored timestamps are aware; compare every date operand in UTC
    if isinstance(value, datetime):
        return as_utc(value)
    return value


def _holds_datetime(value: Any) -> bool:
    if isinstance(value, tuple):
        return any(isinstance(v, datetime) for v in value)
    return isinstance(value, datetime)


def _map_operand(value: Any, convert: Callable[[datetime], datetime]) -> Any:
    if isinstance(value, tuple):
        return tuple(_map_operand(v, convert) for v in value)
    if isinstance(value, datetime):
        return convert(as_utc(value))
    return value


def _validate(
    adapter: TypeAdapter, model: str, field: FieldBase, op: str, value: Any
) -> Any:
    try:
        return adapter.validate_python(value)
    except ValidationError as e:
        problems = "; ".join(error["msg"] for error in e.errors())
        raise FilterConstructionError(
            f"{value!r} is not a valid operand for '{op}' on a "
            f"'{field.type_name}' field: {problems}",
            model=model,
            field=field.name,
        ) from e
