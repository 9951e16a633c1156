"""Polars helpers: column dtypes, entity-shape checks and find filters over DataFrames."""

from typing import TYPE_CHECKING, Dict

import polars as pl
from loguru import logger

from ..errors import ProjectionViolation

if TYPE_CHECKING:
    from ..base import ModelSchema
    from ..predicates import FindFilter


def polars_schema(schema: "ModelSchema") -> Dict[str, pl.DataType]:
    """Return the Polars dtype of every field that has a fixed one, in schema order."""
    dtypes = {}
    for field_name, field in schema.items():
        dtype = field.get_polars_dtype()
        if dtype is not None:
            dtypes[field_name] = dtype
    return dtypes


def validate_frame(
    df: pl.DataFrame, schema: "ModelSchema", strict: bool = True
) -> pl.DataFrame:
    """
    Check a DataFrame of entities against the entity shape.

    Parameters
    ----------
    df : pl.DataFrame
        One row per entity.
    schema : ModelSchema
        Schema of the entities.
    strict : bool, default True
        If True, raise on violations. If False, drop offending rows.

    Returns
    -------
    pl.DataFrame
        The frame, cast to the schema's dtypes, possibly with rows removed.

    Raises
    ------
    ProjectionViolation
        If a required column is missing, or (when strict) holds nulls, or a
        column is not part of the schema.
    """
    required = schema.classify().required
    missing = [name for name in required if name not in df.columns]
    if missing:
        raise ProjectionViolation(
            f"missing required column(s): {missing}", model=schema.name, fields=missing
        )
    unknown = [name for name in df.columns if name not in schema]
    if unknown:
        raise ProjectionViolation(
            f"unknown column(s): {unknown}", model=schema.name, fields=unknown
        )

    dtypes = polars_schema(schema)
    cast_exprs = [
        pl.col(name).cast(dtypes[name], strict=False) if name in dtypes else pl.col(name)
        for name in df.columns
    ]
    df = df.select(cast_exprs)

    for field_name in required:
        null_count = df[field_name].null_count()
        if null_count == 0:
            continue
        if strict:
            raise ProjectionViolation(
                f"column has {null_count} null values but is required",
                model=schema.name,
                fields=[field_name],
            )
        logger.warning(
            f"Dropping {null_count} rows with null required field '{field_name}'"
        )
        df = df.filter(pl.col(field_name).is_not_null())
    return df


def filter_frame(df: pl.DataFrame, find_filter: "FindFilter") -> pl.DataFrame:
    """
    Return the rows of ``df`` matching every predicate of ``find_filter``.

    A predicate on a column the frame does not have behaves as it does for a
    missing attribute: only ``<>`` holds.
    """
    exprs = []
    for predicate in find_filter:
        if predicate.field in df.columns:
            exprs.append(predicate.to_polars(df.schema[predicate.field]))
        elif predicate.op != "<>":
            return df.clear()
    result = df.filter(*exprs) if exprs else df
    logger.debug(
        f"Filtered {find_filter.model} frame: {df.height} -> {result.height} rows"
    )
    return result
