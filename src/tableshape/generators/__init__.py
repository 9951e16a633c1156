"""Generators for different frameworks."""

from .polars import filter_frame, polars_schema, validate_frame
from .pydantic import create_pydantic_model, validate_instance

__all__ = [
    "create_pydantic_model",
    "validate_instance",
    "polars_schema",
    "validate_frame",
    "filter_frame",
]
