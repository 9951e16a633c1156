"""
Tableshape: schema-driven entity shapes for single-table data models.

Describe each model once. Get its entity, create, update and find shapes.
"""

from .base import ModelSchema
from .classify import FieldSets, classify
from .config import SchemaParams
from .document import IndexSchema, SchemaDocument, SchemaRegistry, load_schema
from .errors import (
    EntityExistsError,
    EntityNotFoundError,
    FilterConstructionError,
    ProjectionViolation,
    SchemaConflictError,
    TableShapeError,
)
from .fields import Field, FieldBase, field_from_dict
from .model import Model
from .paged import Paged
from .predicates import OPERATORS, FieldRef, FindFilter, Predicate, build_filter, col
from .projection import Shape, ShapeField, project
from .store import MemoryStore, Store

__version__ = "0.1.0"

__all__ = [
    # Core
    "ModelSchema",
    "Field",
    "SchemaParams",
    "SchemaDocument",
    "SchemaRegistry",
    "IndexSchema",
    "load_schema",
    # Classification and projection
    "classify",
    "FieldSets",
    "project",
    "Shape",
    "ShapeField",
    # Predicates
    "OPERATORS",
    "col",
    "FieldRef",
    "Predicate",
    "FindFilter",
    "build_filter",
    # Model API
    "Model",
    "Store",
    "MemoryStore",
    "Paged",
    # Errors
    "TableShapeError",
    "SchemaConflictError",
    "FilterConstructionError",
    "ProjectionViolation",
    "EntityNotFoundError",
    "EntityExistsError",
    # Internal (for advanced use)
    "FieldBase",
    "field_from_dict",
]
