"""
Schema documents and the model registry.

A schema document describes every model stored in one table:

    version: 0.0.1
    params:
      createdField: createdAt
    indexes:
      primary: {hash: pk, sort: sk}
    models:
      User:
        pk: {type: string, value: "user#${id}"}
        sk: {type: string, value: "user#"}
        id: {type: string, generate: uuid, required: true}
        email: {type: string, required: true}

Documents load from mappings, JSON files or YAML files.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Iterator

import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict
from pydantic import Field as PydanticField

from .base import ModelSchema
from .config import SchemaParams
from .store import MemoryStore


class IndexSchema(BaseModel):
    """One entry of a schema document's ``indexes``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    hash: str | None = None
    sort: str | None = None
    description: str | None = None
    project: str | list[str] | None = None
    follow: bool | None = None
    type: str | None = None


class SchemaDocument(BaseModel):
    """
    A schema document.

    ``models`` holds the raw field definitions; they are turned into
    ``ModelSchema`` objects by ``SchemaRegistry``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str | None = None
    version: str
    format: str | None = None
    params: SchemaParams = PydanticField(default_factory=SchemaParams)
    models: dict[str, dict[str, Any]] = PydanticField(default_factory=dict)
    indexes: dict[str, IndexSchema] = PydanticField(default_factory=dict)
    queries: dict[str, Any] | None = None

    @property
    def primary_index(self) -> IndexSchema:
        """The ``primary`` index, or a ``pk``/``sk`` default."""
        return self.indexes.get("primary") or IndexSchema(hash="pk", sort="sk")


def load_schema(source: SchemaDocument | Mapping[str, Any] | str | Path) -> SchemaDocument:
    """
    Load a schema document.

    Parameters
    ----------
    source : SchemaDocument, mapping, str or Path
        A document, a mapping, or the path of a ``.json``, ``.yaml`` or
        ``.yml`` file.

    Returns
    -------
    SchemaDocument
        The validated document.

    Raises
    ------
    pydantic.ValidationError
        If the document structure or its params are invalid.
    ValueError
        If the file extension is not supported.
    """
    if isinstance(source, SchemaDocument):
        return source
    if isinstance(source, Mapping):
        return SchemaDocument.model_validate(dict(source))

    path = Path(source)
    suffix = path.suffix.lower()
    with open(path, encoding="utf-8") as f:
        if suffix == ".json":
            data = json.load(f)
        elif suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        else:
            raise ValueError(
                f"Unsupported schema file '{path}': expected .json, .yaml or .yml"
            )
    document = SchemaDocument.model_validate(data)
    logger.info(
        f"Loaded schema document '{path}' (version {document.version}, "
        f"models: {list(document.models)})"
    )
    return document


class SchemaRegistry(Mapping):
    """
    Registry mapping model name to ``ModelSchema``.

    Every model of the document is built (and conflict-checked) when the
    registry is created.

    Examples
    --------
        >>> from tableshape import SchemaRegistry
        >>> registry = SchemaRegistry.from_document({
        ...     "version": "0.0.1",
        ...     "models": {"User": {"email": {"type": "string", "required": True}}},
        ... })
        >>> registry["User"].classify().required
        ('email',)
    """

    def __init__(self, document: SchemaDocument):
        self.document = document
        self._models = {
            name: ModelSchema(name, fields, document.params)
            for name, fields in document.models.items()
        }

    @classmethod
    def from_document(
        cls, source: SchemaDocument | Mapping[str, Any] | str | Path
    ) -> "SchemaRegistry":
        """Load a document (see ``load_schema``) and build its registry."""
        return cls(load_schema(source))

    @property
    def params(self) -> SchemaParams:
        return self.document.params

    def store(self) -> MemoryStore:
        """
        Return an empty in-memory table laid out for this document.

        Keys follow the primary index and items carry the ``typeField``
        attribute, so every model of the registry can share the store.
        """
        primary = self.document.primary_index
        return MemoryStore(
            hash_key=primary.hash or "pk",
            sort_key=primary.sort,
            type_field=self.params.type_field,
        )

    def __getitem__(self, name: str) -> ModelSchema:
        try:
            return self._models[name]
        except KeyError:
            raise KeyError(f"Unknown model '{name}'") from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._models)

    def __len__(self) -> int:
        return len(self._models)
