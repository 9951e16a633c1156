"""Pydantic model generator for projected shapes."""

from typing import TYPE_CHECKING, Any, Mapping, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, ValidationError, create_model
from pydantic import Field as PydanticField

from ..errors import ProjectionViolation
from ..fields import ObjectField

if TYPE_CHECKING:
    from ..base import ModelSchema

_MODEL_SUFFIX = {
    "entity": "Entity",
    "create": "Create",
    "update": "Update",
}


def create_pydantic_model(schema: "ModelSchema", kind: str = "entity") -> type[BaseModel]:
    """
    Generate a Pydantic BaseModel validating instances of one shape.

    Mandatory shape fields are required model fields; every other field
    defaults to None and is left out of ``model_dump(exclude_unset=True)``
    when absent. A None supplied for a non-nullable field fails validation.
    Unknown keys are rejected.

    Parameters
    ----------
    schema : ModelSchema
        The model schema to generate from.
    kind : str, default "entity"
        One of ``"entity"``, ``"create"`` or ``"update"``.

    Returns
    -------
    type[BaseModel]
        A dynamically created Pydantic BaseModel class.
    """
    if kind not in _MODEL_SUFFIX:
        raise ValueError(
            f"No Pydantic model for {kind!r} shapes; "
            f"use ModelSchema.build_filter() for find filters"
        )
    shape = schema.shape(kind)
    pydantic_fields: dict[str, Any] = {}

    for index, shape_field in enumerate(shape.fields):
        field = schema[shape_field.name]
        if isinstance(field, ObjectField) and field.schema is not None:
            python_type: Any = create_pydantic_model(
                schema.nested(shape_field.name), "entity"
            )
        else:
            python_type = field.get_resolved_type()

        if shape_field.nullable:
            python_type = Optional[python_type]

        field_kwargs = field.get_pydantic_field_kwargs()
        attr_name = shape_field.name
        if attr_name.startswith("_") or hasattr(BaseModel, attr_name):
            # Reserved by Pydantic; keep the schema name as the alias
            attr_name = f"field_{index}"
            field_kwargs["alias"] = shape_field.name

        if not shape_field.mandatory:
            field_kwargs["default"] = None

        if field_kwargs:
            pydantic_fields[attr_name] = (python_type, PydanticField(**field_kwargs))
        else:
            pydantic_fields[attr_name] = (python_type, ...)

    model_name = schema.name.replace(".", "_") + _MODEL_SUFFIX[kind]
    # Pydantic's create_model is dynamically typed - returns type[BaseModel] at runtime
    model: type[BaseModel] = create_model(  # type: ignore[call-overload]
        model_name,
        __config__=ConfigDict(extra="forbid", arbitrary_types_allowed=True),
        **pydantic_fields,
    )
    logger.debug(f"Generated Pydantic model {model_name} for {schema.name} {kind}")
    return model


def validate_instance(
    schema: "ModelSchema", kind: str, properties: Mapping[str, Any]
) -> dict[str, Any]:
    """
    Validate ``properties`` against the ``kind`` shape of ``schema``.

    Returns
    -------
    dict
        The validated values; keys absent from ``properties`` stay absent.

    Raises
    ------
    ProjectionViolation
        Listing every field that is missing, unknown, null where nulls are
        not allowed, or of the wrong type.
    """
    model = schema.to_pydantic(kind)
    try:
        instance = model.model_validate(dict(properties))
    except ValidationError as e:
        fields = []
        problems = []
        for error in e.errors():
            loc = error.get("loc") or ("<model>",)
            name = str(loc[0])
            if name not in fields:
                fields.append(name)
            problems.append(f"{'.'.join(str(part) for part in loc)}: {error['msg']}")
        raise ProjectionViolation(
            f"invalid {kind} instance: {'; '.join(problems)}",
            model=schema.name,
            fields=fields,
        ) from e
    return instance.model_dump(exclude_unset=True, by_alias=True)
