"""Schema-wide params shared by every model of a schema document."""

from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic import Field as PydanticField


class SchemaParams(BaseModel):
    """
    Global ``params`` of a schema document.

    Accepts both the snake_case attribute names and the camelCase names used
    in schema documents (``createdField``, ``updatedField``, ``typeField``,
    ``isoDates``).

    Attributes
    ----------
    created_field : str, default "created"
        Name of the "created" timestamp attribute.
    hidden : bool, default False
        Return hidden fields from Model API reads.
    iso_dates : bool, default False
        Storage setting of the document, kept as metadata for store
        implementations. Model API reads return date fields as datetimes.
    nulls : bool, default False
        Allow explicit nulls on optional fields unless a field says otherwise.
    timestamps : bool or "create" or "update", default True
        Which of the created/updated timestamps models carry.
    type_field : str, default "_type"
        Name of the attribute holding the model name in stored items.
    updated_field : str, default "updated"
        Name of the "updated" timestamp attribute.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="forbid")

    created_field: str = PydanticField("created", alias="createdField")
    hidden: bool = False
    iso_dates: bool = PydanticField(False, alias="isoDates")
    nulls: bool = False
    timestamps: bool | Literal["create", "update"] = True
    type_field: str = PydanticField("_type", alias="typeField")
    updated_field: str = PydanticField("updated", alias="updatedField")

    @property
    def timestamp_fields(self) -> tuple[str, ...]:
        """Names of the timestamp attributes enabled by ``timestamps``."""
        names = []
        if self.timestamps is True or self.timestamps == "create":
            names.append(self.created_field)
        if self.timestamps is True or self.timestamps == "update":
            names.append(self.updated_field)
        return tuple(names)
