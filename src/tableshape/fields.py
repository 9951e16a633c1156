"""Field descriptor types for model schemas."""

import inspect
import re
from datetime import datetime
from typing import Any, Literal

import polars as pl
from pydantic import StrictBool, StrictFloat, StrictInt

from .errors import SchemaConflictError

# Sentinel value to distinguish "no default provided" from "default is None"
_MISSING = object()

# Type mapping from type names and Python types to Field classes
# (populated at module end)
_TYPE_MAP: dict[Any, type["FieldBase"]] = {}


class FieldBase:
    """
    Base field descriptor for model schema definitions.

    A descriptor is pure data: the field's type plus the attributes that
    decide which of the required/optional/generated/defaulted/value/timestamp
    sets it belongs to. Everything else (``ttl``, ``hidden``, ``unique``,
    ``crypt``, ``reference``, ``nulls``, ``map``, ``validate``, ``filter``)
    is preserved as metadata.

    Use the ``Field()`` factory or ``field_from_dict()`` rather than
    instantiating subclasses by hand.

    Parameters
    ----------
    required : bool, default False
        The field must be present (and non-null) on every entity.
    default : Any, optional
        Value (or zero-argument callable) used when the field is missing.
        ``None`` counts as no default.
    generate : bool or str, optional
        System-assigned value: ``True``/``"uuid"``, ``"uid"`` or ``"uid(N)"``.
    value : str, optional
        Template computed from other fields, e.g. ``"user#${id}"``.
    enum : sequence, optional
        Allowed literal values; narrows the field's value type.
    timestamp : bool, default False
        Set to the current time on write.
    nulls : bool, optional
        Allow explicit nulls on an optional field. ``None`` defers to the
        schema-wide ``nulls`` param.
    """

    type_name: str = ""
    orderable: bool = False
    prefixable: bool = False

    def __init__(
        self,
        *,
        required: bool = False,
        default: Any = _MISSING,
        generate: bool | str | None = None,
        value: str | None = None,
        enum: Any = None,
        timestamp: bool = False,
        ttl: bool = False,
        hidden: bool = False,
        unique: bool = False,
        crypt: bool = False,
        reference: str | None = None,
        nulls: bool | None = None,
        map: str | None = None,
        validate: Any = None,
        filter: bool | None = None,
        description: str | None = None,
    ):
        self.required = bool(required)
        self.default = default
        # generate=False is the same as not generated
        self.generate = None if generate is False else generate
        self.value = value
        self.enum = tuple(enum) if enum is not None else None
        self.timestamp = bool(timestamp)
        self.ttl = ttl
        self.hidden = hidden
        self.unique = unique
        self.crypt = crypt
        self.reference = reference
        self.nulls = nulls
        self.map = map
        self.validate = validate
        self.filter = filter
        self.description = description
        self.name: str | None = None  # Set by ModelSchema

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"

    @property
    def has_default(self) -> bool:
        """True when the field carries a concrete default."""
        return self.default is not _MISSING and self.default is not None

    def get_python_type(self) -> Any:
        """Return the Python type for this field's values."""
        raise NotImplementedError

    def get_resolved_type(self) -> Any:
        """Return the value type, narrowed to a Literal when ``enum`` is set."""
        if self.enum:
            return Literal[self.enum]  # type: ignore[valid-type]
        return self.get_python_type()

    def get_polars_dtype(self):
        """Return the Polars dtype for this field, or None to let Polars infer."""
        return None

    def get_pydantic_field_kwargs(self) -> dict[str, Any]:
        """Return kwargs for Pydantic Field()."""
        kwargs: dict[str, Any] = {}
        if self.description:
            kwargs["description"] = self.description
        return kwargs

    def get_default(self) -> Any:
        """Return the concrete default, calling it if it is a factory."""
        if callable(self.default):
            return self.default()
        return self.default

    def to_dict(self) -> dict[str, Any]:
        """Return the descriptor as a schema document entry."""
        data: dict[str, Any] = {"type": self.type_name}
        for attr in _ATTRIBUTES:
            current = getattr(self, attr)
            if attr == "default":
                if current is not _MISSING:
                    data[attr] = current
            elif attr == "enum":
                if current is not None:
                    data[attr] = list(current)
            elif current not in (None, False):
                data[attr] = current
        return data


class StringField(FieldBase):
    """
    String field.

    ``validate`` may carry a regular expression (``str`` or compiled pattern)
    which becomes a Pydantic ``pattern`` constraint.
    """

    type_name = "string"
    orderable = True
    prefixable = True

    def get_python_type(self):
        return str

    def get_polars_dtype(self):
        return pl.Utf8

    def get_pydantic_field_kwargs(self) -> dict[str, Any]:
        kwargs = super().get_pydantic_field_kwargs()
        if isinstance(self.validate, re.Pattern):
            kwargs["pattern"] = self.validate.pattern
        elif isinstance(self.validate, str):
            kwargs["pattern"] = _strip_regex_delimiters(self.validate)
        return kwargs


class NumberField(FieldBase):
    """
    Number field.

    Accepts ints and floats as given. Booleans and numeric strings are
    rejected rather than coerced.
    """

    type_name = "number"
    orderable = True

    def get_python_type(self):
        return StrictInt | StrictFloat

    def get_polars_dtype(self):
        return pl.Float64


class BooleanField(FieldBase):
    """Boolean field; only True and False are accepted."""

    type_name = "boolean"

    def get_python_type(self):
        return StrictBool

    def get_polars_dtype(self):
        return pl.Boolean


class DateField(FieldBase):
    """Date field for datetime.datetime values."""

    type_name = "date"
    orderable = True

    def get_python_type(self):
        return datetime

    def get_polars_dtype(self):
        return pl.Datetime


class BufferField(FieldBase):
    """Binary buffer field."""

    type_name = "buffer"

    def get_python_type(self):
        return bytes

    def get_polars_dtype(self):
        return pl.Binary


class SetField(FieldBase):
    """Set field."""

    type_name = "set"

    def get_python_type(self):
        return set[Any]


class ArrayField(FieldBase):
    """
    Array field. ``items`` optionally describes the element type.

    Parameters
    ----------
    items : FieldBase or dict, optional
        Element descriptor. Without it elements are untyped.
    """

    type_name = "array"

    def __init__(self, *, items: Any = None, **kwargs):
        super().__init__(**kwargs)
        if isinstance(items, dict):
            items = field_from_dict("items", items)
        self.items: FieldBase | None = items

    def get_python_type(self):
        if self.items is None:
            return list[Any]
        return list[self.items.get_resolved_type()]  # type: ignore[misc]

    def get_polars_dtype(self):
        if self.items is None:
            return None
        inner = self.items.get_polars_dtype()
        if inner is None:
            return None
        return pl.List(inner)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.items is not None:
            data["items"] = self.items.to_dict()
        return data


class TypedArrayField(ArrayField):
    """Array field whose element type is required."""

    type_name = "typed-array"


class ObjectField(FieldBase):
    """
    Object field. ``schema`` optionally describes the nested fields.

    Parameters
    ----------
    schema : dict, optional
        Mapping of nested field name to descriptor (or descriptor dict).
    """

    type_name = "object"

    def __init__(self, *, schema: Any = None, **kwargs):
        super().__init__(**kwargs)
        if schema is not None:
            schema = {
                name: spec if isinstance(spec, FieldBase) else field_from_dict(name, spec)
                for name, spec in schema.items()
            }
        self.schema: dict[str, FieldBase] | None = schema

    def get_python_type(self):
        return dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.schema is not None:
            data["schema"] = {
                name: field.to_dict() for name, field in self.schema.items()
            }
        return data


_ATTRIBUTES = (
    "required",
    "default",
    "generate",
    "value",
    "enum",
    "timestamp",
    "ttl",
    "hidden",
    "unique",
    "crypt",
    "reference",
    "nulls",
    "map",
    "validate",
    "filter",
    "description",
)


def _strip_regex_delimiters(pattern: str) -> str:
    if len(pattern) > 1 and pattern.startswith("/") and pattern.endswith("/"):
        return pattern[1:-1]
    return pattern


# Populate type mapping from type names and Python types to Field classes
_TYPE_MAP.update(
    {
        "array": ArrayField,
        "boolean": BooleanField,
        "date": DateField,
        "number": NumberField,
        "object": ObjectField,
        "string": StringField,
        "set": SetField,
        "buffer": BufferField,
        "typed-array": TypedArrayField,
        list: ArrayField,
        bool: BooleanField,
        datetime: DateField,
        int: NumberField,
        float: NumberField,
        dict: ObjectField,
        str: StringField,
        set: SetField,
        bytes: BufferField,
        bytearray: BufferField,
    }
)


def get_field_class_for_type(field_type: Any) -> type[FieldBase] | None:
    """
    Get the Field class for a type name or Python type.

    Parameters
    ----------
    field_type : str or type
        One of the type names (``"string"``, ``"number"``, ...) or the
        matching Python type (``str``, ``int``, ...).

    Returns
    -------
    type[FieldBase] | None
        The corresponding Field class, or None if not found.
    """
    if isinstance(field_type, str):
        field_type = field_type.lower()
    try:
        return _TYPE_MAP.get(field_type)
    except TypeError:
        # Unhashable type specs never match
        return None


def Field(field_type: Any, /, **attrs: Any) -> FieldBase:  # noqa: N802
    """
    Declare a field descriptor.

    Parameters
    ----------
    field_type : str or type
        Field type name or Python type.
    **attrs
        Descriptor attributes (``required``, ``default``, ``generate``, ...).

    Returns
    -------
    FieldBase
        The typed descriptor.

    Raises
    ------
    SchemaConflictError
        If the type is unknown or an attribute is not valid for the type.

    Examples
    --------
        >>> from tableshape import Field, ModelSchema
        >>> User = ModelSchema("User", {
        ...     "id": Field("string", generate="uuid", required=True),
        ...     "email": Field(str, required=True),
        ...     "status": Field("string", enum=["active", "disabled"], default="active"),
        ... })
    """
    return _create_field(None, field_type, attrs)


def field_from_dict(name: str | None, spec: dict[str, Any]) -> FieldBase:
    """
    Build a field descriptor from a schema document entry.

    Parameters
    ----------
    name : str, optional
        Field name, used in error messages.
    spec : dict
        Entry such as ``{"type": "string", "required": True}``.
    """
    if isinstance(spec, FieldBase):
        return spec
    if not isinstance(spec, dict) or "type" not in spec:
        raise SchemaConflictError("field definition must include a 'type'", field=name)
    attrs = dict(spec)
    field_type = attrs.pop("type")
    # Deprecated alias kept by older schema documents
    if "uuid" in attrs:
        uuid_spec = attrs.pop("uuid")
        if uuid_spec and "generate" not in attrs:
            attrs["generate"] = "uuid" if uuid_spec is True else uuid_spec
    return _create_field(name, field_type, attrs)


def _create_field(
    name: str | None, field_type: Any, attrs: dict[str, Any]
) -> FieldBase:
    """
    Create a Field instance, rejecting attributes the field class does not take.

    Different Field subclasses accept different parameters (``items`` only
    for arrays, ``schema`` only for objects); the check inspects the class
    signature.
    """
    field_class = get_field_class_for_type(field_type)
    if field_class is None:
        supported = ", ".join(k for k in _TYPE_MAP if isinstance(k, str))
        raise SchemaConflictError(
            f"unsupported type {field_type!r}. Supported types: {supported}",
            field=name,
        )

    valid_params: set[str] = set()
    for klass in field_class.__mro__:
        if "__init__" in vars(klass):
            sig = inspect.signature(klass.__init__)
            valid_params.update(
                p.name
                for p in sig.parameters.values()
                if p.kind is inspect.Parameter.KEYWORD_ONLY
            )

    invalid = sorted(set(attrs) - valid_params)
    if invalid:
        raise SchemaConflictError(
            f"attribute(s) {', '.join(invalid)} not valid for "
            f"'{field_class.type_name}' fields",
            field=name,
        )

    field = field_class(**attrs)
    field.name = name
    return field
