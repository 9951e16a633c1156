"""Tests for field descriptors."""

import re
import typing
from datetime import datetime

import polars as pl
import pytest
from pydantic import TypeAdapter, ValidationError

from tableshape import Field, SchemaConflictError, field_from_dict
from tableshape.fields import (
    _MISSING,
    ArrayField,
    BooleanField,
    BufferField,
    DateField,
    NumberField,
    ObjectField,
    SetField,
    StringField,
    TypedArrayField,
    get_field_class_for_type,
)


class TestFieldTypes:
    """Test field type information."""

    def test_string_type_definitions(self):
        """String fields map to str and Utf8 and support every operator family."""
        field = StringField()
        assert field.get_python_type() is str
        assert field.get_polars_dtype() == pl.Utf8
        assert field.orderable
        assert field.prefixable

    def test_number_type_definitions(self):
        """Number fields accept ints and floats."""
        field = NumberField()
        adapter = TypeAdapter(field.get_python_type())
        assert adapter.validate_python(3) == 3
        assert isinstance(adapter.validate_python(3), int)
        assert adapter.validate_python(2.5) == 2.5
        assert field.get_polars_dtype() == pl.Float64
        assert field.orderable
        assert not field.prefixable

    def test_boolean_type_definitions(self):
        """Boolean fields are neither orderable nor prefixable."""
        field = BooleanField()
        assert TypeAdapter(field.get_python_type()).validate_python(False) is False
        assert field.get_polars_dtype() == pl.Boolean
        assert not field.orderable
        assert not field.prefixable

    def test_date_type_definitions(self):
        """Date fields map to datetime."""
        field = DateField()
        assert field.get_python_type() is datetime
        assert field.get_polars_dtype() == pl.Datetime
        assert field.orderable

    def test_buffer_and_set_types(self):
        """Buffer and set fields have Python types; sets have no fixed dtype."""
        assert BufferField().get_python_type() is bytes
        assert BufferField().get_polars_dtype() == pl.Binary
        assert SetField().get_polars_dtype() is None

    def test_array_items(self):
        """Array element descriptors narrow the list type."""
        field = ArrayField(items={"type": "string"})
        assert isinstance(field.items, StringField)
        assert field.get_python_type() == list[str]
        assert field.get_polars_dtype() == pl.List(pl.Utf8)

    def test_untyped_array(self):
        """Arrays without items hold anything."""
        field = ArrayField()
        assert field.get_python_type() == list[typing.Any]
        assert field.get_polars_dtype() is None

    def test_enum_narrows_type(self):
        """An enum resolves to a Literal of its values."""
        field = StringField(enum=["a", "b"])
        resolved = field.get_resolved_type()
        assert typing.get_origin(resolved) is typing.Literal
        assert typing.get_args(resolved) == ("a", "b")

    def test_object_schema(self):
        """Nested schema entries become descriptors."""
        field = ObjectField(schema={"street": {"type": "string", "required": True}})
        assert isinstance(field.schema["street"], StringField)
        assert field.schema["street"].required


class TestNoCoercion:
    """Scalar values are taken as given, never converted."""

    @pytest.mark.parametrize("value", [True, "18", b"1"])
    def test_number_rejects(self, value):
        """Booleans and numeric strings are not numbers."""
        with pytest.raises(ValidationError):
            TypeAdapter(NumberField().get_python_type()).validate_python(value)

    @pytest.mark.parametrize("value", [1, "true", "yes"])
    def test_boolean_rejects(self, value):
        """Only True and False are booleans."""
        with pytest.raises(ValidationError):
            TypeAdapter(BooleanField().get_python_type()).validate_python(value)


class TestFieldFactory:
    """Test the Field() factory and field_from_dict()."""

    @pytest.mark.parametrize(
        "field_type,expected",
        [
            ("string", StringField),
            (str, StringField),
            ("Number", NumberField),
            (int, NumberField),
            (float, NumberField),
            ("boolean", BooleanField),
            (datetime, DateField),
            ("typed-array", TypedArrayField),
            (list, ArrayField),
            (dict, ObjectField),
            (bytes, BufferField),
        ],
    )
    def test_type_lookup(self, field_type, expected):
        """Type names and Python types resolve to field classes."""
        assert get_field_class_for_type(field_type) is expected
        assert isinstance(Field(field_type), expected)

    def test_unknown_type(self):
        """Unknown types are schema conflicts."""
        assert get_field_class_for_type("widget") is None
        with pytest.raises(SchemaConflictError, match="unsupported type"):
            Field("widget")

    def test_unhashable_type(self):
        """Unhashable type specs never match."""
        assert get_field_class_for_type(["string"]) is None

    def test_missing_type(self):
        """Document entries must name a type."""
        with pytest.raises(SchemaConflictError, match="type") as exc_info:
            field_from_dict("email", {"required": True})
        assert exc_info.value.field == "email"

    def test_invalid_attribute_for_type(self):
        """Attributes of other field types are rejected."""
        with pytest.raises(SchemaConflictError, match="items"):
            field_from_dict("name", {"type": "string", "items": {"type": "string"}})
        with pytest.raises(SchemaConflictError, match="bogus"):
            Field("number", bogus=1)

    def test_attributes_preserved(self):
        """Metadata attributes are kept on the descriptor."""
        field = Field(
            "string", hidden=True, unique=True, map="e", reference="Account:id"
        )
        assert field.hidden
        assert field.unique
        assert field.map == "e"
        assert field.reference == "Account:id"

    def test_generate_false_is_not_generated(self):
        """generate=False is the same as no generator."""
        assert Field("string", generate=False).generate is None

    def test_deprecated_uuid_alias(self):
        """The old uuid attribute maps onto generate."""
        field = field_from_dict("id", {"type": "string", "uuid": True})
        assert field.generate == "uuid"

    def test_to_dict_round_trip(self):
        """Descriptors convert back to document entries."""
        spec = {
            "type": "array",
            "required": True,
            "items": {"type": "string", "enum": ["x", "y"]},
        }
        assert field_from_dict("tags", spec).to_dict() == spec


class TestFieldDefaults:
    """Test default handling."""

    def test_no_default(self):
        """Fields without a default report none."""
        field = StringField()
        assert field.default is _MISSING
        assert not field.has_default

    def test_none_default_is_no_default(self):
        """A None default does not count as a default."""
        assert not StringField(default=None).has_default

    def test_callable_default(self):
        """Callable defaults are factories."""
        field = NumberField(default=lambda: 42)
        assert field.has_default
        assert field.get_default() == 42

    def test_falsy_default(self):
        """False and 0 are real defaults."""
        assert BooleanField(default=False).has_default
        assert NumberField(default=0).get_default() == 0


class TestPydanticKwargs:
    """Test Pydantic Field kwargs."""

    def test_validate_pattern(self):
        """A slash-delimited regex becomes a pattern constraint."""
        field = StringField(validate="/^[a-z]+$/")
        assert field.get_pydantic_field_kwargs()["pattern"] == "^[a-z]+$"

    def test_compiled_pattern(self):
        """Compiled patterns are accepted."""
        field = StringField(validate=re.compile(r"\d+"))
        assert field.get_pydantic_field_kwargs()["pattern"] == r"\d+"

    def test_description(self):
        """Descriptions pass through."""
        field = NumberField(description="Age in years")
        assert field.get_pydantic_field_kwargs() == {"description": "Age in years"}
