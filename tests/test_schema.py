"""Tests for ModelSchema construction and schema conflicts."""

from datetime import datetime

import pytest
from pydantic import ValidationError

from tableshape import Field, ModelSchema, SchemaConflictError, SchemaParams
from tableshape.fields import DateField, NumberField


class TestModelSchema:
    """Test the schema mapping."""

    def test_field_order(self, user_schema):
        """Fields keep declaration order; timestamps are appended."""
        assert list(user_schema) == [
            "pk",
            "sk",
            "id",
            "email",
            "name",
            "age",
            "active",
            "role",
            "created",
            "updated",
        ]

    def test_descriptors_named(self, user_schema):
        """Each descriptor carries its field name."""
        assert all(field.name == name for name, field in user_schema.items())

    def test_timestamp_fields_added(self, user_schema):
        """Created/updated timestamps are date fields flagged as timestamps."""
        assert isinstance(user_schema["created"], DateField)
        assert user_schema["updated"].timestamp

    def test_declared_timestamp_kept(self):
        """A declared timestamp attribute is not replaced."""
        schema = ModelSchema("Event", {"updated": {"type": "number"}})
        assert isinstance(schema["updated"], NumberField)
        assert list(schema) == ["updated", "created"]

    @pytest.mark.parametrize(
        "timestamps,expected",
        [(False, []), ("create", ["created"]), ("update", ["updated"])],
    )
    def test_timestamps_param(self, timestamps, expected):
        """The timestamps param controls which attributes are added."""
        schema = ModelSchema("Event", {"id": Field(str)}, {"timestamps": timestamps})
        assert list(schema) == ["id", *expected]

    def test_params_object(self):
        """Params may be passed as a SchemaParams instance."""
        params = SchemaParams(created_field="createdAt", timestamps="create")
        schema = ModelSchema("Event", {"id": Field(str)}, params)
        assert schema.params is params
        assert list(schema) == ["id", "createdAt"]

    def test_invalid_params(self):
        """Unknown params are rejected."""
        with pytest.raises(ValidationError):
            ModelSchema("Event", {}, {"bogus": True})

    def test_descriptors_shared_between_schemas(self):
        """A descriptor reused under another name is copied, not renamed."""
        email = Field("string", required=True)
        first = ModelSchema("A", {"email": email})
        second = ModelSchema("B", {"contact": email})
        assert first["email"].name == "email"
        assert second["contact"].name == "contact"

    def test_fields_returns_copy(self, user_schema):
        """fields() cannot mutate the schema."""
        fields = user_schema.fields()
        fields.pop("email")
        assert "email" in user_schema

    def test_nested_schema(self, order_schema):
        """Object fields with a schema get a nested schema without timestamps."""
        address = order_schema.nested("address")
        assert address.name == "Order.address"
        assert list(address) == ["street", "zip"]
        assert address.classify().required == ("street",)

    def test_nested_unknown(self, order_schema):
        """Only object fields with a schema are nested."""
        with pytest.raises(KeyError):
            order_schema.nested("id")

    def test_to_dict(self):
        """Schemas convert back to document entries."""
        schema = ModelSchema(
            "Event",
            {"id": {"type": "string", "required": True}},
            {"timestamps": False},
        )
        assert schema.to_dict() == {"id": {"type": "string", "required": True}}

    def test_shapes_cached(self, user_schema):
        """Shapes and generated models are built once."""
        assert user_schema.shape("create") is user_schema.create_shape()
        assert user_schema.to_pydantic("create") is user_schema.to_pydantic("create")


class TestSchemaConflicts:
    """Contradictory definitions fail when the schema is built."""

    @pytest.mark.parametrize(
        "spec,message",
        [
            ({"type": "string", "required": True, "nulls": True}, "nulls"),
            ({"type": "string", "generate": "ulid"}, "generate"),
            ({"type": "number", "generate": "uuid"}, "generated values"),
            ({"type": "boolean", "timestamp": True}, "timestamp"),
            ({"type": "typed-array"}, "items"),
            ({"type": "string", "value": "${missing}"}, "missing"),
            ({"type": "string", "value": 5}, "template"),
            ({"type": "string", "enum": []}, "enum"),
            ({"type": "boolean", "enum": [True]}, "enum"),
            ({"type": "number", "enum": ["one"]}, "enum"),
            ({"type": "string", "enum": ["a"], "default": "b"}, "default"),
            ({"type": "number", "default": "many"}, "default"),
            (
                {"type": "array", "items": {"type": "string", "required": True}},
                "items",
            ),
            ({"type": "string", "schema": {}}, "schema"),
            ({"type": "widget"}, "unsupported"),
        ],
    )
    def test_conflict(self, spec, message):
        """Each conflict names the model and field."""
        with pytest.raises(SchemaConflictError, match=message) as exc_info:
            ModelSchema("Bad", {"f": spec})
        assert exc_info.value.model == "Bad"
        assert exc_info.value.field == "f"
        assert str(exc_info.value).startswith("Bad.f: ")

    def test_timestamp_attribute_type(self):
        """The created attribute must hold a time value."""
        with pytest.raises(SchemaConflictError) as exc_info:
            ModelSchema("Bad", {"created": {"type": "boolean"}})
        assert exc_info.value.field == "created"

    def test_timestamp_attribute_unchecked_when_disabled(self):
        """With timestamps off, 'created' is an ordinary field name."""
        schema = ModelSchema(
            "Flag", {"created": {"type": "boolean"}}, {"timestamps": False}
        )
        assert schema.classify().timestamped == ()

    def test_required_and_generated_allowed(self):
        """Required generated fields are valid."""
        schema = ModelSchema(
            "Thing", {"id": {"type": "string", "generate": "uid(8)", "required": True}}
        )
        assert schema.classify().generated == ("id",)

    def test_date_default_from_document(self):
        """ISO date defaults from JSON or YAML documents are accepted."""
        schema = ModelSchema(
            "Thing", {"start": {"type": "date", "default": "2024-01-01T00:00:00"}}
        )
        assert schema.classify().defaulted == ("start",)

    def test_callable_default_not_checked(self):
        """Factories are only called at create time."""
        schema = ModelSchema("Thing", {"start": Field(datetime, default=datetime.now)})
        assert schema.classify().defaulted == ("start",)
