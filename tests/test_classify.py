"""Tests for field classification."""

import pytest

from tableshape import Field, FieldSets, ModelSchema, classify


class TestClassify:
    """Test the six field sets."""

    def test_user_sets(self, user_schema):
        """Every set is computed in schema order."""
        sets = user_schema.classify()
        assert sets.required == ("id", "email", "role")
        assert sets.optional == (
            "pk",
            "sk",
            "name",
            "age",
            "active",
            "created",
            "updated",
        )
        assert sets.generated == ("id",)
        assert sets.defaulted == ("active", "role")
        assert sets.value_templated == ("pk", "sk")
        assert sets.timestamped == ("created", "updated")

    def test_computed(self, user_schema):
        """Computed fields are the union of the four computed sets."""
        assert user_schema.classify().computed == (
            "pk",
            "sk",
            "id",
            "active",
            "role",
            "created",
            "updated",
        )

    def test_membership(self, user_schema):
        """A field may belong to several independent sets."""
        sets = user_schema.classify()
        assert sets.membership("role") == {"required", "defaulted"}
        assert sets.membership("email") == {"required"}
        assert sets.membership("name") == {"optional"}
        with pytest.raises(KeyError):
            sets.membership("nope")

    @pytest.mark.parametrize(
        "fields",
        [
            {},
            {"a": Field("string")},
            {"a": Field("string", required=True), "b": Field("number")},
            {
                "a": Field("string", required=True, default="x"),
                "b": Field("string", generate=True, required=True),
                "c": Field("date", timestamp=True),
            },
        ],
    )
    def test_required_optional_partition(self, fields):
        """Required and optional are exhaustive and mutually exclusive."""
        sets = classify(ModelSchema("Thing", fields))
        assert set(sets.required) | set(sets.optional) == set(sets.fields)
        assert not set(sets.required) & set(sets.optional)

    def test_none_default_not_defaulted(self):
        """A None default is no default."""
        sets = classify(ModelSchema("Thing", {"a": {"type": "string", "default": None}}))
        assert sets.defaulted == ()

    def test_falsy_default_is_defaulted(self):
        """False is a concrete default."""
        sets = classify(
            ModelSchema("Thing", {"a": {"type": "boolean", "default": False}})
        )
        assert sets.defaulted == ("a",)

    def test_explicit_timestamp_flag(self):
        """timestamp=True marks any field as timestamped."""
        schema = ModelSchema(
            "Thing", {"seen": {"type": "number", "timestamp": True}}, {"timestamps": False}
        )
        assert schema.classify().timestamped == ("seen",)

    def test_pure(self, user_fields):
        """Classifying equal schemas gives equal results."""
        first = classify(ModelSchema("User", user_fields))
        second = classify(ModelSchema("User", user_fields))
        assert isinstance(first, FieldSets)
        assert first == second

    def test_memoized(self, user_schema):
        """The schema classifies itself once."""
        assert user_schema.classify() is user_schema.classify()
