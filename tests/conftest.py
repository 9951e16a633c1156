"""Shared fixtures for tableshape tests."""

import copy

import pytest

from tableshape import MemoryStore, Model, ModelSchema

USER_FIELDS = {
    "pk": {"type": "string", "value": "user#${id}", "hidden": True},
    "sk": {"type": "string", "value": "user#", "hidden": True},
    "id": {"type": "string", "generate": "uuid", "required": True},
    "email": {"type": "string", "required": True},
    "name": {"type": "string"},
    "age": {"type": "number"},
    "active": {"type": "boolean", "default": True},
    "role": {
        "type": "string",
        "enum": ["admin", "member"],
        "default": "member",
        "required": True,
    },
}


@pytest.fixture
def user_fields():
    """Schema document entry for the User model."""
    return copy.deepcopy(USER_FIELDS)


@pytest.fixture
def user_schema(user_fields):
    """User model schema with keys, generated id, defaults and timestamps."""
    return ModelSchema("User", user_fields)


@pytest.fixture
def order_schema():
    """Schema with a nested object field."""
    return ModelSchema(
        "Order",
        {
            "id": {"type": "string", "required": True},
            "address": {
                "type": "object",
                "schema": {
                    "street": {"type": "string", "required": True},
                    "zip": {"type": "string"},
                },
            },
        },
    )


@pytest.fixture
def document(user_fields):
    """Schema document holding the User model."""
    return {
        "version": "0.0.1",
        "indexes": {"primary": {"hash": "pk", "sort": "sk"}},
        "models": {"User": user_fields},
    }


@pytest.fixture
def store():
    """Empty in-memory table."""
    return MemoryStore()


@pytest.fixture
def users(user_schema, store):
    """Model API for User backed by the in-memory store."""
    return Model(user_schema, store)
