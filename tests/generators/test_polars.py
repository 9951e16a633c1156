"""Tests for Polars helpers."""

import polars as pl
import pytest

from tableshape import ProjectionViolation
from tableshape.generators import filter_frame, polars_schema, validate_frame


@pytest.fixture
def users_df():
    return pl.DataFrame(
        {
            "id": ["1", "2", "3"],
            "email": ["a@x.com", None, "c@x.com"],
            "role": ["member", "admin", "member"],
            "age": [20, 30, 40],
        }
    )


class TestPolarsSchema:
    """Test dtype mapping."""

    def test_dtypes(self, user_schema):
        """Every field with a fixed dtype is mapped, in schema order."""
        dtypes = polars_schema(user_schema)
        assert list(dtypes) == list(user_schema)
        assert dtypes["email"] == pl.Utf8
        assert dtypes["age"] == pl.Float64
        assert dtypes["active"] == pl.Boolean
        assert dtypes["created"] == pl.Datetime

    def test_untyped_fields_skipped(self, order_schema):
        """Object fields have no fixed dtype."""
        assert "address" not in polars_schema(order_schema)


class TestValidateFrame:
    """Test checking DataFrames against the entity shape."""

    def test_strict_nulls(self, user_schema, users_df):
        """Nulls in required columns raise."""
        with pytest.raises(ProjectionViolation) as exc_info:
            validate_frame(users_df, user_schema)
        assert exc_info.value.fields == ["email"]

    def test_non_strict_drops_rows(self, user_schema, users_df):
        """Non-strict validation drops offending rows."""
        df = validate_frame(users_df, user_schema, strict=False)
        assert df["id"].to_list() == ["1", "3"]

    def test_cast(self, user_schema, users_df):
        """Columns are cast to the schema's dtypes."""
        df = validate_frame(users_df.drop_nulls(), user_schema)
        assert df["age"].dtype == pl.Float64

    def test_missing_required_column(self, user_schema, users_df):
        """Required columns must exist."""
        with pytest.raises(ProjectionViolation) as exc_info:
            validate_frame(users_df.drop("role"), user_schema)
        assert exc_info.value.fields == ["role"]

    def test_unknown_column(self, user_schema, users_df):
        """Columns must be schema fields."""
        with pytest.raises(ProjectionViolation) as exc_info:
            validate_frame(users_df.with_columns(pl.lit(1).alias("x")), user_schema)
        assert exc_info.value.fields == ["x"]


class TestFilterFrame:
    """Test find filters over DataFrames."""

    def test_filter(self, user_schema, users_df):
        """Matching rows are kept."""
        where = user_schema.build_filter({"age": {">=": 30}, "role": "member"})
        assert filter_frame(users_df, where)["id"].to_list() == ["3"]

    def test_missing_column(self, user_schema, users_df):
        """A condition on a missing column matches nothing."""
        where = user_schema.build_filter({"name": "Alice"})
        assert filter_frame(users_df, where).height == 0

    def test_missing_column_not_equal(self, user_schema, users_df):
        """<> holds for a missing column."""
        where = user_schema.build_filter({"name": {"<>": "Alice"}})
        assert filter_frame(users_df, where).height == 3
