"""Tests for schema derivation and field naming."""

import pytest

from sq2pq.domain.enums import PhysicalType
from sq2pq.domain.models import ColumnDescriptor
from sq2pq.pipeline.schema import SchemaDeriver, map_declared_type, to_field_name
from sq2pq.types import SchemaError


def column(ordinal, name, declared_type="TEXT", nullable=True):
    return ColumnDescriptor(ordinal=ordinal, name=name, declared_type=declared_type, nullable=nullable)


class TestFieldNames:
    """Tests for to_field_name."""

    @pytest.mark.parametrize("name, expected", [
        ("a_id", "AId"),
        ("b", "B"),
        ("user_NAME", "UserName"),
        ("createdAt", "CreatedAt"),
        ("created_at_utc", "CreatedAtUtc"),
        ("2fa", "X2fa"),
        ("_private", "Private"),
        ("__", "X"),
        ("é_t", "ÉT"),
    ])
    def test_transform(self, name, expected):
        assert to_field_name(name) == expected

    def test_is_pure(self):
        assert to_field_name("a_id") == to_field_name("a_id")


class TestTypeMapping:
    """Tests for the declared type policy."""

    @pytest.mark.parametrize("declared, expected", [
        ("INT", PhysicalType.INT64),
        ("integer", PhysicalType.INT64),
        ("Int(11)", PhysicalType.INT64),
        ("REAL", PhysicalType.FLOAT64),
        ("numeric", PhysicalType.FLOAT64),
        ("NUMERIC(10, 2)", PhysicalType.FLOAT64),
        ("BOOLEAN", PhysicalType.BOOL),
        ("TEXT", PhysicalType.UTF8),
        ("VARCHAR(255)", PhysicalType.UTF8),
        ("BIGINT", PhysicalType.UTF8),
        ("DATETIME", PhysicalType.UTF8),
        ("BLOB", PhysicalType.BYTES),
        ("varbinary(16)", PhysicalType.BYTES),
        ("DECIMAL(10.5)", PhysicalType.UTF8),
        ("VARCHAR(0x10)", PhysicalType.UTF8),
        ("NUMERIC(1e3, -2)", PhysicalType.FLOAT64),
        ("INT(+.5)", PhysicalType.INT64),
        ("", PhysicalType.BYTES),
    ])
    def test_policy(self, declared, expected):
        assert map_declared_type(declared) == expected

    @pytest.mark.parametrize("declared", ["INT;DROP", "(10)", "TEXT(", "1NT", "INT(0x)", "REAL(1e)"])
    def test_malformed_type_rejected(self, declared):
        with pytest.raises(ValueError):
            map_declared_type(declared)


class TestSchemaDeriver:
    """Tests for SchemaDeriver.derive."""

    def test_order_and_optionality(self):
        columns = [
            column(2, "c", "BLOB"),
            column(0, "a_id", "INT", nullable=False),
            column(1, "b", "TEXT"),
        ]
        fields = SchemaDeriver().derive("test", columns)

        assert [f.name for f in fields] == ["AId", "B", "C"]
        assert [f.physical_type for f in fields] == [PhysicalType.INT64, PhysicalType.UTF8, PhysicalType.BYTES]
        assert [f.optional for f in fields] == [False, True, True]
        assert [f.source_column for f in fields] == ["a_id", "b", "c"]

    def test_unmappable_type_raises_schema_error(self):
        with pytest.raises(SchemaError) as exc_info:
            SchemaDeriver().derive("t", [column(0, "x", "INT;DROP")])
        assert exc_info.value.table == "t"
        assert "x" in str(exc_info.value)

    def test_field_name_collision(self):
        with pytest.raises(SchemaError, match="both map to field 'AB'"):
            SchemaDeriver().derive("t", [column(0, "a_b"), column(1, "AB")])

    def test_non_dense_ordinals(self):
        with pytest.raises(SchemaError, match="not dense"):
            SchemaDeriver().derive("t", [column(0, "a"), column(2, "b")])

    def test_empty_column_name(self):
        with pytest.raises(SchemaError, match="no name"):
            SchemaDeriver().derive("t", [column(0, "")])

    def test_override(self):
        deriver = SchemaDeriver({"events": {"created": PhysicalType.TIMESTAMP}})
        fields = deriver.derive("events", [column(0, "created", "TEXT"), column(1, "note", "TEXT")])
        assert fields[0].physical_type == PhysicalType.TIMESTAMP
        assert fields[1].physical_type == PhysicalType.UTF8

    def test_override_only_applies_to_its_table(self):
        deriver = SchemaDeriver({"events": {"created": PhysicalType.TIMESTAMP}})
        fields = deriver.derive("other", [column(0, "created", "TEXT")])
        assert fields[0].physical_type == PhysicalType.UTF8
