"""
Schema Deriver - Column metadata to Parquet schema

Builds the output schema of a table at run time from its column metadata.
Field order follows column ordinal order; the row encoder and the artifact
writer both bind values to fields by position.

Type mapping (declared type, case-insensitive, size suffix ignored):
- integer, int       -> int64
- real, numeric      -> float64
- boolean            -> bool
- empty, *blob*, *binary* -> bytes
- anything else      -> utf8
"""

import logging
import re
from collections.abc import Sequence
from typing import Optional

from ..domain.enums import ExportState, PhysicalType
from ..domain.models import ColumnDescriptor, OutputField
from ..types import SchemaError

logger = logging.getLogger(__name__)

INTEGER_TYPES = frozenset({"integer", "int"})
FLOAT_TYPES = frozenset({"real", "numeric"})
BOOL_TYPES = frozenset({"boolean"})
BINARY_MARKERS = ("blob", "binary")

# Signed SQLite numeric literal: decimal, with optional fraction and exponent, or hex
_SIZE_ARG = r"[+-]?(?:0[xX][0-9A-Fa-f]+|(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)"

# A type name made of words, optionally followed by one or two size arguments
_DECLARED_TYPE_RE = re.compile(
    rf"^(?P<base>[A-Za-z][A-Za-z0-9_ ]*?)\s*(\(\s*{_SIZE_ARG}\s*(,\s*{_SIZE_ARG}\s*)?\))?$"
)


def to_field_name(column_name: str) -> str:
    """
    Render a column name as an identifier-style field name.

    Each underscore separated segment is capitalized and the segments are
    concatenated; a single segment keeps its casing apart from the first
    letter. Names that do not start with a letter are prefixed with "X".

    Examples:
        a_id -> AId, user_NAME -> UserName, createdAt -> CreatedAt, 2fa -> X2fa
    """
    parts = column_name.split("_")
    if len(parts) == 1:
        field_name = column_name[:1].upper() + column_name[1:]
    else:
        field_name = "".join(part[:1].upper() + part[1:] for part in (p.lower() for p in parts))

    if not field_name or not field_name[0].isalpha():
        field_name = "X" + field_name
    return field_name


def map_declared_type(declared_type: str) -> PhysicalType:
    """
    Map a declared SQL type to a physical type.

    Raises:
        ValueError: If the declared type is not a well-formed type token
    """
    declared = declared_type.strip()
    if not declared:
        return PhysicalType.BYTES

    match = _DECLARED_TYPE_RE.match(declared)
    if match is None:
        raise ValueError(f"unrecognized declared type '{declared_type}'")

    base = " ".join(match.group("base").lower().split())
    if base in INTEGER_TYPES:
        return PhysicalType.INT64
    if base in FLOAT_TYPES:
        return PhysicalType.FLOAT64
    if base in BOOL_TYPES:
        return PhysicalType.BOOL
    if any(marker in base for marker in BINARY_MARKERS):
        return PhysicalType.BYTES
    return PhysicalType.UTF8


class SchemaDeriver:
    """
    Derives the ordered OutputField list for a table.

    Args:
        overrides: Optional {table: {column: PhysicalType}} map that replaces
            the default mapping for specific columns
    """

    def __init__(self, overrides: Optional[dict[str, dict[str, PhysicalType]]] = None):
        self.overrides = overrides or {}

    def derive(self, table: str, columns: Sequence[ColumnDescriptor]) -> list[OutputField]:
        """
        Derive the output schema for one table.

        Args:
            table: Table name, used for overrides and error context
            columns: Column metadata as returned by the database

        Returns:
            OutputField list in column ordinal order

        Raises:
            SchemaError: On unmappable types, empty names, non-dense ordinals
                or field name collisions
        """
        ordered = sorted(columns, key=lambda c: c.ordinal)
        if [c.ordinal for c in ordered] != list(range(len(ordered))):
            raise SchemaError(
                f"column ordinals are not dense: {[c.ordinal for c in ordered]}",
                table, ExportState.COLUMNS_FETCHED
            )

        table_overrides = self.overrides.get(table, {})
        fields: list[OutputField] = []
        seen: dict[str, str] = {}

        for column in ordered:
            if not column.name:
                raise SchemaError(
                    f"column at ordinal {column.ordinal} has no name", table, ExportState.COLUMNS_FETCHED
                )

            if column.name in table_overrides:
                physical_type = table_overrides[column.name]
                logger.debug(f"{table}.{column.name}: type override -> {physical_type.value}")
            else:
                try:
                    physical_type = map_declared_type(column.declared_type)
                except ValueError as e:
                    raise SchemaError(f"column '{column.name}': {e}", table, ExportState.COLUMNS_FETCHED)

            field_name = to_field_name(column.name)
            if field_name in seen:
                raise SchemaError(
                    f"columns '{seen[field_name]}' and '{column.name}' both map to field '{field_name}'",
                    table, ExportState.COLUMNS_FETCHED
                )
            seen[field_name] = column.name

            fields.append(OutputField(
                name=field_name,
                physical_type=physical_type,
                optional=column.nullable,
                source_column=column.name,
            ))

        logger.debug(
            f"Derived schema for {table}: "
            + ", ".join(f"{f.name}:{f.physical_type.value}{'?' if f.optional else ''}" for f in fields)
        )
        return fields
