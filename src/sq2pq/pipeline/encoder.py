"""
Row Encoder - Raw SQLite values to typed Parquet values

Converts one row at a time from the loosely typed values SQLite returns into
the physical types of the derived schema. NULL detection runs before any
coercion: a cell is NULL when the driver returns no value, whatever its
declared type.
"""

import math
import re
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import Any

from ..domain.enums import PhysicalType
from ..domain.models import OutputField
from ..types import CoercionError, DataIntegrityError

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")

TRUE_TOKENS = frozenset({"1", "true", "t", "yes", "y"})
FALSE_TOKENS = frozenset({"0", "false", "f", "no", "n"})

# One encoded row, values in OutputField order
EncodedRecord = tuple


class _Rejected(Exception):
    """Internal signal that a single cell failed coercion."""
    pass


def _as_text(value: Any) -> str:
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError:
            raise _Rejected("bytes are not valid UTF-8")
    return str(value)


def _to_int64(value: Any) -> int:
    if isinstance(value, float):
        if not value.is_integer():
            raise _Rejected("not an integer")
        value = int(value)
    elif not isinstance(value, int):
        text = _as_text(value)
        if not _INTEGER_RE.fullmatch(text):
            raise _Rejected("not a base-10 integer")
        value = int(text, 10)
    if not INT64_MIN <= value <= INT64_MAX:
        raise _Rejected("out of int64 range")
    return value


def _to_float64(value: Any) -> float:
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(_as_text(value))
    except ValueError:
        raise _Rejected("not a floating point number")


def _to_utf8(value: Any) -> str:
    if isinstance(value, str):
        return value
    return _as_text(value)


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, bytes):
        return value
    return str(value).encode("utf-8")


def _to_bool(value: Any) -> bool:
    if isinstance(value, (int, float)):
        if value in (0, 1):
            return bool(value)
        raise _Rejected("not a boolean")
    token = _as_text(value).strip().lower()
    if token in TRUE_TOKENS:
        return True
    if token in FALSE_TOKENS:
        return False
    raise _Rejected("not a boolean")


def _to_timestamp(value: Any) -> datetime:
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            raise _Rejected("not a finite unix timestamp")
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            raise _Rejected("unix timestamp out of range")

    text = _as_text(value).strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise _Rejected("not an ISO-8601 timestamp")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


COERCERS: dict[PhysicalType, Callable[[Any], Any]] = {
    PhysicalType.INT64: _to_int64,
    PhysicalType.FLOAT64: _to_float64,
    PhysicalType.UTF8: _to_utf8,
    PhysicalType.BYTES: _to_bytes,
    PhysicalType.BOOL: _to_bool,
    PhysicalType.TIMESTAMP: _to_timestamp,
}


class RowEncoder:
    """
    Encodes rows of one table against its derived schema.

    The encoder holds no row state; each call handles exactly one row.

    Args:
        table: Table name, for error context
        fields: Derived OutputField list, in column ordinal order
    """

    def __init__(self, table: str, fields: Sequence[OutputField]):
        self.table = table
        self.fields = list(fields)
        self._coercers = [COERCERS[f.physical_type] for f in self.fields]

    def encode(self, values: Sequence[Any], row: int) -> EncodedRecord:
        """
        Encode one row.

        Args:
            values: Raw cell values in column ordinal order
            row: Zero-based row ordinal, for error context

        Returns:
            Values in field order, None for NULL cells

        Raises:
            DataIntegrityError: NULL in a required field
            CoercionError: A cell cannot be converted to its field type
        """
        if len(values) != len(self.fields):
            raise DataIntegrityError(
                f"row has {len(values)} values, schema has {len(self.fields)} fields",
                self.table, row=row
            )

        encoded = []
        for field, coerce, value in zip(self.fields, self._coercers, values):
            if value is None:
                if not field.optional:
                    raise DataIntegrityError(
                        f"NULL in required column '{field.source_column}' at row {row}",
                        self.table, column=field.source_column, row=row
                    )
                encoded.append(None)
                continue

            try:
                encoded.append(coerce(value))
            except _Rejected as e:
                raise CoercionError(
                    f"cannot convert to {field.physical_type.value}: {e}",
                    self.table, column=field.source_column, row=row, value=value
                )
        return tuple(encoded)
