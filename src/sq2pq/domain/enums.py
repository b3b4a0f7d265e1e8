"""
Pipeline Enumerations

Core enums for type safety and clear interface definitions across the pipeline.
"""

from enum import Enum


class PhysicalType(str, Enum):
    """Physical column types of the Parquet artifact."""
    INT64 = "int64"         # Signed 64-bit integers
    FLOAT64 = "float64"     # IEEE-754 doubles
    UTF8 = "utf8"           # UTF-8 text
    BYTES = "bytes"         # Raw binary
    BOOL = "bool"           # Booleans
    TIMESTAMP = "timestamp" # Microsecond timestamps (override only)


class ExportState(str, Enum):
    """Stages of a single table export."""
    IDLE = "idle"
    COLUMNS_FETCHED = "columns_fetched"
    SCHEMA_DERIVED = "schema_derived"
    WRITING = "writing"
    FINALIZED = "finalized"
    DELIVERED = "delivered"  # Terminal success
    EMPTY = "empty"          # Terminal no-op, table had no rows
    FAILED = "failed"        # Terminal failure


class ExportMode(str, Enum):
    """Orchestration modes for a database export."""
    SEQUENTIAL = "sequential" # One table after another on the calling thread
    POOL = "pool"             # Bounded worker pool


class HttpMethod(str, Enum):
    """HTTP methods accepted by the upload endpoint."""
    POST = "POST"
    PUT = "PUT"


class Compression(str, Enum):
    """Parquet compression codecs."""
    SNAPPY = "snappy"
    ZSTD = "zstd"
    GZIP = "gzip"
    LZ4 = "lz4"
    NONE = "none"
