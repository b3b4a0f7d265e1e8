"""
Domain Models and Types

Core domain models and enumerations used throughout the export pipeline.

Models:
- ColumnDescriptor: Column metadata read from the source database
- OutputField: One field of the derived Parquet schema

Enums:
- PhysicalType: Parquet column types (int64, float64, utf8, bytes, bool, timestamp)
- ExportState: Table export stages
- ExportMode: Sequential or pooled orchestration
- HttpMethod: Upload request method
- Compression: Parquet compression codecs
"""

from .enums import Compression, ExportMode, ExportState, HttpMethod, PhysicalType
from .models import ColumnDescriptor, OutputField

__all__ = [
    "ColumnDescriptor", "OutputField",
    "PhysicalType", "ExportState", "ExportMode", "HttpMethod", "Compression"
]
