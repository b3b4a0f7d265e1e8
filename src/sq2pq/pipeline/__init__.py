"""
sq2pq Pipeline Components

This module provides the export pipeline following the
Columns -> Schema -> Encode/Write -> Deliver pattern.

Components:
- schema: SchemaDeriver mapping column metadata to Parquet fields
- encoder: RowEncoder converting raw SQLite values to typed values
- writer: ParquetArtifactWriter streaming records into one file per table
- sink: NoopSink and BasinSink delivering finished artifacts
- pool: WorkerPool running table exports with bounded parallelism
- exporter: TableExporter and DatabaseExporter orchestration
"""

from .encoder import RowEncoder
from .exporter import DatabaseExporter, TableExporter
from .pool import WorkerPool
from .schema import SchemaDeriver, to_field_name
from .sink import BasinSink, NoopSink, Sink
from .writer import ParquetArtifactWriter

__all__ = [
    "SchemaDeriver", "to_field_name", "RowEncoder", "ParquetArtifactWriter",
    "Sink", "NoopSink", "BasinSink", "WorkerPool", "TableExporter", "DatabaseExporter"
]
