"""
Artifact Writer - Parquet output for one table

Writes encoded records into a Parquet file whose schema is built from the
derived OutputField list. Records are appended in source order and flushed
as row groups; the file is written under a temporary name and renamed into
place only when it is complete, so a reader never sees a partial artifact.
"""

import json
import logging
import os
from collections.abc import Sequence
from pathlib import Path
from typing import Optional

import pyarrow as pa
import pyarrow.parquet as pq

from ..domain.enums import ExportState, PhysicalType
from ..domain.models import ColumnDescriptor, OutputField
from ..types import ArtifactIOError
from .encoder import EncodedRecord

logger = logging.getLogger(__name__)

ARTIFACT_EXTENSION = "parquet"
TEMP_SUFFIX = ".tmp"

ARROW_TYPES: dict[PhysicalType, pa.DataType] = {
    PhysicalType.INT64: pa.int64(),
    PhysicalType.FLOAT64: pa.float64(),
    PhysicalType.UTF8: pa.string(),
    PhysicalType.BYTES: pa.binary(),
    PhysicalType.BOOL: pa.bool_(),
    PhysicalType.TIMESTAMP: pa.timestamp("us", tz="UTC"),
}


def artifact_path(output_dir: Path, table: str) -> Path:
    """
    Return the artifact path for a table: <output_dir>/<table>.parquet

    Raises:
        ArtifactIOError: If the table name would place the file anywhere but
            directly inside output_dir (path separators, "..")
    """
    filename = f"{table}.{ARTIFACT_EXTENSION}"
    path = Path(output_dir) / filename
    if path.name != filename or path.resolve().parent != Path(output_dir).resolve():
        raise ArtifactIOError(
            f"table name cannot be used as a file name in {output_dir}", table, ExportState.SCHEMA_DERIVED
        )
    return path


def arrow_schema(
    fields: Sequence[OutputField],
    table: Optional[str] = None,
    columns: Optional[Sequence[ColumnDescriptor]] = None
) -> pa.Schema:
    """
    Build the Arrow schema for a derived field list.

    Source table and column descriptions are embedded as schema metadata.
    No timestamps are added, so unchanged tables produce identical schemas.
    """
    metadata = {}
    if table is not None:
        metadata["sq2pq.table"] = table
    if columns is not None:
        metadata["sq2pq.columns"] = json.dumps([
            {"name": c.name, "declared_type": c.declared_type, "nullable": c.nullable}
            for c in sorted(columns, key=lambda c: c.ordinal)
        ])

    return pa.schema(
        [pa.field(f.name, ARROW_TYPES[f.physical_type], nullable=f.optional) for f in fields],
        metadata=metadata or None,
    )


class ParquetArtifactWriter:
    """
    Streaming Parquet writer for one table.

    Args:
        path: Final artifact path
        schema: Arrow schema from arrow_schema()
        row_group_size: Records buffered per row group
        compression: Parquet codec name
    """

    def __init__(
        self,
        path: Path,
        schema: pa.Schema,
        row_group_size: int = 10_000,
        compression: str = "snappy",
        table: Optional[str] = None
    ):
        self.path = Path(path)
        self.temp_path = self.path.with_name(self.path.name + TEMP_SUFFIX)
        self.schema = schema
        self.row_group_size = row_group_size
        self.compression = compression
        self.table = table
        self.rows_written = 0

        self._writer: Optional[pq.ParquetWriter] = None
        self._columns: list[list] = [[] for _ in schema]

    def open(self) -> "ParquetArtifactWriter":
        """Create the temporary file and the Parquet writer."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._writer = pq.ParquetWriter(str(self.temp_path), self.schema, compression=self.compression)
        except (OSError, pa.ArrowException) as e:
            raise ArtifactIOError(f"cannot open {self.temp_path}: {e}", self.table, ExportState.WRITING) from e
        logger.debug(f"Opened artifact writer {self.temp_path}")
        return self

    def append(self, record: EncodedRecord) -> None:
        """Append one encoded record. Values must be in schema field order."""
        for buffer, value in zip(self._columns, record):
            buffer.append(value)
        self.rows_written += 1
        if len(self._columns[0]) >= self.row_group_size:
            self._flush()

    def _flush(self) -> None:
        if not self._columns or not self._columns[0]:
            return
        try:
            arrays = [pa.array(values, type=field.type) for values, field in zip(self._columns, self.schema)]
            self._writer.write_table(pa.Table.from_arrays(arrays, schema=self.schema))
        except (OSError, pa.ArrowException) as e:
            raise ArtifactIOError(f"writing row group failed: {e}", self.table, ExportState.WRITING) from e
        logger.debug(f"Flushed row group of {len(self._columns[0])} rows to {self.temp_path}")
        self._columns = [[] for _ in self.schema]

    def close(self) -> Path:
        """
        Flush remaining records, close the file and move it into place.

        Returns:
            Final artifact path

        Raises:
            ArtifactIOError: If flushing, closing or renaming fails
        """
        self._flush()
        try:
            self._writer.close()
            self._writer = None
            os.replace(self.temp_path, self.path)
        except (OSError, pa.ArrowException) as e:
            raise ArtifactIOError(f"finalizing {self.path} failed: {e}", self.table, ExportState.FINALIZED) from e

        logger.info(f"Artifact written: {self.path} ({self.rows_written:,} rows)")
        return self.path

    def abort(self) -> None:
        """Discard a partially written artifact."""
        if self._writer is not None:
            try:
                self._writer.close()
            except (OSError, pa.ArrowException) as e:
                logger.debug(f"Closing aborted writer failed: {e}")
            self._writer = None
        self._columns = [[] for _ in self.schema]
        try:
            self.temp_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove partial artifact {self.temp_path}: {e}")
