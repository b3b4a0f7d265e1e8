"""
Exporters - Table and database export orchestration

TableExporter drives one table through
    idle -> columns_fetched -> schema_derived -> writing -> finalized -> delivered
and fails into `failed` from any stage. Tables without rows stop early in
`empty`: no artifact is written and the sink is not called.

DatabaseExporter enumerates the tables and runs exactly one TableExporter per
table, either sequentially or on a bounded WorkerPool. A table failure never
affects another table.
"""

import logging
import threading
from itertools import chain
from pathlib import Path
from typing import Optional

from ..cancel import CancellationToken
from ..config.settings import ProcessingConfig
from ..database import SQLiteDatabase
from ..domain.enums import ExportMode, ExportState
from ..types import CoercionError, ExportError, ExportSummary, MetadataError, TableExportResult
from .encoder import RowEncoder
from .pool import WorkerPool
from .schema import SchemaDeriver
from .sink import NoopSink, Sink
from .writer import ParquetArtifactWriter, arrow_schema, artifact_path

logger = logging.getLogger(__name__)


class TableExporter:
    """
    Exports one table to a Parquet artifact and hands it to the sink.

    Args:
        db: Shared read-only database handle
        table: Table to export
        output_dir: Directory receiving <table>.parquet
        sink: Delivery sink
        deriver: Schema deriver (carries type overrides)
        processing: Writer settings (row group size, compression)
    """

    def __init__(
        self,
        db: SQLiteDatabase,
        table: str,
        output_dir: Path,
        sink: Sink,
        deriver: Optional[SchemaDeriver] = None,
        processing: Optional[ProcessingConfig] = None
    ):
        self.db = db
        self.table = table
        self.output_dir = Path(output_dir)
        self.sink = sink
        self.deriver = deriver or SchemaDeriver()
        self.processing = processing or ProcessingConfig()

        self.state = ExportState.IDLE
        self.artifact_path: Optional[Path] = None
        self.rows_read = 0
        self.rows_written = 0
        self.rows_skipped = 0
        self.error: Optional[BaseException] = None

    def execute(self, cancel_token: Optional[CancellationToken] = None, worker: int = 0) -> TableExportResult:
        """
        Run the export.

        Args:
            cancel_token: Run-wide cancellation token
            worker: Worker number, for log context

        Returns:
            Result in state DELIVERED or EMPTY

        Raises:
            ExportError: Any table-level failure; state is FAILED afterwards
        """
        token = cancel_token or CancellationToken()
        try:
            self._run(token, worker)
        except ExportError as e:
            if e.table is None:
                e.table = self.table
            if e.stage is None:
                e.stage = self.state
            self._fail(e)
            raise
        except Exception as e:
            self._fail(e)
            raise
        return self.result()

    def _fail(self, error: BaseException) -> None:
        self.error = error
        self.state = ExportState.FAILED

    def _run(self, token: CancellationToken, worker: int) -> None:
        token.raise_if_cancelled(self.table, self.state)
        logger.info(f"[worker {worker}] Exporting table {self.table}")

        columns = self.db.get_columns(self.table)
        self.state = ExportState.COLUMNS_FETCHED

        fields = self.deriver.derive(self.table, columns)
        self.state = ExportState.SCHEMA_DERIVED

        token.raise_if_cancelled(self.table, self.state)
        with self.db.get_rows(self.table, token) as rows:
            first = next(rows, None)
            if first is None:
                self.state = ExportState.EMPTY
                logger.info(f"[worker {worker}] Table {self.table} is empty, nothing to export")
                return

            if len(rows.column_names) != len(fields):
                raise MetadataError(
                    f"query returned {len(rows.column_names)} columns, metadata lists {len(fields)}",
                    self.table, self.state
                )

            writer = ParquetArtifactWriter(
                artifact_path(self.output_dir, self.table),
                arrow_schema(fields, self.table, columns),
                row_group_size=self.processing.row_group_size,
                compression=self.processing.compression,
                table=self.table,
            ).open()
            self.state = ExportState.WRITING

            encoder = RowEncoder(self.table, fields)
            try:
                for index, values in enumerate(chain([first], rows)):
                    token.raise_if_cancelled(self.table, self.state)
                    self.rows_read += 1
                    try:
                        record = encoder.encode(values, index)
                    except CoercionError as e:
                        self.rows_skipped += 1
                        logger.warning(f"Skipping row: {e}")
                        continue
                    writer.append(record)
                self.artifact_path = writer.close()
            except BaseException:
                writer.abort()
                raise

        self.rows_written = writer.rows_written
        self.state = ExportState.FINALIZED
        if self.rows_skipped:
            logger.warning(
                f"Table {self.table}: {self.rows_skipped:,} of {self.rows_read:,} rows skipped"
            )

        self.sink.send(self.artifact_path, token)
        self.state = ExportState.DELIVERED
        logger.info(f"[worker {worker}] Table {self.table} exported: {self.rows_written:,} rows")

    def result(self) -> TableExportResult:
        return TableExportResult(
            table=self.table,
            state=self.state,
            artifact_path=self.artifact_path,
            rows_read=self.rows_read,
            rows_written=self.rows_written,
            rows_skipped=self.rows_skipped,
            error=str(self.error) if self.error is not None else None,
        )


class DatabaseExporter:
    """
    Exports every selected table of a database.

    Args:
        db: Database handle; its table filter selects the tables
        sink: Delivery sink shared by all tables
        output_dir: Artifact directory
        processing: Worker pool and writer settings
        deriver: Schema deriver shared by all tables
    """

    def __init__(
        self,
        db: SQLiteDatabase,
        sink: Optional[Sink] = None,
        output_dir: Path = Path("output"),
        processing: Optional[ProcessingConfig] = None,
        deriver: Optional[SchemaDeriver] = None
    ):
        self.db = db
        self.sink = sink or NoopSink()
        self.output_dir = Path(output_dir)
        self.processing = processing or ProcessingConfig()
        self.deriver = deriver or SchemaDeriver()

    def table_exporter(self, table: str) -> TableExporter:
        return TableExporter(self.db, table, self.output_dir, self.sink, self.deriver, self.processing)

    def export_all(
        self,
        cancel_token: Optional[CancellationToken] = None,
        mode: ExportMode = ExportMode.POOL
    ) -> ExportSummary:
        """
        Export all selected tables.

        Args:
            cancel_token: Run-wide cancellation token
            mode: SEQUENTIAL runs tables one by one on this thread, POOL uses
                the bounded worker pool

        Returns:
            Summary with one result per submitted table

        Raises:
            MetadataError: If the table list itself cannot be read
        """
        token = cancel_token or CancellationToken()
        summary = ExportSummary()
        lock = threading.Lock()

        def record(task: TableExporter, result: Optional[object], error: Optional[BaseException]) -> None:
            if error is not None:
                logger.error(f"Export failed: {error}")
            with lock:
                summary.add(task.result())

        logger.info(f"Exporting {self.db.path} to {self.output_dir} ({ExportMode(mode).value})")

        if mode == ExportMode.SEQUENTIAL:
            for table in self._selected_tables(token):
                exporter = self.table_exporter(table)
                try:
                    exporter.execute(token, 0)
                except Exception as e:
                    record(exporter, None, e)
                else:
                    record(exporter, None, None)
        else:
            pool = WorkerPool(self.processing.workers, self.processing.queue_size, token, on_complete=record)
            pool.start()
            try:
                for table in self._selected_tables(token):
                    pool.submit(self.table_exporter(table))
            finally:
                pool.shutdown()

        logger.info(
            f"Export finished: {len(summary.delivered)} delivered, "
            f"{len(summary.empty)} empty, {len(summary.failed)} failed"
        )
        return summary

    def _selected_tables(self, token: CancellationToken):
        """Yield each selected table exactly once, stopping early on cancellation."""
        if token.cancelled:
            logger.warning("Cancelled before any table was submitted")
            return
        seen: set[str] = set()
        with self.db.list_tables(token) as tables:
            for table in tables:
                if token.cancelled:
                    logger.warning("Cancelled, no further tables will be submitted")
                    return
                if table in seen:
                    continue
                seen.add(table)
                yield table
