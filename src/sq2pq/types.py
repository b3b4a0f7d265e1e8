"""
Type definitions for the sq2pq export pipeline.

This module provides the exception hierarchy used to contain failures at the
row, table and run level, plus the immutable result records reported back to
the orchestrator and the CLI.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .domain.enums import ExportState


# Export exception hierarchy
class ExportError(Exception):
    """Base exception for a failed table export.

    Every subclass carries the table and the stage it failed in, so a log line
    is enough to diagnose the failure without reproducing the run.
    """
    def __init__(self, message: str, table: Optional[str] = None, stage: Optional[ExportState] = None):
        self.message = message
        self.table = table
        self.stage = stage
        super().__init__(message)

    def __str__(self) -> str:
        if self.table is None:
            return self.message
        stage = self.stage.value if self.stage else "unknown"
        return f"table '{self.table}' [{stage}]: {self.message}"


class MetadataError(ExportError):
    """Table or column introspection failed. The table is skipped."""
    pass


class SchemaError(ExportError):
    """A column could not be mapped to an output field. The table is skipped."""
    pass


class DataIntegrityError(ExportError):
    """NULL found in a required field. The table is skipped."""
    def __init__(self, message: str, table: Optional[str] = None, column: Optional[str] = None,
                 row: Optional[int] = None):
        self.column = column
        self.row = row
        super().__init__(message, table, ExportState.WRITING)


class CoercionError(ExportError):
    """A single cell could not be converted. Only the row is skipped."""
    def __init__(self, message: str, table: Optional[str] = None, column: Optional[str] = None,
                 row: Optional[int] = None, value: Any = None):
        self.column = column
        self.row = row
        self.value = value
        super().__init__(message, table, ExportState.WRITING)

    def __str__(self) -> str:
        return (
            f"table '{self.table}' column '{self.column}' row {self.row}: "
            f"{self.message} (raw value {self.value!r})"
        )


class ArtifactIOError(ExportError):
    """Writing or finalizing the artifact file failed. The table is skipped."""
    pass


class DeliveryError(ExportError):
    """The sink rejected the artifact or could not reach its destination.

    The artifact stays on disk for inspection or a later re-run.
    """
    def __init__(self, message: str, table: Optional[str] = None, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message, table, ExportState.FINALIZED)


class ExportCancelled(ExportError):
    """The run was cancelled while this table was in flight."""
    pass


@dataclass(frozen=True)
class TableExportResult:
    """Outcome of one table export."""
    table: str
    state: ExportState
    artifact_path: Optional[Path] = None
    rows_read: int = 0
    rows_written: int = 0
    rows_skipped: int = 0
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state in (ExportState.DELIVERED, ExportState.EMPTY)


@dataclass
class ExportSummary:
    """Aggregated outcome of a database export run."""
    results: list[TableExportResult] = field(default_factory=list)

    def add(self, result: TableExportResult) -> None:
        self.results.append(result)

    @property
    def delivered(self) -> list[TableExportResult]:
        return [r for r in self.results if r.state == ExportState.DELIVERED]

    @property
    def empty(self) -> list[TableExportResult]:
        return [r for r in self.results if r.state == ExportState.EMPTY]

    @property
    def failed(self) -> list[TableExportResult]:
        return [r for r in self.results if r.state == ExportState.FAILED]

    def tables(self) -> list[str]:
        return [r.table for r in self.results]


class SourceUnavailableError(Exception):
    """The source database cannot be opened at all. Fatal for the whole run."""
    pass
