"""
SQLite source database access.

Lists exportable tables, reads column metadata and streams rows. Every query
runs on its own read-only connection so the same SQLiteDatabase handle can be
shared by any number of export workers.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any, Optional

from .cancel import CancellationToken
from .domain.enums import ExportState
from .domain.models import ColumnDescriptor
from .types import ExportCancelled, MetadataError, SourceUnavailableError

logger = logging.getLogger(__name__)

# sqlite_* and system_* tables are internal and never exported
TABLES_SQL = """
    SELECT name AS table_name
    FROM sqlite_master
    WHERE type = 'table'
    AND name NOT LIKE 'sqlite?_%' ESCAPE '?'
    AND name NOT LIKE 'system?_%' ESCAPE '?'
"""

# Columns SELECT * returns: hidden 0 is ordinary, 2 and 3 are generated columns
COLUMNS_SQL = """
    SELECT name, type, "notnull", pk
    FROM pragma_table_xinfo(?)
    WHERE hidden IN (0, 2, 3)
    ORDER BY cid
"""


def decode_text(value: bytes) -> str | bytes:
    """Decode TEXT values as UTF-8; invalid text is returned as raw bytes for the encoder to reject."""
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError:
        return value


def quote_identifier(name: str) -> str:
    """Quote a table or column name for use in SQL text."""
    return '"' + name.replace('"', '""') + '"'


class _Cursor:
    """Closable forward-only cursor bound to its own connection."""

    def __init__(self, conn: sqlite3.Connection, cursor: sqlite3.Cursor,
                 cancel_token: Optional[CancellationToken], table: Optional[str]):
        self._conn = conn
        self._cursor = cursor
        self._token = cancel_token
        self._table = table
        self._handle = cancel_token.register(conn.interrupt) if cancel_token else None
        self._closed = False

    def _fetch(self) -> Optional[tuple]:
        if self._closed:
            return None
        try:
            return self._cursor.fetchone()
        except sqlite3.Error as e:
            if self._token is not None and self._token.cancelled:
                raise ExportCancelled("query interrupted", self._table, ExportState.WRITING) from e
            raise MetadataError(f"reading rows failed: {e}", self._table, ExportState.WRITING) from e

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._token is not None and self._handle is not None:
            self._token.unregister(self._handle)
        try:
            self._cursor.close()
        finally:
            self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class TableIterator(_Cursor):
    """Lazy iterator over exportable table names."""

    def __iter__(self) -> Iterator[str]:
        return self

    def __next__(self) -> str:
        row = self._fetch()
        if row is None:
            self.close()
            raise StopIteration
        return row[0]


class RowCursor(_Cursor):
    """Lazy iterator over the raw rows of one table, in storage order."""

    @property
    def column_names(self) -> list[str]:
        return [d[0] for d in self._cursor.description or ()]

    def __iter__(self) -> Iterator[tuple[Any, ...]]:
        return self

    def __next__(self) -> tuple[Any, ...]:
        row = self._fetch()
        if row is None:
            raise StopIteration
        return row


class SQLiteDatabase:
    """
    Read-only handle on a SQLite database file.

    Args:
        path: Database file path
        tables: Optional allow-list; when set only these tables are listed
    """

    def __init__(self, path: str | Path, tables: Optional[Iterable[str]] = None):
        self.path = Path(path)
        self.tables = list(tables or [])

        if not self.path.is_file():
            raise SourceUnavailableError(f"Database file not found: {self.path}")

        try:
            conn = self._connect()
            try:
                conn.execute("SELECT 1 FROM sqlite_master LIMIT 1").fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise SourceUnavailableError(f"Cannot open database {self.path}: {e}") from e

        logger.debug(f"Opened SQLite database {self.path} (filter: {self.tables or 'none'})")

    def _connect(self) -> sqlite3.Connection:
        uri = f"{self.path.resolve().as_uri()}?mode=ro"
        return sqlite3.connect(uri, uri=True, check_same_thread=False)

    def list_tables(self, cancel_token: Optional[CancellationToken] = None) -> TableIterator:
        """
        List user tables, excluding sqlite_* and system_* tables.

        Returns:
            Closable lazy iterator of table names
        """
        sql = TABLES_SQL
        params: tuple = ()
        if self.tables:
            sql += f" AND name IN ({', '.join('?' for _ in self.tables)})"
            params = tuple(self.tables)
        sql += " ORDER BY name"

        conn = self._connect()
        try:
            cursor = conn.execute(sql, params)
        except sqlite3.Error as e:
            conn.close()
            raise MetadataError(f"listing tables failed: {e}") from e
        return TableIterator(conn, cursor, cancel_token, None)

    def get_columns(self, table: str) -> list[ColumnDescriptor]:
        """
        Read column metadata for a table, ordered by ordinal.

        Raises:
            MetadataError: If the table does not exist or cannot be read
        """
        conn = self._connect()
        try:
            rows = conn.execute(COLUMNS_SQL, (table,)).fetchall()
        except sqlite3.Error as e:
            raise MetadataError(f"reading columns failed: {e}", table, ExportState.IDLE) from e
        finally:
            conn.close()

        if not rows:
            raise MetadataError("table does not exist or has no columns", table, ExportState.IDLE)

        return [
            ColumnDescriptor(
                ordinal=ordinal,
                name=name,
                declared_type=declared_type or "",
                nullable=notnull == 0,
                is_primary_key=pk > 0,
            )
            for ordinal, (name, declared_type, notnull, pk) in enumerate(rows)
        ]

    def get_rows(self, table: str, cancel_token: Optional[CancellationToken] = None) -> RowCursor:
        """
        Open a forward-only cursor over every row of a table.

        The caller owns the cursor and must close it.

        Raises:
            MetadataError: If the query cannot be started
        """
        conn = self._connect()
        conn.text_factory = decode_text
        try:
            cursor = conn.execute(f"SELECT * FROM {quote_identifier(table)}")
        except sqlite3.Error as e:
            conn.close()
            if cancel_token is not None and cancel_token.cancelled:
                raise ExportCancelled("query interrupted", table, ExportState.SCHEMA_DERIVED) from e
            raise MetadataError(f"querying rows failed: {e}", table, ExportState.SCHEMA_DERIVED) from e
        return RowCursor(conn, cursor, cancel_token, table)
