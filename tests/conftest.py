"""Shared pytest fixtures for all tests."""

import sqlite3
from pathlib import Path

import pytest

from sq2pq.database import SQLiteDatabase


class RecordingSink:
    """Sink that records every artifact path it receives."""

    def __init__(self):
        self.sent: list[Path] = []

    def send(self, artifact_path, cancel_token=None):
        self.sent.append(Path(artifact_path))


@pytest.fixture
def make_db(tmp_path):
    """Factory creating a SQLite file from SQL statements.

    Returns the path of the new database.
    """
    counter = {"n": 0}

    def _make(*statements: str) -> Path:
        counter["n"] += 1
        path = tmp_path / f"source_{counter['n']}.db"
        conn = sqlite3.connect(path)
        try:
            for statement in statements:
                conn.execute(statement)
            conn.commit()
        finally:
            conn.close()
        return path

    return _make


@pytest.fixture
def scenario_db(make_db) -> SQLiteDatabase:
    """The two-row test table: test(a_id INT, b TEXT, c BLOB)."""
    path = make_db(
        "CREATE TABLE test (a_id INT, b TEXT, c BLOB)",
        "INSERT INTO test (a_id, b, c) VALUES (1, 'Hello 1', X'010203'), (2, 'Hello 2', NULL)",
    )
    return SQLiteDatabase(path)


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def output_dir(tmp_path) -> Path:
    return tmp_path / "output"


class FakeRows:
    """In-memory stand-in for database.RowCursor."""

    def __init__(self, column_names, rows):
        self.column_names = list(column_names)
        self._rows = iter(rows)
        self.closed = False

    def __iter__(self):
        return self

    def __next__(self):
        return next(self._rows)

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class FakeDatabase:
    """Database stub serving fixed columns and rows, for states SQLite cannot hold."""

    def __init__(self, columns, rows):
        self.path = Path("fake.db")
        self.columns = columns
        self.rows = rows
        self.cursors: list[FakeRows] = []

    def get_columns(self, table):
        return list(self.columns)

    def get_rows(self, table, cancel_token=None):
        cursor = FakeRows([c.name for c in self.columns], self.rows)
        self.cursors.append(cursor)
        return cursor
