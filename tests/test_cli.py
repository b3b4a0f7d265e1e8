"""Tests for the command line interface."""

import logging

import pyarrow.parquet as pq
import pytest
from typer.testing import CliRunner

from sq2pq import __version__
from sq2pq.cli import app

from .test_config import ENV_VARS

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_env(tmp_path, monkeypatch):
    """Run every command from an empty directory without real signal handlers."""
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("sq2pq.cli.register_cancel_handlers", lambda token: None)
    yield
    logging.getLogger().handlers.clear()


@pytest.fixture
def source_db(make_db):
    return make_db(
        "CREATE TABLE users (user_id INTEGER NOT NULL, display_name TEXT)",
        "CREATE TABLE empty_table (x INT)",
        "CREATE TABLE events (event_id INTEGER, created_at TEXT, payload BLOB)",
        "INSERT INTO users VALUES (1, 'ada'), (2, 'grace')",
        "INSERT INTO events VALUES (10, '2024-01-02T03:04:05Z', X'00ff')",
    )


class TestExportCommand:
    """Tests for `sq2pq export`."""

    def test_export_all_tables(self, source_db, tmp_path):
        out = tmp_path / "artifacts"
        result = runner.invoke(app, ["export", str(source_db), "-o", str(out)])

        assert result.exit_code == 0, result.output
        assert sorted(p.name for p in out.iterdir()) == ["events.parquet", "users.parquet"]
        assert "2 delivered, 1 empty, 0 failed" in result.output

    def test_export_selected_tables(self, source_db, tmp_path):
        out = tmp_path / "artifacts"
        result = runner.invoke(app, ["export", str(source_db), "-o", str(out), "--tables", "users", "--sequential"])

        assert result.exit_code == 0, result.output
        assert [p.name for p in out.iterdir()] == ["users.parquet"]

    def test_type_overrides_from_config(self, source_db, tmp_path):
        config = tmp_path / "export.yml"
        config.write_text("tables: [events]\ntype_overrides:\n  events:\n    created_at: timestamp\n")
        out = tmp_path / "artifacts"

        result = runner.invoke(app, ["export", str(source_db), "-o", str(out), "-c", str(config)])

        assert result.exit_code == 0, result.output
        schema = pq.read_schema(out / "events.parquet")
        assert str(schema.field("CreatedAt").type) == "timestamp[us, tz=UTC]"

    def test_partial_artifacts_removed_before_run(self, source_db, tmp_path):
        out = tmp_path / "artifacts"
        out.mkdir()
        (out / "stale.parquet.tmp").write_bytes(b"partial")

        result = runner.invoke(app, ["export", str(source_db), "-o", str(out), "-t", "users"])

        assert result.exit_code == 0, result.output
        assert not (out / "stale.parquet.tmp").exists()

    def test_missing_database(self, tmp_path):
        result = runner.invoke(app, ["export", str(tmp_path / "missing.db")])
        assert result.exit_code == 1

    def test_upload_without_credentials(self, source_db):
        result = runner.invoke(app, ["export", str(source_db), "--upload"])
        assert result.exit_code == 1

    def test_upload_with_invalid_key(self, source_db):
        result = runner.invoke(
            app, ["export", str(source_db), "--upload", "--basin-vault", "v.x", "--basin-private-key", "nothex"]
        )
        assert result.exit_code == 1

    @pytest.mark.parametrize("option, value", [
        ("--workers", "-2"),
        ("--workers", "0"),
        ("--queue-size", "0"),
    ])
    def test_invalid_pool_settings(self, source_db, tmp_path, option, value):
        out = tmp_path / "artifacts"
        result = runner.invoke(app, ["export", str(source_db), "-o", str(out), option, value])

        assert result.exit_code == 1
        assert not out.exists()


class TestInformationCommands:
    def test_list_tables(self, source_db):
        result = runner.invoke(app, ["list-tables", str(source_db)])

        assert result.exit_code == 0, result.output
        assert result.output.splitlines()[:3] == ["empty_table", "events", "users"]
        assert "Found 3 tables" in result.output

    def test_describe(self, source_db):
        result = runner.invoke(app, ["describe", str(source_db), "-t", "users"])

        assert result.exit_code == 0, result.output
        assert "UserId" in result.output
        assert "required" in result.output
        assert "DisplayName" in result.output

    def test_inspect(self, source_db, tmp_path):
        out = tmp_path / "artifacts"
        runner.invoke(app, ["export", str(source_db), "-o", str(out), "-t", "users"])

        result = runner.invoke(app, ["inspect", str(out / "users.parquet")])

        assert result.exit_code == 0, result.output
        assert "UserId" in result.output
        assert "2 rows" in result.output

    def test_inspect_missing_artifact(self, tmp_path):
        result = runner.invoke(app, ["inspect", str(tmp_path / "nope.parquet")])
        assert result.exit_code == 1

    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.output
