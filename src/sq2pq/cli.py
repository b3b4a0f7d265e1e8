import logging
from pathlib import Path
from typing import Annotated, Optional

import duckdb
import typer

from .cancel import CancellationToken
from .cleanup import cleanup_partial_artifacts, register_cancel_handlers
from .config.settings import Config, ConfigurationError, ProcessingConfig, load_export_file
from .database import SQLiteDatabase
from .domain.enums import ExportMode, HttpMethod
from .pipeline.exporter import DatabaseExporter
from .pipeline.schema import SchemaDeriver
from .pipeline.sink import BasinSink, NoopSink, Sink
from .signing import EcdsaSigner
from .types import ExportError, ExportSummary, SourceUnavailableError
from .utils import setup_logging, timer

app = typer.Typer(help="sq2pq: export SQLite tables to Parquet and deliver them")


def split_tables(values: Optional[list[str]]) -> list[str]:
    """Accept both repeated --tables flags and comma separated lists."""
    tables: list[str] = []
    for value in values or []:
        tables.extend(t.strip() for t in value.split(",") if t.strip())
    return tables


def open_database(db_path: Path, tables: list[str]) -> SQLiteDatabase:
    """Open the source database or exit with status 1."""
    try:
        return SQLiteDatabase(db_path, tables)
    except SourceUnavailableError as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(1)


def build_sink(
    config: Config,
    upload: bool,
    private_key: Optional[str],
    vault: Optional[str],
    provider: Optional[str]
) -> Sink:
    """
    Build the delivery sink from configuration and CLI overrides.

    Raises:
        ConfigurationError: If upload is enabled without valid credentials
    """
    if not upload:
        return NoopSink()

    if private_key:
        config.upload.private_key = private_key
    if vault:
        config.upload.vault = vault
    if provider:
        config.upload.provider_url = provider
    config.validate_upload()

    try:
        signer = EcdsaSigner(config.upload.private_key)
    except ValueError as e:
        raise ConfigurationError(f"Invalid private key: {e}")

    return BasinSink(
        provider_url=config.upload.provider_url,
        vault=config.upload.vault,
        signer=signer,
        method=HttpMethod(config.upload.method),
        timeout_s=config.upload.timeout_s,
    )


def print_summary(summary: ExportSummary) -> None:
    """Print one line per table followed by totals."""
    for result in sorted(summary.results, key=lambda r: r.table):
        if result.error:
            typer.echo(f"  FAILED     {result.table}: {result.error}")
        elif result.artifact_path:
            skipped = f", {result.rows_skipped:,} skipped" if result.rows_skipped else ""
            typer.echo(
                f"  {result.state.value.upper():<10} {result.table}: "
                f"{result.rows_written:,} rows{skipped} -> {result.artifact_path}"
            )
        else:
            typer.echo(f"  {result.state.value.upper():<10} {result.table}")

    typer.echo(
        f"\n{len(summary.results)} tables: {len(summary.delivered)} delivered, "
        f"{len(summary.empty)} empty, {len(summary.failed)} failed"
    )


@timer
def run_export(exporter: DatabaseExporter, token: CancellationToken, mode: ExportMode) -> ExportSummary:
    return exporter.export_all(token, mode)


@app.command("export")
def export_command(
    db_path: Annotated[Path, typer.Argument(help="Path to the SQLite database")],
    tables: Annotated[Optional[list[str]], typer.Option("--tables", "-t", help="Tables to export (repeat or comma separate); default all")] = None,
    output_dir: Annotated[Optional[Path], typer.Option("--output-dir", "-o", help="Artifact directory (default $SQ2PQ_OUTPUT_DIR or ./output)")] = None,
    upload: Annotated[bool, typer.Option("--upload", help="Upload each artifact to the vault after export")] = False,
    private_key: Annotated[Optional[str], typer.Option("--basin-private-key", help="Hex private key used to sign uploads")] = None,
    vault: Annotated[Optional[str], typer.Option("--basin-vault", help="Destination vault")] = None,
    provider: Annotated[Optional[str], typer.Option("--provider", help="Upload endpoint base URL")] = None,
    workers: Annotated[Optional[int], typer.Option("--workers", "-w", help="Number of export workers")] = None,
    queue_size: Annotated[Optional[int], typer.Option("--queue-size", help="Task queue capacity")] = None,
    sequential: Annotated[bool, typer.Option("--sequential", help="Export tables one at a time without the worker pool")] = False,
    config: Annotated[Optional[Path], typer.Option("--config", "-c", help="YAML export file (tables, type_overrides)")] = None,
    env_file: Annotated[Optional[Path], typer.Option("--env-file", help="Explicit .env file")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable detailed logging output")] = False,
    log_to_file: Annotated[bool, typer.Option("--log-to-file", help="Create timestamped log files")] = False,
):
    """
    Export SQLite tables to Parquet files.

    One <table>.parquet is written per non-empty table. Individual table
    failures are logged and reported but do not fail the command.

    Examples:
        sq2pq export app.db
        sq2pq export app.db --tables users,orders -o exports
        sq2pq export app.db --upload --basin-vault my.vault --basin-private-key <hex>
    """
    log_file = setup_logging(verbose, db_path.stem, log_to_file)
    if log_file:
        typer.echo(f"Logging to: {log_file}")

    try:
        settings = Config(env_file=env_file)
        processing = ProcessingConfig(
            workers=workers if workers is not None else settings.processing.workers,
            queue_size=queue_size if queue_size is not None else settings.processing.queue_size,
            row_group_size=settings.processing.row_group_size,
            compression=settings.processing.compression,
        )
        export_file = load_export_file(config) if config else None
        sink = build_sink(settings, upload, private_key, vault, provider)
    except ConfigurationError as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(1)
    except ValueError as e:
        typer.echo(f"ERROR: Invalid processing configuration: {e}", err=True)
        raise typer.Exit(1)

    table_filter = split_tables(tables) or (export_file.tables if export_file else None) or []
    db = open_database(db_path, table_filter)
    out_dir = output_dir or settings.output.output_dir
    logging.debug(f"Configuration: {settings.get_summary()}")

    token = CancellationToken()
    register_cancel_handlers(token)
    cleanup_partial_artifacts(out_dir)

    exporter = DatabaseExporter(
        db,
        sink=sink,
        output_dir=out_dir,
        processing=processing,
        deriver=SchemaDeriver(export_file.type_overrides if export_file else None),
    )
    mode = ExportMode.SEQUENTIAL if sequential else ExportMode.POOL

    try:
        summary = run_export(exporter, token, mode)
    except ExportError as e:
        typer.echo(f"ERROR: Export could not start: {e}", err=True)
        raise typer.Exit(1)

    print_summary(summary)
    if token.cancelled:
        typer.echo("Export was cancelled; re-run to export the remaining tables.", err=True)


@app.command("list-tables")
def list_tables(
    db_path: Annotated[Path, typer.Argument(help="Path to the SQLite database")],
    tables: Annotated[Optional[list[str]], typer.Option("--tables", "-t", help="Restrict to these tables")] = None,
):
    """
    List the tables an export would process.

    Internal sqlite_* and system_* tables are never listed.
    """
    db = open_database(db_path, split_tables(tables))
    try:
        with db.list_tables() as names:
            found = list(names)
    except ExportError as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(1)

    for name in found:
        typer.echo(name)
    typer.echo(f"\nFound {len(found)} tables")


@app.command("describe")
def describe(
    db_path: Annotated[Path, typer.Argument(help="Path to the SQLite database")],
    tables: Annotated[Optional[list[str]], typer.Option("--tables", "-t", help="Restrict to these tables")] = None,
    config: Annotated[Optional[Path], typer.Option("--config", "-c", help="YAML export file (type_overrides)")] = None,
):
    """
    Show the Parquet schema derived for each table.

    Examples:
        sq2pq describe app.db --tables users
    """
    try:
        export_file = load_export_file(config) if config else None
    except ConfigurationError as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(1)

    db = open_database(db_path, split_tables(tables))
    deriver = SchemaDeriver(export_file.type_overrides if export_file else None)

    with db.list_tables() as names:
        for table in names:
            typer.echo(f"\n* {table}")
            try:
                fields = deriver.derive(table, db.get_columns(table))
            except ExportError as e:
                typer.echo(f"   ERROR: {e}")
                continue
            for field in fields:
                required = "optional" if field.optional else "required"
                typer.echo(f"   {field.name:<24} {field.physical_type.value:<10} {required:<9} ({field.source_column})")


@app.command("inspect")
def inspect_artifact(
    artifact: Annotated[Path, typer.Argument(help="Parquet artifact to read back")],
):
    """
    Read an artifact back with DuckDB and print its columns and row count.
    """
    if not artifact.is_file():
        typer.echo(f"ERROR: Artifact not found: {artifact}", err=True)
        raise typer.Exit(1)

    source = "read_parquet('" + str(artifact).replace("'", "''") + "')"
    con = duckdb.connect()
    try:
        columns = con.execute(f"DESCRIBE SELECT * FROM {source}").fetchall()
        row_count = con.execute(f"SELECT COUNT(*) FROM {source}").fetchone()[0]
    except duckdb.Error as e:
        typer.echo(f"ERROR: Cannot read {artifact}: {e}", err=True)
        raise typer.Exit(1)
    finally:
        con.close()

    typer.echo(f"{artifact}")
    for name, column_type, null, *_ in columns:
        typer.echo(f"   {name:<24} {column_type:<12} {'NULL' if null == 'YES' else 'NOT NULL'}")
    typer.echo(f"\n{row_count:,} rows")


@app.command("version")
def version():
    """Display version information."""
    from . import __version__
    typer.echo(f"sq2pq version: {__version__}")


if __name__ == "__main__":
    app()
