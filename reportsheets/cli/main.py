from __future__ import annotations

import argparse
import json
import mimetypes
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import psycopg2
from dotenv import load_dotenv

from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from ..db.errors import NotFoundError, StoreError
from ..db.memory import InMemoryFileRepository, InMemorySheetStore
from ..db.postgres import PostgresFileRepository, PostgresSheetStore, ensure_schema
from ..excel.reader import ParseError, parse_spreadsheet
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary, setup_logging
from ..models.config_models import AppConfig, DatabaseConfig
from ..models.file_record import FileStatus
from ..services.pipeline import IngestionPipeline
from ..services.summary import render_summary_line
from ..services.validation import ValidationError, validate_upload
from ..storage.blob import LocalBlobStore, StorageError

"""Command line entrypoint.

Exit codes:
- 0: command succeeded
- 1: fatal (config, database, storage, unknown id, rejected upload)
- 2: a file was stored but its parse ended in status=failed
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_INGEST_FAILED = 2


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Connection string, by precedence.

    1. DATABASE_URL / PGDSN (``.env`` is loaded with override beforehand)
    2. individual PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
    3. the config ``database`` section for whatever is still missing
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def _db_cursor(cfg: AppConfig) -> Iterator[object]:  # pragma: no cover (needs a live server)
    """psycopg2 cursor on an autocommit connection.

    The stores open explicit BEGIN/COMMIT blocks where several statements
    must apply together.
    """
    conn = psycopg2.connect(resolve_dsn(cfg.database))
    try:
        conn.autocommit = True
        with conn.cursor() as cur:
            yield cur
    finally:
        conn.close()


@contextmanager
def open_pipeline(cfg: AppConfig, error_log: ErrorLogBuffer) -> Iterator[IngestionPipeline]:
    """Pipeline over PostgreSQL, or over in-memory stores when DISABLE_DB_CONNECT=1."""
    blobs = LocalBlobStore(Path(cfg.blob_directory))
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        yield IngestionPipeline(
            InMemoryFileRepository(), InMemorySheetStore(), blobs, cfg.charts, error_log
        )
        return
    with _db_cursor(cfg) as cur:
        yield IngestionPipeline(
            PostgresFileRepository(cur), PostgresSheetStore(cur), blobs, cfg.charts, error_log
        )


def _load_env_file(path: Path, override: bool = True) -> None:
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="reportsheets", description="Report workbook ingestion and charting"
    )
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML config path")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create database tables")

    ingest = sub.add_parser("ingest", help="Upload and parse a spreadsheet")
    ingest.add_argument("path", type=Path)
    ingest.add_argument("--user-id", type=int, default=None)
    ingest.add_argument("--mime", default=None, help="MIME type (guessed from name if omitted)")

    reparse = sub.add_parser("reparse", help="Parse a stored file again")
    reparse.add_argument("file_id", type=int)

    reparse_all = sub.add_parser("reparse-all", help="Parse every stored file again")
    reparse_all.add_argument("--user-id", type=int, default=None)

    ls = sub.add_parser("list", help="List uploaded files")
    ls.add_argument("--user-id", type=int, default=None)

    sheets = sub.add_parser("sheets", help="List the sheets of a file")
    sheets.add_argument("file_id", type=int)

    chart = sub.add_parser("chart", help="Group one column and sum another")
    chart.add_argument("file_id", type=int)
    chart.add_argument("--sheet", type=int, default=None)
    chart.add_argument("--x", type=int, default=None, help="0-based category column")
    chart.add_argument("--y", type=int, default=None, help="0-based value column")
    chart.add_argument("--filter", default=None, help="Keep labels containing this text")
    chart.add_argument("--json", action="store_true", help="Print the analysis as JSON")

    delete = sub.add_parser("delete", help="Delete a file, its sheets and its blob")
    delete.add_argument("file_id", type=int)

    inspect = sub.add_parser("inspect", help="Print sheet headers & first rows, store nothing")
    inspect.add_argument("path", type=Path)
    inspect.add_argument("--rows", type=int, default=3)
    return p.parse_args(argv)


def _inspect(path: Path, sample_rows: int) -> int:
    try:
        sheets = parse_spreadsheet(path.read_bytes(), mimetypes.guess_type(path.name)[0], path.name)
    except OSError as e:
        print(f"inspect: cannot read {path}: {e}")
        return EXIT_FATAL
    except ParseError as e:
        print(f"inspect: {e}")
        return EXIT_INGEST_FAILED
    print(f"FILE: {path.name}")
    for sheet in sheets:
        print(f"  SHEET: {sheet.sheet_name} rows={sheet.row_count} cols={sheet.column_count}")
        print(f"    headers={sheet.headers}")
        print("    sample_rows=", sheet.rows[:sample_rows])
    return EXIT_SUCCESS


def _ingest(pipeline: IngestionPipeline, cfg: AppConfig, args: argparse.Namespace) -> int:
    logger = setup_logging()
    path: Path = args.path
    try:
        data = path.read_bytes()
    except OSError as e:
        logger.error(f"cannot read {path}: {e}")
        return EXIT_FATAL
    validate_upload(path.name, len(data), cfg.upload)
    mime = args.mime or mimetypes.guess_type(path.name)[0]
    record = pipeline.ingest(data, path.name, mime, len(data), user_id=args.user_id)
    logger.info(
        f"file id={record.id} status={record.status.value} sheets={len(record.sheet_names)} "
        f"rows={record.row_count}"
    )
    return EXIT_SUCCESS if record.status is FileStatus.COMPLETED else EXIT_INGEST_FAILED


def _chart(pipeline: IngestionPipeline, args: argparse.Namespace) -> int:
    analysis = pipeline.analyze(args.file_id, args.sheet, args.x, args.y)
    series = analysis.series.filter(args.filter)
    if args.json:
        payload = analysis.to_dict()
        payload["chart_data"] = series.to_list()
        print(json.dumps(payload, ensure_ascii=False))
        return EXIT_SUCCESS
    headers = analysis.headers
    x_name = headers[analysis.x_axis_column] if 0 <= analysis.x_axis_column < len(headers) else ""
    y_name = headers[analysis.y_axis_column] if 0 <= analysis.y_axis_column < len(headers) else ""
    print(
        f"SHEET: {analysis.sheet_name} rows={analysis.total_rows} "
        f"x={analysis.x_axis_column}:{x_name} y={analysis.y_axis_column}:{y_name}"
    )
    for point in series:
        print(f"{point.label}\t{point.value:g}")
    return EXIT_SUCCESS


def _run(pipeline: IngestionPipeline, cfg: AppConfig, args: argparse.Namespace) -> int:
    logger = setup_logging()
    command = args.command
    if command == "init-db":
        store = pipeline.sheets
        if isinstance(store, PostgresSheetStore):
            ensure_schema(store.cursor)
            logger.info("database schema ready")
        else:
            logger.info("mock mode: no schema to create")
        return EXIT_SUCCESS
    if command == "ingest":
        return _ingest(pipeline, cfg, args)
    if command == "reparse":
        record = pipeline.reparse(args.file_id)
        logger.info(f"file id={record.id} status={record.status.value} rows={record.row_count}")
        return EXIT_SUCCESS if record.status is FileStatus.COMPLETED else EXIT_INGEST_FAILED
    if command == "reparse-all":
        result = pipeline.reparse_all(args.user_id)
        # render_summary_line includes the "SUMMARY " label that log_summary adds
        log_summary(render_summary_line(result)[len("SUMMARY "):])
        return EXIT_SUCCESS if result.failed_files == 0 else EXIT_INGEST_FAILED
    if command == "list":
        for r in pipeline.list_files(args.user_id):
            print(
                f"{r.id}\t{r.status.value}\t{r.file_name}\tsheets={len(r.sheet_names)}\t"
                f"rows={r.row_count}\tuploaded={r.uploaded_at.isoformat()}"
            )
        return EXIT_SUCCESS
    if command == "sheets":
        for s in pipeline.get_sheets(args.file_id):
            print(f"{s.sheet_index}\t{s.sheet_name}\trows={s.row_count}\tcols={s.column_count}")
        return EXIT_SUCCESS
    if command == "chart":
        return _chart(pipeline, args)
    if command == "delete":
        pipeline.delete(args.file_id)
        logger.info(f"file id={args.file_id} deleted")
        return EXIT_SUCCESS
    raise AssertionError(f"unhandled command {command}")


def main(argv: list[str] | None = None) -> int:
    # None only: an explicit [] must not fall back to sys.argv (pytest args)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    logger.debug("debug mode enabled")

    if args.command == "inspect":
        return _inspect(args.path, args.rows)

    # .env first so it wins over the process environment and the config file
    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    error_log = ErrorLogBuffer(Path(cfg.error_log_directory))
    try:
        with open_pipeline(cfg, error_log) as pipeline:
            return _run(pipeline, cfg, args)
    except ValidationError as e:
        logger.error(f"upload rejected: {e}")
        return EXIT_FATAL
    except NotFoundError as e:
        logger.error(f"not found: {e}")
        return EXIT_FATAL
    except StorageError as e:
        logger.error(f"storage: {e}")
        return EXIT_INGEST_FAILED if args.command == "reparse" else EXIT_FATAL
    except (StoreError, psycopg2.Error) as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL
    finally:
        failed_ids = error_log.failed_file_ids()
        counts = " ".join(f"{k}={v}" for k, v in sorted(error_log.counts_by_type().items()))
        path = error_log.flush()
        if path is not None:
            ids = ",".join(str(i) for i in failed_ids)
            logger.info(f"error log written: {path} files={ids} {counts}")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
