import argparse
import importlib
import json
import logging
from pathlib import Path
from typing import Any, List, Optional, Tuple

import colorlog
import pandas as pd

from bigquery_pod import __version__ as _PACKAGE_VERSION
from bigquery_pod.config import PodSettings, load_settings
from bigquery_pod.core.errors import PodError, StartupError
from bigquery_pod.core.query import (
    BigQuerySource,
    collect_rows,
    create_client,
    run_full,
    run_page,
)
from bigquery_pod.core.rows import rows_to_json


def setup_logging(
    verbose: bool = False, warnings_only: bool = False, errors_only: bool = False
) -> None:
    logger = logging.getLogger()
    for h in list(logger.handlers):
        logger.removeHandler(h)
    log_format = (
        "%(asctime)s:%(levelname)s:%(name)s in %(filename)s:%(funcName)s:%(lineno)d: %(message)s"
    )
    log_colors = {
        "DEBUG": "cyan",
        "INFO": "green",
        "WARNING": "yellow",
        "ERROR": "red",
        "CRITICAL": "bold_red",
    }
    # stdout is reserved for query payloads
    stream_handler = colorlog.StreamHandler()
    formatter = colorlog.ColoredFormatter(f"%(log_color)s{log_format}", log_colors=log_colors)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)
    if errors_only:
        logger.setLevel(logging.ERROR)
    elif warnings_only:
        logger.setLevel(logging.WARNING)
    else:
        logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def _connect(args: argparse.Namespace) -> Tuple[PodSettings, Any]:
    """Resolve settings and create the shared BigQuery client.

    Raises:
        StartupError: On missing project, bad config or missing credentials.
    """
    config_path = getattr(args, "config", None)
    settings = load_settings(Path(config_path) if config_path else None)
    client = create_client(settings.project, location=settings.location)
    return settings, client


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the pod server on a Unix domain socket.

    Requires the socket path argument and GOOGLE_CLOUD_PROJECT; either one
    missing is a startup error (exit code 2).
    """
    socket_path = getattr(args, "socket_path", None)
    if not socket_path:
        logging.error("Missing a filepath argument for socket to listen on")
        return 2

    try:
        settings, client = _connect(args)
    except StartupError as e:
        logging.error("%s", e)
        return 2

    try:
        pod_server = importlib.import_module("bigquery_pod.interfaces.pod.server")
    except (ModuleNotFoundError, ImportError, RuntimeError) as e:
        logging.error("Failed to import pod server. Ensure 'mcp' is installed. Error: %s", e)
        client.close()
        return 3

    source = BigQuerySource(client, timeout=settings.query_timeout)
    logging.info("Starting pod server on socket %s (project: %s)", socket_path, settings.project)
    try:
        pod_server.run(socket_path, source, settings)
    except KeyboardInterrupt:
        pass
    finally:
        client.close()
    return 0


def cmd_query(args: argparse.Namespace) -> int:
    """Run a query once and print the JSON payload to stdout.

    Without --page-size this is a full scan; with it, a single page that
    starts at --token (or the beginning).
    """
    try:
        settings, client = _connect(args)
    except StartupError as e:
        logging.error("%s", e)
        return 2

    source = BigQuerySource(client, timeout=settings.query_timeout)
    try:
        if args.page_size is not None:
            payload = run_page(source, args.sql, args.token or "", int(args.page_size))
        else:
            payload = run_full(source, args.sql, max_rows=settings.max_rows)
    except (PodError, ValueError) as e:
        logging.error("Query failed: %s", e)
        return 1
    finally:
        client.close()

    print(payload)
    return 0


def _csv_cell(value: Any) -> Any:
    # nested records and arrays are written as JSON text
    if isinstance(value, list):
        return json.dumps(value)
    return value


def cmd_export(args: argparse.Namespace) -> int:
    """Run a full scan and write the encoded rows to a CSV file.

    The scan follows the same ``max_rows`` cap as the query tool.
    """
    try:
        settings, client = _connect(args)
    except StartupError as e:
        logging.error("%s", e)
        return 2

    source = BigQuerySource(client, timeout=settings.query_timeout)
    try:
        stream = source.execute(args.sql)
        columns = [c.name for c in stream.schema]
        rows = collect_rows(stream, max_rows=settings.max_rows)
        data: List[List[Any]] = [[_csv_cell(v) for v in row] for row in rows_to_json(rows)]
    except PodError as e:
        logging.error("Export failed: %s", e)
        return 1
    finally:
        client.close()

    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    pd.DataFrame(data, columns=columns).to_csv(output, index=False)
    logging.info("Wrote %d rows to %s", len(data), output)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="bigquery-pod",
        description=f"BigQuery pod (v{_PACKAGE_VERSION})",
    )
    p.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    p.add_argument(
        "--warnings-only",
        action="store_true",
        help="Show only warnings and errors (overrides --verbose)",
    )
    p.add_argument(
        "--errors-only",
        action="store_true",
        help="Show only errors (overrides --verbose and --warnings-only)",
    )
    p.add_argument(
        "--config",
        default=None,
        help="Path to YAML settings file (optional)",
    )
    sub = p.add_subparsers(dest="command", required=True)

    p_serve = sub.add_parser("serve", help="Serve query tools on a Unix domain socket")
    p_serve.add_argument(
        "socket_path",
        nargs="?",
        default=None,
        help="Filesystem path of the socket to listen on",
    )
    p_serve.set_defaults(func=cmd_serve)

    p_query = sub.add_parser("query", help="Run a query and print the JSON result")
    p_query.add_argument("sql", help="SQL text to run")
    p_query.add_argument(
        "--page-size",
        type=int,
        default=None,
        help="Return a single page of this many rows with a continuation token",
    )
    p_query.add_argument(
        "--token",
        default="",
        help="Continuation token from a previous page (requires --page-size)",
    )
    p_query.set_defaults(func=cmd_query)

    p_export = sub.add_parser("export", help="Run a query and write all rows to CSV")
    p_export.add_argument("sql", help="SQL text to run")
    p_export.add_argument("--output", required=True, help="Destination CSV path")
    p_export.set_defaults(func=cmd_export)

    return p


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(
        verbose=bool(args.verbose),
        warnings_only=bool(getattr(args, "warnings_only", False)),
        errors_only=bool(getattr(args, "errors_only", False)),
    )
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
