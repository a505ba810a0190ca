"""Pod server exposing the query operations as FastMCP tools.

Tools registered under the ``pod.bigquery`` namespace:
 - query:        run SQL, return every row as a JSON array
 - query-token:  run SQL, return one page of rows and a continuation token

Each call runs its blocking BigQuery work in a worker thread. A failed call
is reported to the caller as a tool error; the server keeps serving.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Optional

from bigquery_pod.config import DEFAULT_NAMESPACE, PodSettings
from bigquery_pod.core.errors import PodError
from bigquery_pod.core.query import DataSource, run_full, run_page

try:
    from mcp.server.fastmcp import FastMCP
    from mcp.server.fastmcp.exceptions import ToolError
except ImportError as exc:
    raise RuntimeError(
        "The 'mcp' package is required for the pod server. Install with: pip install mcp"
    ) from exc


# Global state, set once at startup by configure()
_SOURCE: Optional[DataSource] = None
_SETTINGS: Optional[PodSettings] = None
_SERVER = FastMCP(DEFAULT_NAMESPACE)

logger = logging.getLogger(__name__)


def configure(source: DataSource, settings: Optional[PodSettings] = None) -> None:
    """Install the shared data source used by every call."""
    global _SOURCE, _SETTINGS
    _SOURCE = source
    _SETTINGS = settings


def _require_source() -> DataSource:
    if _SOURCE is None:
        raise ToolError("Pod is not configured with a data source")
    return _SOURCE


async def _call(operation: Callable[..., str], *args: Any, **kwargs: Any) -> str:
    """Run a blocking query operation in a worker thread.

    If the calling task is cancelled, the operation's cancel event is set so
    the worker stops before its next pull.
    """
    cancel = threading.Event()
    try:
        return await asyncio.to_thread(operation, *args, cancel=cancel, **kwargs)
    except asyncio.CancelledError:
        cancel.set()
        logger.warning("Call to %s cancelled", operation.__name__)
        raise
    except (PodError, ValueError) as e:
        logger.error("Error in %s: %s", operation.__name__, e)
        raise ToolError(str(e)) from e


# -------------------------
# MARK: Query Tools
# -------------------------


@_SERVER.tool(
    "query",
    title="Run query",
    description=(
        "Run a SQL query and return all result rows as a JSON array of arrays, "
        "one element per column in schema order. Parameters: sql (str)."
    ),
)
async def query(sql: str) -> str:
    """Full scan: every row of the result."""
    source = _require_source()
    max_rows = _SETTINGS.max_rows if _SETTINGS else None
    logger.debug("query: %s", sql)
    return await _call(run_full, source, sql, max_rows=max_rows)


@_SERVER.tool(
    "query-token",
    title="Run query (one page)",
    description=(
        "Run a SQL query and return one page of rows plus a continuation token as "
        '{"rows": [...], "token": "..."}. Pass the token back to get the next page; '
        "an empty token starts at the beginning and an empty returned token means "
        "no more rows. Parameters: sql (str), token (str), page_size (int)."
    ),
)
async def query_token(sql: str, token: str, page_size: int) -> str:
    """One page of the result, resumable via ``token``."""
    source = _require_source()
    logger.debug("query-token (page_size=%s, resuming=%s): %s", page_size, bool(token), sql)
    return await _call(run_page, source, sql, token, page_size)


# Transport functions
async def _run_socket(socket_path: str) -> None:
    """Serve the streamable HTTP app on a Unix domain socket."""
    try:
        import uvicorn
    except ImportError:
        raise RuntimeError("uvicorn is required to serve the pod: pip install uvicorn")

    app = _SERVER.streamable_http_app()
    config = uvicorn.Config(app, uds=socket_path, log_level="info")
    server = uvicorn.Server(config)
    await server.serve()


def run(socket_path: str, source: DataSource, settings: Optional[PodSettings] = None) -> None:
    """Run the pod server on ``socket_path`` until interrupted."""
    configure(source, settings)

    path = Path(socket_path)
    if path.exists() or path.is_symlink():
        logger.info("Removing stale socket %s", path)
        path.unlink()

    logger.info("Starting pod server %s on socket %s", DEFAULT_NAMESPACE, path)
    asyncio.run(_run_socket(str(path)))
