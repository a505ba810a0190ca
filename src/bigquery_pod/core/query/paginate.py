"""Paginated query operation.

One call reads exactly one page as fetched by the data source, so the
token handed back always resumes right after the rows returned.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from ..errors import ExecutionError
from ..rows import QueryPage, dumps_page
from .scan import load_rows
from .source import DataSource

logger = logging.getLogger(__name__)


def fetch_page(
    source: DataSource,
    sql: str,
    token: str,
    page_size: int,
    *,
    cancel: Optional[threading.Event] = None,
) -> QueryPage:
    """Run ``sql`` and read one page of at most ``page_size`` rows.

    The token is forwarded to the data source verbatim; an empty token
    starts from the beginning. The data source may return a short page;
    the returned token then resumes after it. A page longer than
    ``page_size`` cannot be split without losing rows, so it fails.

    Raises:
        ValueError: If ``page_size`` is not a positive integer.
        ExecutionError: If running the query or any pull fails.
    """
    if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size <= 0:
        raise ValueError(f"page_size must be a positive integer, got {page_size!r}")

    stream = source.execute(
        sql, page_token=token or None, page_size=page_size, cancel=cancel
    )
    first = next(iter(stream.pages), ())
    rows = tuple(load_rows(first, stream.schema, limit=page_size + 1, cancel=cancel))
    if len(rows) > page_size:
        raise ExecutionError(
            f"Data source returned more than page_size={page_size} rows in one page"
        )
    next_token = stream.next_page_token or ""
    logger.debug("Page returned %d rows (more=%s)", len(rows), bool(next_token))
    return QueryPage(rows=rows, token=next_token)


def run_page(
    source: DataSource,
    sql: str,
    token: str,
    page_size: int,
    *,
    cancel: Optional[threading.Event] = None,
) -> str:
    """Run ``sql`` and return one page as ``{"rows": [...], "token": "..."}``."""
    return dumps_page(fetch_page(source, sql, token, page_size, cancel=cancel))
