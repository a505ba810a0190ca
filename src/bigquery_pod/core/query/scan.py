"""Full-scan query operation.

Rows are pulled one at a time and paired with the result schema. A scan
either returns every row or raises; nothing partial reaches the caller.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Iterable, Iterator, List, Optional, Sequence

from ..errors import ExecutionError
from ..rows import Row, dumps_rows
from ..schemas import ColumnSchema
from .source import DataSource, RowStream

logger = logging.getLogger(__name__)


def load_rows(
    records: Iterable[Sequence[Any]],
    schema: Sequence[ColumnSchema],
    *,
    limit: Optional[int] = None,
    cancel: Optional[threading.Event] = None,
) -> Iterator[Row]:
    """Pull records one at a time, at most ``limit`` of them, as Rows.

    Stops early when the records run out. The cancel event is checked
    before every pull.
    """
    schema = list(schema)
    it = iter(records)
    pulled = 0
    while limit is None or pulled < limit:
        if cancel is not None and cancel.is_set():
            raise ExecutionError("query cancelled")
        try:
            values = next(it)
        except StopIteration:
            return
        try:
            row = Row.load(values, schema)
        except ValueError as exc:
            raise ExecutionError(f"Malformed record: {exc}") from exc
        pulled += 1
        yield row


def pull_rows(
    stream: RowStream,
    *,
    limit: Optional[int] = None,
    cancel: Optional[threading.Event] = None,
) -> Iterator[Row]:
    """Pull rows from ``stream`` across all of its pages."""
    return load_rows(stream, stream.schema, limit=limit, cancel=cancel)


def collect_rows(
    stream: RowStream,
    *,
    max_rows: Optional[int] = None,
    cancel: Optional[threading.Event] = None,
) -> List[Row]:
    """Pull every row of ``stream`` into memory.

    Args:
        max_rows: Optional cap. A result with more rows fails instead of
            being truncated.
    """
    limit = None if max_rows is None else max_rows + 1
    results = list(pull_rows(stream, limit=limit, cancel=cancel))
    if max_rows is not None and len(results) > max_rows:
        raise ExecutionError(f"Query returned more than max_rows={max_rows} rows")
    logger.debug("Full scan returned %d rows", len(results))
    return results


def scan_all(
    source: DataSource,
    sql: str,
    *,
    max_rows: Optional[int] = None,
    cancel: Optional[threading.Event] = None,
) -> List[Row]:
    """Run ``sql`` and pull every row into memory.

    Either all rows are returned or an ExecutionError is raised; rows
    accumulated before a failure are discarded.
    """
    stream = source.execute(sql, cancel=cancel)
    return collect_rows(stream, max_rows=max_rows, cancel=cancel)


def run_full(
    source: DataSource,
    sql: str,
    *,
    max_rows: Optional[int] = None,
    cancel: Optional[threading.Event] = None,
) -> str:
    """Run ``sql`` and return all rows as a JSON array."""
    return dumps_rows(scan_all(source, sql, max_rows=max_rows, cancel=cancel))
