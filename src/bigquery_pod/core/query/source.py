"""Data source boundary.

The query operations only need "submit SQL, get a schema and a stream of
typed rows". This module defines that interface as protocols and provides
the BigQuery implementation.

To plug in another engine, implement ``DataSource.execute`` returning an
object that satisfies ``RowStream``:

    ```python
    class MyStream:
        schema = [ColumnSchema("id", "INTEGER")]
        next_page_token = None

        @property
        def pages(self):
            yield [(1,)]

        def __iter__(self):
            yield (1,)

    class MySource:
        def execute(self, sql, *, page_token=None, page_size=None, cancel=None):
            return MyStream()
    ```
"""

from __future__ import annotations

import concurrent.futures
import logging
import threading
import time
from typing import Any, Iterable, Iterator, Optional, Protocol, Sequence

import requests
from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import DefaultCredentialsError, RefreshError, TransportError
from google.cloud import bigquery

from ..errors import ExecutionError, StartupError
from ..schemas import ColumnSchema, schema_from_fields

logger = logging.getLogger(__name__)

# Errors the client raises for failed calls, lost connections and timed-out
# waits. concurrent.futures.TimeoutError is distinct from the builtin before 3.11.
_CLIENT_ERRORS = (
    GoogleAPIError,
    TransportError,
    RefreshError,
    requests.exceptions.RequestException,
    concurrent.futures.TimeoutError,
    TimeoutError,
)

# Seconds between job state checks while a cancellable call waits
_POLL_INTERVAL = 1.0


class RowStream(Protocol):
    """Iterator over one query's rows.

    Iterating the stream yields every row across all pages. ``pages``
    yields the same rows grouped as the data source fetched them; a stream
    is consumed one way or the other, not both.

    Attributes:
        schema: Ordered column descriptors of the result.
        next_page_token: Token to resume after the last page fetched so far,
            or None when the data source has no further pages.
    """

    schema: Sequence[ColumnSchema]

    @property
    def next_page_token(self) -> Optional[str]: ...

    @property
    def pages(self) -> Iterator[Iterable[Sequence[Any]]]:
        """Yield one iterable of value sequences per fetched page."""
        ...

    def __iter__(self) -> Iterator[Sequence[Any]]:
        """Yield one value sequence per row; raise ExecutionError on failure."""
        ...


class DataSource(Protocol):
    """Anything that can run SQL and hand back a RowStream.

    Implementations must be safe to call from several threads at once.
    """

    def execute(
        self,
        sql: str,
        *,
        page_token: Optional[str] = None,
        page_size: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> RowStream:
        """Submit ``sql`` and return its rows.

        Args:
            sql: Query text.
            page_token: Opaque token to resume from; None starts at the beginning.
            page_size: Maximum rows per fetched page.
            cancel: Event that, once set, abandons the query.

        Raises:
            ExecutionError: The query could not be submitted or completed.
        """
        ...


def _wrap_errors(it: Iterator[Any]) -> Iterator[Any]:
    while True:
        try:
            item = next(it)
        except StopIteration:
            return
        except _CLIENT_ERRORS as exc:
            raise ExecutionError(f"Error iterating through results: {exc}") from exc
        yield item


class BigQueryRowStream:
    """RowStream over a ``google.cloud.bigquery.table.RowIterator``."""

    def __init__(self, rows: Any) -> None:
        self._rows = rows
        self.schema = schema_from_fields(rows.schema or ())

    @property
    def next_page_token(self) -> Optional[str]:
        return self._rows.next_page_token

    @property
    def pages(self) -> Iterator[Iterable[Sequence[Any]]]:
        # the iterator updates next_page_token before handing out each page
        for page in _wrap_errors(iter(self._rows.pages)):
            yield [tuple(row.values()) for row in page]

    def __iter__(self) -> Iterator[Sequence[Any]]:
        for row in _wrap_errors(iter(self._rows)):
            yield tuple(row.values())


class BigQuerySource:
    """DataSource backed by a shared ``bigquery.Client``.

    Paginated reads go through ``client.list_rows`` on the job's destination
    table so that page tokens issued by one call stay valid for the next.
    """

    def __init__(self, client: Any, *, timeout: Optional[float] = None) -> None:
        self.client = client
        self.timeout = timeout

    def execute(
        self,
        sql: str,
        *,
        page_token: Optional[str] = None,
        page_size: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> BigQueryRowStream:
        if cancel is not None and cancel.is_set():
            raise ExecutionError("query cancelled")
        try:
            job = self.client.query(sql, timeout=self.timeout)
            if cancel is not None:
                self._wait_cancellable(job, cancel)
            rows = job.result(timeout=self.timeout)
            if page_token is None and page_size is None:
                return BigQueryRowStream(rows)

            destination = job.destination
            if destination is None:
                raise ExecutionError("Query has no destination table to paginate")
            logger.debug(
                "Reading %s (page_size=%s, resuming=%s)",
                destination,
                page_size,
                bool(page_token),
            )
            paged = self.client.list_rows(
                destination,
                selected_fields=rows.schema,
                page_token=page_token,
                page_size=page_size,
                timeout=self.timeout,
            )
            return BigQueryRowStream(paged)
        except _CLIENT_ERRORS as exc:
            raise ExecutionError(f"Failed to execute query: {exc}") from exc

    def _wait_cancellable(self, job: Any, cancel: threading.Event) -> None:
        """Poll the job until it is done, the call is cancelled or time runs out.

        The job is cancelled server-side in the latter two cases.
        """
        deadline = None if self.timeout is None else time.monotonic() + self.timeout
        while not job.done():
            interval = _POLL_INTERVAL
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    self._cancel_job(job)
                    raise ExecutionError(
                        f"Failed to execute query: not finished after {self.timeout} seconds"
                    )
                interval = min(interval, remaining)
            if cancel.wait(interval):
                self._cancel_job(job)
                raise ExecutionError("query cancelled")

    def _cancel_job(self, job: Any) -> None:
        logger.info("Cancelling job %s", getattr(job, "job_id", "?"))
        try:
            job.cancel()
        except _CLIENT_ERRORS as exc:
            logger.warning("Failed to cancel job %s: %s", getattr(job, "job_id", "?"), exc)


def create_client(project: str, *, location: Optional[str] = None) -> bigquery.Client:
    """Create the long-lived BigQuery client shared by all calls."""
    logger.info("Creating BigQuery client for project %s", project)
    try:
        return bigquery.Client(project=project, location=location)
    except DefaultCredentialsError as exc:
        raise StartupError(f"Failed to create client: {exc}") from exc


__all__ = [
    "RowStream",
    "DataSource",
    "BigQueryRowStream",
    "BigQuerySource",
    "create_client",
]
