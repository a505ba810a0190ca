"""Shared pytest configuration and fixtures for pod testing.

Provides an in-memory data source that behaves like the BigQuery row
iterator: rows are fetched a page at a time, and ``next_page_token`` is
updated whenever a page is fetched.
"""

from __future__ import annotations

import datetime
from decimal import Decimal
from typing import Any, List, Optional, Sequence

import pytest

from bigquery_pod.core.errors import ExecutionError
from bigquery_pod.core.schemas import ColumnSchema


class FakeStream:
    """RowStream over a list of value tuples."""

    def __init__(
        self,
        schema: Sequence[ColumnSchema],
        rows: List[Sequence[Any]],
        *,
        start: int = 0,
        page_size: Optional[int] = None,
        fail_at: Optional[int] = None,
    ) -> None:
        self.schema = list(schema)
        self._rows = rows
        self._start = start
        self._page_size = page_size or max(1, len(rows))
        self._fail_at = fail_at
        self.next_page_token: Optional[str] = None
        self.pulled = 0
        self.pages_fetched = 0

    def _page(self, pos: int, end: int):
        for idx in range(pos, end):
            if self._fail_at is not None and idx == self._fail_at:
                raise ExecutionError(f"Error iterating through results: row {idx}")
            self.pulled += 1
            yield self._rows[idx]

    @property
    def pages(self):
        pos = self._start
        while pos < len(self._rows):
            end = min(pos + self._page_size, len(self._rows))
            self.next_page_token = f"page-{end}" if end < len(self._rows) else None
            self.pages_fetched += 1
            yield self._page(pos, end)
            pos = end

    def __iter__(self):
        for page in self.pages:
            yield from page


class FakeSource:
    """DataSource returning canned rows; tokens are opaque ``page-N`` strings.

    ``batch_size`` is the most rows the source puts in one page; like
    BigQuery it never exceeds the requested ``page_size`` unless
    ``ignore_page_size`` is set.
    """

    def __init__(
        self,
        schema: Sequence[ColumnSchema],
        rows: List[Sequence[Any]],
        *,
        fail_at: Optional[int] = None,
        execute_error: Optional[Exception] = None,
        batch_size: Optional[int] = None,
        ignore_page_size: bool = False,
    ) -> None:
        self.schema = list(schema)
        self.rows = rows
        self.batch_size = batch_size
        self.ignore_page_size = ignore_page_size
        self.fail_at = fail_at
        self.execute_error = execute_error
        self.calls: List[tuple] = []
        self.streams: List[FakeStream] = []
        self.cancel_events: List[Any] = []

    def _fetch_size(self, page_size: Optional[int]) -> Optional[int]:
        if self.batch_size is None or self.ignore_page_size or page_size is None:
            return self.batch_size or page_size
        return min(self.batch_size, page_size)

    def execute(self, sql, *, page_token=None, page_size=None, cancel=None):
        self.calls.append((sql, page_token, page_size))
        self.cancel_events.append(cancel)
        if self.execute_error is not None:
            raise self.execute_error
        start = int(page_token.split("-", 1)[1]) if page_token else 0
        stream = FakeStream(
            self.schema,
            self.rows,
            start=start,
            page_size=self._fetch_size(page_size),
            fail_at=self.fail_at,
        )
        self.streams.append(stream)
        return stream


@pytest.fixture
def sales_schema() -> List[ColumnSchema]:
    """Mixed-type schema: integer, string, numeric, date."""
    return [
        ColumnSchema("id", "INTEGER"),
        ColumnSchema("region", "STRING"),
        ColumnSchema("amount", "NUMERIC"),
        ColumnSchema("sold_on", "DATE"),
    ]


@pytest.fixture
def sales_rows() -> List[tuple]:
    """Five rows matching ``sales_schema``."""
    return [
        (1, "north", Decimal("10.50"), datetime.date(2024, 1, 1)),
        (2, "south", Decimal("99999999999999999999.999999999"), datetime.date(2024, 1, 2)),
        (3, "east", None, datetime.date(2024, 1, 3)),
        (4, "west", Decimal("0.000000001"), datetime.date(2024, 1, 4)),
        (5, "north", Decimal("-3"), datetime.date(2024, 1, 5)),
    ]


@pytest.fixture
def sales_json() -> List[list]:
    """Expected JSON encoding of ``sales_rows``."""
    return [
        [1, "north", "10.50", "2024-01-01"],
        [2, "south", "99999999999999999999.999999999", "2024-01-02"],
        [3, "east", None, "2024-01-03"],
        [4, "west", "0.000000001", "2024-01-04"],
        [5, "north", "-3", "2024-01-05"],
    ]


@pytest.fixture
def make_source():
    """Factory fixture building a FakeSource."""

    def _make(schema, rows, **kwargs) -> FakeSource:
        return FakeSource(schema, rows, **kwargs)

    return _make


@pytest.fixture
def sales_source(make_source, sales_schema, sales_rows) -> FakeSource:
    return make_source(sales_schema, sales_rows)
