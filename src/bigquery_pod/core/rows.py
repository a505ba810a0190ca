"""Row adapter and result payload models.

This module defines:
- Column: one (schema descriptor, runtime value) pair
- Row: an ordered, immutable sequence of columns serializing to a JSON array
- QueryPage: one page of rows plus the continuation token for the next page

Type validation is deferred to serialization time: building a Row never
fails on a bad value, ``Row.to_json()`` does.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from .encoding import encode_value
from .schemas import ColumnSchema


@dataclass(frozen=True)
class Column:
    """A runtime value paired with its schema descriptor."""

    schema: ColumnSchema
    value: Any

    def to_json(self) -> Any:
        return encode_value(self.schema, self.value)


@dataclass(frozen=True)
class Row:
    """One result record, columns in source schema order.

    Examples:
        >>> row = Row.load([1, "a"], [ColumnSchema("id", "INTEGER"), ColumnSchema("s", "STRING")])
        >>> row.to_json()
        [1, 'a']
    """

    columns: Tuple[Column, ...]

    @classmethod
    def load(cls, values: Sequence[Any], schema: Sequence[ColumnSchema]) -> "Row":
        """Pair the i-th value with the i-th schema entry.

        Raises:
            ValueError: If values and schema differ in length.
        """
        if len(values) != len(schema):
            raise ValueError(
                f"Row has {len(values)} values but schema has {len(schema)} columns"
            )
        return cls(columns=tuple(Column(s, v) for s, v in zip(schema, values)))

    def to_json(self) -> List[Any]:
        """Encode every column; the first failing column fails the whole row."""
        return [col.to_json() for col in self.columns]

    def __len__(self) -> int:
        return len(self.columns)


@dataclass(frozen=True)
class QueryPage:
    """Result of a paginated query call.

    Attributes:
        rows: Rows of this page, in result order.
        token: Continuation token for the next page; empty when exhausted.
    """

    rows: Tuple[Row, ...]
    token: str = ""

    @property
    def exhausted(self) -> bool:
        return not self.token

    def to_json(self) -> Dict[str, Any]:
        return {"rows": rows_to_json(self.rows), "token": self.token}


def rows_to_json(rows: Iterable[Row]) -> List[List[Any]]:
    return [row.to_json() for row in rows]


def dumps_rows(rows: Iterable[Row]) -> str:
    """Serialize rows to a JSON array.

    The full payload is encoded before any text is produced, so an encoding
    error never yields a truncated array.
    """
    return json.dumps(rows_to_json(rows), allow_nan=False)


def dumps_page(page: QueryPage) -> str:
    """Serialize a page to ``{"rows": [...], "token": "..."}``."""
    return json.dumps(page.to_json(), allow_nan=False)


__all__ = ["Column", "Row", "QueryPage", "rows_to_json", "dumps_rows", "dumps_page"]
