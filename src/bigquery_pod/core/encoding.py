"""Typed value encoder.

Converts one column value into a JSON-safe Python value according to the
column's declared type. Dispatch goes through ``_ENCODERS``, a mapping from
``FieldType`` to encoder function. ``FieldType.UNKNOWN`` has no entry, so
undeclared types always fail instead of passing through raw.

Encoding rules:
    - INTEGER, FLOAT, BOOLEAN, STRING: native JSON scalars; ``None`` → null
    - TIMESTAMP: ``datetime.isoformat()``; ``None`` → null
    - NUMERIC, BIGNUMERIC: exact decimal string; ``None`` → null
    - DATE, TIME, DATETIME: ``isoformat()``; ``None`` is a type mismatch
    - RECORD: array of sub-field encodings in sub-schema order; ``None`` → null
    - REPEATED mode: array of element encodings
"""

from __future__ import annotations

import datetime
import math
from collections.abc import Mapping
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from .enums import FieldType
from .errors import EncodingError, TypeMismatchError, UnsupportedTypeError
from .schemas import ColumnSchema

Encoder = Callable[[ColumnSchema, Any, str], Any]


def _encode_integer(column: ColumnSchema, value: Any, path: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeMismatchError(path, column.field_type, value)
    return value


def _encode_float(column: ColumnSchema, value: Any, path: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeMismatchError(path, column.field_type, value)
    if isinstance(value, float) and not math.isfinite(value):
        raise EncodingError(
            path, f"Failed to convert field {path} to json: non-finite float {value!r}"
        )
    return value


def _encode_boolean(column: ColumnSchema, value: Any, path: str) -> Optional[bool]:
    if value is None:
        return None
    if not isinstance(value, bool):
        raise TypeMismatchError(path, column.field_type, value)
    return value


def _encode_string(column: ColumnSchema, value: Any, path: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeMismatchError(path, column.field_type, value)
    return value


def _encode_timestamp(column: ColumnSchema, value: Any, path: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, datetime.datetime):
        raise TypeMismatchError(path, column.field_type, value)
    return value.isoformat()


def _encode_decimal(column: ColumnSchema, value: Any, path: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, Decimal) or not value.is_finite():
        raise TypeMismatchError(path, column.field_type, value)
    # fixed-point form: str(Decimal("1E+3")) would give "1E+3"
    return format(value, "f")


def _encode_time(column: ColumnSchema, value: Any, path: str) -> str:
    if not isinstance(value, datetime.time):
        raise TypeMismatchError(path, column.field_type, value)
    return value.isoformat()


def _encode_date(column: ColumnSchema, value: Any, path: str) -> str:
    # datetime is a subclass of date
    if isinstance(value, datetime.datetime) or not isinstance(value, datetime.date):
        raise TypeMismatchError(path, column.field_type, value)
    return value.isoformat()


def _encode_datetime(column: ColumnSchema, value: Any, path: str) -> str:
    if not isinstance(value, datetime.datetime):
        raise TypeMismatchError(path, column.field_type, value)
    return value.isoformat()


def _encode_record(column: ColumnSchema, value: Any, path: str) -> Optional[List[Any]]:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise TypeMismatchError(path, column.field_type, value)
    return [
        encode_value(sub, value.get(sub.name), path=f"{path}.{sub.name}")
        for sub in column.fields
    ]


_ENCODERS: Dict[FieldType, Encoder] = {
    FieldType.INTEGER: _encode_integer,
    FieldType.FLOAT: _encode_float,
    FieldType.BOOLEAN: _encode_boolean,
    FieldType.STRING: _encode_string,
    FieldType.TIMESTAMP: _encode_timestamp,
    FieldType.NUMERIC: _encode_decimal,
    FieldType.BIGNUMERIC: _encode_decimal,
    FieldType.TIME: _encode_time,
    FieldType.DATE: _encode_date,
    FieldType.DATETIME: _encode_datetime,
    FieldType.RECORD: _encode_record,
}


def encode_value(column: ColumnSchema, value: Any, *, path: Optional[str] = None) -> Any:
    """Encode one column value into a JSON-safe value.

    Args:
        column: Schema descriptor of the column.
        value: Runtime value as produced by the data source.
        path: Name used in error messages. Defaults to ``column.name``;
            nested record fields pass their dotted path.

    Returns:
        A value ``json.dumps`` can serialize exactly.

    Raises:
        UnsupportedTypeError: The declared type has no encoder.
        TypeMismatchError: The value does not match the declared type.
        EncodingError: The value matches the type but has no JSON form.

    Examples:
        >>> from decimal import Decimal
        >>> encode_value(ColumnSchema("n", "NUMERIC"), Decimal("12345678901234567890.123456789"))
        '12345678901234567890.123456789'
    """
    path = path or column.name
    encoder = _ENCODERS.get(column.kind)
    if encoder is None:
        raise UnsupportedTypeError(path, column.field_type)

    if column.is_repeated:
        if not isinstance(value, (list, tuple)):
            raise TypeMismatchError(path, f"ARRAY<{column.field_type}>", value)
        return [encoder(column, item, f"{path}[{idx}]") for idx, item in enumerate(value)]

    return encoder(column, value, path)


__all__ = ["encode_value"]
