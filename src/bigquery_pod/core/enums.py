"""Core enumerations used across the package."""

from __future__ import annotations

from enum import Enum


class FieldType(str, Enum):
    """Declared column types the encoder knows how to handle.

    Values are the canonical BigQuery type names. Anything the data source
    reports outside this set resolves to ``UNKNOWN``.
    """

    INTEGER = "INTEGER"
    FLOAT = "FLOAT"
    BOOLEAN = "BOOLEAN"
    STRING = "STRING"
    NUMERIC = "NUMERIC"
    BIGNUMERIC = "BIGNUMERIC"
    TIMESTAMP = "TIMESTAMP"
    DATE = "DATE"
    TIME = "TIME"
    DATETIME = "DATETIME"
    RECORD = "RECORD"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, type_name: str) -> "FieldType":
        """Resolve a type name (canonical or standard SQL alias) to a member.

        Examples:
            >>> FieldType.parse("INT64")
            <FieldType.INTEGER: 'INTEGER'>
            >>> FieldType.parse("GEOGRAPHY")
            <FieldType.UNKNOWN: 'UNKNOWN'>
        """
        name = str(type_name or "").strip().upper()
        name = _ALIASES.get(name, name)
        try:
            return cls(name)
        except ValueError:
            return cls.UNKNOWN


# Standard SQL names reported by some API surfaces
_ALIASES = {
    "INT64": "INTEGER",
    "FLOAT64": "FLOAT",
    "BOOL": "BOOLEAN",
    "DECIMAL": "NUMERIC",
    "BIGDECIMAL": "BIGNUMERIC",
    "STRUCT": "RECORD",
}


class FieldMode(str, Enum):
    """Column modes as reported in a result schema."""

    NULLABLE = "NULLABLE"
    REQUIRED = "REQUIRED"
    REPEATED = "REPEATED"


__all__ = ["FieldType", "FieldMode"]
