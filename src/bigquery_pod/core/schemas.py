"""Result schema descriptors.

A query result carries an ordered list of column descriptors. This module
defines the package's own descriptor so the core does not depend on the
BigQuery client's ``SchemaField`` beyond the conversion helpers here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Tuple

from .enums import FieldMode, FieldType


@dataclass(frozen=True)
class ColumnSchema:
    """Descriptor for one result column.

    Attributes:
        name: Column name, unique within a row.
        field_type: Declared type name exactly as the data source reported it.
        mode: NULLABLE, REQUIRED or REPEATED.
        fields: Ordered sub-column descriptors (only for RECORD columns).

    Examples:
        >>> ColumnSchema("amount", "NUMERIC").kind
        <FieldType.NUMERIC: 'NUMERIC'>
    """

    name: str
    field_type: str
    mode: str = FieldMode.NULLABLE.value
    fields: Tuple["ColumnSchema", ...] = field(default_factory=tuple)

    @property
    def kind(self) -> FieldType:
        return FieldType.parse(self.field_type)

    @property
    def is_repeated(self) -> bool:
        return str(self.mode).upper() == FieldMode.REPEATED.value

    @classmethod
    def from_field(cls, schema_field: Any) -> "ColumnSchema":
        """Build a descriptor from a ``google.cloud.bigquery.SchemaField``."""
        return cls(
            name=str(schema_field.name),
            field_type=str(schema_field.field_type),
            mode=str(schema_field.mode or FieldMode.NULLABLE.value).upper(),
            fields=tuple(cls.from_field(f) for f in (schema_field.fields or ())),
        )


def schema_from_fields(schema_fields: Iterable[Any]) -> List[ColumnSchema]:
    """Convert a BigQuery schema (list of ``SchemaField``) to descriptors."""
    return [ColumnSchema.from_field(f) for f in schema_fields]


__all__ = ["ColumnSchema", "schema_from_fields"]
