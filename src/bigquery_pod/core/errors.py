"""Error types raised by the pod.

Hierarchy:
    PodError
    ├── StartupError        misconfiguration, fatal to the process
    ├── ExecutionError      query submission or iteration failure, call-scoped
    └── EncodingError       column value cannot be converted to JSON, call-scoped
        ├── TypeMismatchError
        └── UnsupportedTypeError
"""

from __future__ import annotations

from typing import Optional


class PodError(Exception):
    """Base class for all pod errors."""


class StartupError(PodError):
    """The process cannot start (missing socket path, project, bad config)."""


class ExecutionError(PodError):
    """Running a query or pulling its rows failed."""


class EncodingError(PodError):
    """A column value could not be encoded as JSON.

    Attributes:
        column: Name of the offending column (dotted path for nested fields).
    """

    def __init__(self, column: str, message: Optional[str] = None) -> None:
        self.column = column
        super().__init__(message or f"Failed to convert field {column} to json")


class TypeMismatchError(EncodingError):
    """The runtime value is not compatible with the column's declared type."""

    def __init__(self, column: str, type_name: str, value: object) -> None:
        self.type_name = type_name
        super().__init__(
            column,
            f"Failed to convert field {column} to json: "
            f"expected {type_name}, got {type(value).__name__}",
        )


class UnsupportedTypeError(EncodingError):
    """The column's declared type has no encoder."""

    def __init__(self, column: str, type_name: str) -> None:
        self.type_name = type_name
        super().__init__(
            column, f"Unsure how to convert field {column} and type {type_name}"
        )


__all__ = [
    "PodError",
    "StartupError",
    "ExecutionError",
    "EncodingError",
    "TypeMismatchError",
    "UnsupportedTypeError",
]
