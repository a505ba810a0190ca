"""BigQuery pod: run queries and return typed rows as JSON.

The package exposes two remote-callable operations (`query` and
`query-token`) through a FastMCP server listening on a local socket. The
core converts schema-typed BigQuery rows into JSON without losing precision
and drives page-at-a-time iteration with opaque continuation tokens.
"""

__all__ = [
    "__version__",
]

__version__ = "0.1.0"
