"""Core query operations.

Exposes the two operations served by the pod layer and the data source
boundary they run against.
"""

from .source import BigQuerySource, DataSource, RowStream, create_client
from .scan import collect_rows, load_rows, pull_rows, scan_all, run_full
from .paginate import fetch_page, run_page

__all__ = [
    "BigQuerySource",
    "DataSource",
    "RowStream",
    "create_client",
    "load_rows",
    "pull_rows",
    "collect_rows",
    "scan_all",
    "run_full",
    "fetch_page",
    "run_page",
]
