"""grb: smart clipboard & snippet manager.

Direct Python API::

    from grb import SnippetStore, MutationOps, QueryEngine

    with SnippetStore() as store:
        MutationOps(store).save("buy milk", tag="errand", alias="milk")
        print(QueryEngine(store).lookup("milk").text)

Run ``grb daemon`` to capture clipboard history in the background.
"""

__version__ = "0.3.0"

from grb.errors import (
    ClipboardError,
    GrbError,
    SnippetNotFound,
    StorageUnavailable,
    StoreIOError,
)
from grb.types import ClearFilter, Snippet, SnippetListing, SnippetStats
from grb.sqlite_store import SnippetStore
from grb.queries import QueryEngine
from grb.mutations import MutationOps
from grb.stats import StatsAggregator
from grb.daemon import ClipboardDaemon

__all__ = [
    "SnippetStore",
    # Operations
    "QueryEngine",
    "MutationOps",
    "StatsAggregator",
    "ClipboardDaemon",
    # Data model
    "Snippet",
    "ClearFilter",
    "SnippetListing",
    "SnippetStats",
    # Errors
    "GrbError",
    "SnippetNotFound",
    "StorageUnavailable",
    "StoreIOError",
    "ClipboardError",
    # Meta
    "__version__",
]
