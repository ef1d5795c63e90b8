"""grb error hierarchy.

Not-found results are ordinary negative outcomes; only StorageUnavailable
is meant to end the process.
"""


class GrbError(Exception):
    """Base class for all grb errors."""


class SnippetNotFound(GrbError, LookupError):
    """No snippet matches the given id or alias."""

    def __init__(self, key):
        self.key = key
        super().__init__(f'Snippet not found for "{key}"')


class StorageUnavailable(GrbError):
    """The store file could not be opened or created."""


class StoreIOError(GrbError, OSError):
    """A read or write failed mid-transaction."""


class ClipboardError(StoreIOError):
    """The system clipboard could not be read or written."""
