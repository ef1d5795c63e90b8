"""Read-only snippet queries.

Every query runs inside one read view and scans the bucket in key order;
only canonical id lookups go straight to the primary key.
"""

import logging
from typing import Callable, List, Optional

from grb.errors import SnippetNotFound
from grb.sqlite_store import ReadView, SnippetStore
from grb.stats import StatsAggregator
from grb.types import Snippet, SnippetListing, SnippetStats

logger = logging.getLogger("grb.queries")


_MAX_ID = 2**63 - 1


def _is_canonical_id(value: str) -> bool:
    """True for "7" or "42" but not "07", "+7", "٧" or anything past INTEGER range."""
    if not (value.isascii() and value.isdigit()) or len(value) > len(str(_MAX_ID)):
        return False
    return str(int(value)) == value and int(value) <= _MAX_ID


def resolve(view: ReadView, id_or_alias: str) -> Optional[Snippet]:
    """Find the snippet an ``id_or_alias`` argument refers to.

    An exact id match wins over alias matches; among aliases the first in
    key order wins, since aliases are not unique. An empty argument never
    matches (an empty alias means "no alias").
    """
    if not id_or_alias:
        return None
    if _is_canonical_id(id_or_alias):
        snippet = view.get(int(id_or_alias))
        if snippet is not None:
            return snippet
    for snippet in view.scan():
        if snippet.alias == id_or_alias:
            return snippet
    return None


def partition(snippets, predicate: Optional[Callable[[Snippet], bool]] = None) -> SnippetListing:
    """Split snippets into pinned and others, keeping their order."""
    pinned: List[Snippet] = []
    others: List[Snippet] = []
    for snippet in snippets:
        if predicate is not None and not predicate(snippet):
            continue
        (pinned if snippet.pinned else others).append(snippet)
    return SnippetListing(pinned=pinned, others=others)


def matches_query(snippet: Snippet, query: str) -> bool:
    """Case-insensitive substring match on text, tag or alias."""
    needle = query.casefold()
    return (
        needle in snippet.text.casefold()
        or needle in snippet.tag.casefold()
        or needle in snippet.alias.casefold()
    )


class QueryEngine:
    def __init__(self, store: SnippetStore):
        self.store = store

    def lookup(self, id_or_alias: str) -> Snippet:
        snippet = self.store.view(lambda view: resolve(view, id_or_alias))
        if snippet is None:
            raise SnippetNotFound(id_or_alias)
        return snippet

    def all(self) -> List[Snippet]:
        return self.store.view(lambda view: list(view.scan()))

    def list(self) -> SnippetListing:
        return self.store.view(lambda view: partition(view.scan()))

    def search(self, query: str) -> SnippetListing:
        """Snippets whose text, tag or alias contains ``query``.

        The empty query matches everything.
        """
        if not query:
            return self.list()
        listing = self.store.view(
            lambda view: partition(view.scan(), lambda s: matches_query(s, query))
        )
        logger.debug("search %r: %d pinned, %d others", query,
                     len(listing.pinned), len(listing.others))
        return listing

    def stats(self) -> SnippetStats:
        return self.store.view(lambda view: StatsAggregator.collect(view.scan()))

    def count(self) -> int:
        return self.store.view(lambda view: view.count())
