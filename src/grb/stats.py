"""Usage statistics derived from a single pass over the store."""

from typing import Dict, Iterable, Optional

from grb.types import Snippet, SnippetStats


class StatsAggregator:
    """Fold snippets (in key order) into a SnippetStats.

    Ties keep the earlier leader: a tag becomes the top tag only when its
    count strictly exceeds the current maximum, and likewise for the most
    used snippet. Untagged snippets are counted in the total only, and a
    snippet never copied cannot be the most used one.
    """

    def __init__(self):
        self.total = 0
        self.tag_counts: Dict[str, int] = {}
        self.top_tag: Optional[str] = None
        self.top_tag_count = 0
        self.most_used: Optional[Snippet] = None
        self._max_use = 0

    def add(self, snippet: Snippet) -> None:
        self.total += 1
        if snippet.tag:
            count = self.tag_counts.get(snippet.tag, 0) + 1
            self.tag_counts[snippet.tag] = count
            if count > self.top_tag_count:
                self.top_tag_count = count
                self.top_tag = snippet.tag
        if snippet.use_count > self._max_use:
            self._max_use = snippet.use_count
            self.most_used = snippet

    def result(self) -> SnippetStats:
        return SnippetStats(
            total=self.total,
            tag_counts=dict(self.tag_counts),
            top_tag=self.top_tag,
            top_tag_count=self.top_tag_count,
            most_used=self.most_used,
        )

    @classmethod
    def collect(cls, snippets: Iterable[Snippet]) -> SnippetStats:
        agg = cls()
        for snippet in snippets:
            agg.add(snippet)
        return agg.result()
