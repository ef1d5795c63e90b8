"""grb data model -- snippet values, clear filters and query results."""

from typing import Any, Dict, List, NamedTuple, Optional, Tuple


class Snippet:
    """One stored text entry with its metadata.

    Instances are transient copies: changing one does nothing until it is
    passed back through a mutation.
    """

    __slots__ = ("id", "text", "tag", "alias", "pinned", "use_count", "updated_at")

    def __init__(
        self,
        id: int,
        text: str,
        tag: str = "",
        alias: str = "",
        pinned: bool = False,
        use_count: int = 0,
        updated_at: int = 0,
    ):
        self.id = id
        self.text = text
        self.tag = tag
        self.alias = alias
        self.pinned = pinned
        self.use_count = use_count
        self.updated_at = updated_at

    @property
    def key(self) -> str:
        """Decimal form of the id, the way users type it."""
        return str(self.id)

    def replace(self, **changes) -> "Snippet":
        values = {name: getattr(self, name) for name in self.__slots__}
        values.update(changes)
        return Snippet(**values)

    def to_dict(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in self.__slots__}

    def __eq__(self, other):
        if not isinstance(other, Snippet):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        preview = self.text[:30].replace("\n", " ")
        return f"Snippet(id={self.id}, text={preview!r}, tag={self.tag!r}, alias={self.alias!r}, pinned={self.pinned})"


class ClearFilter:
    """Selects which snippets ``clear`` removes."""

    ALL = "all"
    BY_TAG = "tag"
    UNPINNED = "unpinned"

    __slots__ = ("kind", "tag")

    def __init__(self, kind: str, tag: str = ""):
        if kind not in (self.ALL, self.BY_TAG, self.UNPINNED):
            raise ValueError(f"Unknown clear filter: {kind}")
        self.kind = kind
        self.tag = tag

    @classmethod
    def all(cls) -> "ClearFilter":
        return cls(cls.ALL)

    @classmethod
    def by_tag(cls, tag: str) -> "ClearFilter":
        return cls(cls.BY_TAG, tag)

    @classmethod
    def unpinned(cls) -> "ClearFilter":
        return cls(cls.UNPINNED)

    def matches(self, snippet: Snippet) -> bool:
        if self.kind == self.ALL:
            return True
        if self.kind == self.BY_TAG:
            return bool(self.tag) and snippet.tag == self.tag
        return not snippet.pinned

    def __repr__(self) -> str:
        if self.kind == self.BY_TAG:
            return f"ClearFilter.by_tag({self.tag!r})"
        return f"ClearFilter.{self.kind}()"


class SnippetListing(NamedTuple):
    """Pinned snippets first, then the rest, each in key order."""

    pinned: List[Snippet]
    others: List[Snippet]

    @property
    def snippets(self) -> List[Snippet]:
        return self.pinned + self.others

    @property
    def total(self) -> int:
        return len(self.pinned) + len(self.others)


class SnippetStats(NamedTuple):
    total: int
    tag_counts: Dict[str, int]
    top_tag: Optional[str]
    top_tag_count: int
    most_used: Optional[Snippet]

    def tag_breakdown(self) -> List[Tuple[str, int]]:
        """Tags by descending count, ties in tag order."""
        return sorted(self.tag_counts.items(), key=lambda item: (-item[1], item[0]))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "tag_counts": dict(self.tag_breakdown()),
            "top_tag": self.top_tag,
            "top_tag_count": self.top_tag_count,
            "most_used": self.most_used.to_dict() if self.most_used else None,
        }
