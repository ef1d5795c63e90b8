"""Snippet mutations.

Each operation does its lookup and its write inside the same write
transaction, so a concurrent writer in another process can never be
overwritten with stale data.
"""

import logging
import time
from typing import Callable, Optional

from grb.clipboard import SystemClipboard
from grb.errors import ClipboardError, SnippetNotFound
from grb.queries import resolve
from grb.sqlite_store import SnippetStore, WriteTransaction
from grb.types import ClearFilter, Snippet

logger = logging.getLogger("grb.mutations")


def _now() -> int:
    return int(time.time())


class MutationOps:
    def __init__(self, store: SnippetStore, clipboard=None):
        self.store = store
        self.clipboard = clipboard if clipboard is not None else SystemClipboard()

    def _require(self, tx: WriteTransaction, id_or_alias: str) -> Snippet:
        snippet = resolve(tx, id_or_alias)
        if snippet is None:
            raise SnippetNotFound(id_or_alias)
        return snippet

    def save(self, text: str, tag: str = "", alias: str = "", to_clipboard: bool = True) -> Snippet:
        """Store a new snippet and, by default, put its text on the clipboard.

        The snippet stays saved even if the clipboard write fails afterwards.
        """
        def _save(tx: WriteTransaction) -> Snippet:
            snippet = Snippet(
                id=tx.next_id(),
                text=text,
                tag=tag or "",
                alias=alias or "",
                pinned=False,
                use_count=0,
                updated_at=_now(),
            )
            tx.put(snippet)
            return snippet

        snippet = self.store.update(_save)
        logger.info("Saved snippet %d (tag=%r, alias=%r)", snippet.id, snippet.tag, snippet.alias)
        if to_clipboard:
            try:
                self.clipboard.write(text)
            except ClipboardError as e:
                logger.warning("Snippet %d saved but not copied: %s", snippet.id, e)
        return snippet

    def copy(self, id_or_alias: str) -> Snippet:
        """Copy a snippet to the clipboard and count the use.

        Returns the snippet after the increment. If the clipboard write
        fails nothing is written.
        """
        def _copy(tx: WriteTransaction) -> Snippet:
            snippet = self._require(tx, id_or_alias)
            self.clipboard.write(snippet.text)
            updated = snippet.replace(use_count=snippet.use_count + 1, updated_at=_now())
            tx.put(updated)
            return updated

        return self.store.update(_copy)

    def pin(self, id_or_alias: str) -> Snippet:
        """Toggle the pinned flag."""
        def _pin(tx: WriteTransaction) -> Snippet:
            snippet = self._require(tx, id_or_alias)
            updated = snippet.replace(pinned=not snippet.pinned, updated_at=_now())
            tx.put(updated)
            return updated

        return self.store.update(_pin)

    def rename(self, id_or_alias: str, new_alias: str) -> Snippet:
        """Replace the alias. Duplicate aliases are allowed."""
        def _rename(tx: WriteTransaction) -> Snippet:
            snippet = self._require(tx, id_or_alias)
            updated = snippet.replace(alias=new_alias or "")
            tx.put(updated)
            return updated

        return self.store.update(_rename)

    def delete(self, id_or_alias: str) -> Snippet:
        """Remove one snippet and return what was removed."""
        def _delete(tx: WriteTransaction) -> Snippet:
            snippet = self._require(tx, id_or_alias)
            tx.delete(snippet.id)
            return snippet

        snippet = self.store.update(_delete)
        logger.info("Deleted snippet %d", snippet.id)
        return snippet

    def clear(self, clear_filter: ClearFilter) -> int:
        """Delete every snippet the filter selects; returns how many."""
        def _clear(tx: WriteTransaction) -> int:
            deleted = 0
            for snippet in tx.scan():
                if clear_filter.matches(snippet):
                    tx.delete(snippet.id)
                    deleted += 1
            return deleted

        deleted = self.store.update(_clear)
        logger.info("Cleared %d snippet(s) with %r", deleted, clear_filter)
        return deleted

    # ------------------------------------------------------------------
    # Edit -- read, hand off to an editor, write back
    # ------------------------------------------------------------------

    def begin_edit(self, id_or_alias: str) -> Snippet:
        snippet = self.store.view(lambda view: resolve(view, id_or_alias))
        if snippet is None:
            raise SnippetNotFound(id_or_alias)
        return snippet

    def finish_edit(self, snippet_id: int, new_text: str) -> Snippet:
        """Write edited text back, keeping every other field.

        Fails with SnippetNotFound if the snippet was deleted meanwhile.
        """
        def _finish(tx: WriteTransaction) -> Snippet:
            current = tx.get(snippet_id)
            if current is None:
                raise SnippetNotFound(str(snippet_id))
            updated = current.replace(text=new_text, updated_at=_now())
            tx.put(updated)
            return updated

        return self.store.update(_finish)

    def edit(self, id_or_alias: str, editor: Callable[[str], Optional[str]]) -> Snippet:
        """Run ``editor`` on the current text and store its result.

        An editor returning None leaves the snippet untouched.
        """
        original = self.begin_edit(id_or_alias)
        new_text = editor(original.text)
        if new_text is None:
            return original
        return self.finish_edit(original.id, new_text)
