"""Clipboard watcher -- auto-captures new clipboard text as snippets.

Polls the clipboard on a fixed interval and saves every non-empty value
that differs from the last captured one, tagged ``auto``. Per-tick failures
(clipboard unreadable, store busy, capture callback broken) are logged and
the loop carries on. The loop ends when its stop event is set, so the owner
can close the store deterministically.
"""

import logging
import threading
from typing import Callable, Optional

from grb.config import poll_interval
from grb.errors import StoreIOError
from grb.mutations import MutationOps
from grb.types import Snippet

logger = logging.getLogger("grb.daemon")

AUTO_TAG = "auto"


class ClipboardDaemon:
    def __init__(
        self,
        mutations: MutationOps,
        clipboard=None,
        interval: Optional[float] = None,
        tag: str = AUTO_TAG,
        on_capture: Optional[Callable[[Snippet], None]] = None,
    ):
        self.mutations = mutations
        self.clipboard = clipboard if clipboard is not None else mutations.clipboard
        self.interval = poll_interval() if interval is None else interval
        self.tag = tag
        self.on_capture = on_capture
        self.last = ""
        self.captured = 0
        self._stop = threading.Event()

    def tick(self) -> Optional[Snippet]:
        """One polling iteration. Returns the captured snippet, if any."""
        try:
            text = self.clipboard.read()
        except StoreIOError as e:
            logger.warning("Clipboard read failed: %s", e)
            return None
        if not text or text == self.last:
            return None
        try:
            snippet = self.mutations.save(text, tag=self.tag, alias="", to_clipboard=False)
        except StoreIOError as e:
            # last stays put so the next tick retries this value
            logger.warning("Capture failed, will retry: %s", e)
            return None
        self.last = text
        self.captured += 1
        logger.info("Captured snippet %d (%d chars)", snippet.id, len(text))
        if self.on_capture is not None:
            try:
                self.on_capture(snippet)
            except Exception as e:
                logger.warning("Capture callback failed for snippet %d: %s", snippet.id, e)
        return snippet

    def run(self, stop_event: Optional[threading.Event] = None) -> int:
        """Poll until stopped. Returns the number of captured snippets."""
        if stop_event is not None:
            self._stop = stop_event
        logger.info("Watching clipboard every %.2fs", self.interval)
        while not self._stop.is_set():
            self.tick()
            self._stop.wait(self.interval)
        logger.info("Clipboard watcher stopped after %d capture(s)", self.captured)
        return self.captured

    def stop(self) -> None:
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()
