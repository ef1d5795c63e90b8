"""System clipboard access through pyperclip.

Anything that offers ``read() -> str`` and ``write(text)`` can stand in for
SystemClipboard (tests use an in-memory one).
"""

import logging

import pyperclip

from grb.errors import ClipboardError

logger = logging.getLogger("grb.clipboard")


class SystemClipboard:
    def read(self) -> str:
        try:
            text = pyperclip.paste()
        except (pyperclip.PyperclipException, UnicodeError, OSError) as e:
            raise ClipboardError(f"Cannot read clipboard: {e}") from e
        return text or ""

    def write(self, text: str) -> None:
        try:
            pyperclip.copy(text)
        except (pyperclip.PyperclipException, UnicodeError, OSError) as e:
            raise ClipboardError(f"Cannot write clipboard: {e}") from e
        logger.debug("Copied %d chars to clipboard", len(text))
