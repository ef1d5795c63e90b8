"""Record codec -- one snippet <-> one stored byte string.

Records are JSON arrays ``[text, tag, alias, pinned, use_count, updated_at]``.
JSON escaping keeps any payload intact, whatever characters it contains.

Stores written by the pipe-joined format (``text|tag|alias|pinned|count|ts``)
still decode: anything that is not a JSON array goes through the legacy
positional split.
"""

import json
import logging
from typing import Any, List

from grb.types import Snippet

logger = logging.getLogger("grb.codec")

FIELD_COUNT = 6
LEGACY_DELIMITER = "|"


def encode(snippet: Snippet) -> bytes:
    fields = [
        snippet.text,
        snippet.tag,
        snippet.alias,
        bool(snippet.pinned),
        int(snippet.use_count),
        int(snippet.updated_at),
    ]
    payload = json.dumps(fields, ensure_ascii=False, separators=(",", ":"))
    return payload.encode("utf-8", errors="surrogatepass")


def decode(data, snippet_id: int) -> Snippet:
    """Decode a stored value. Missing trailing fields take their defaults."""
    if isinstance(data, memoryview):
        data = data.tobytes()
    raw = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else str(data)
    fields = _parse_json(raw)
    if fields is None:
        fields = raw.split(LEGACY_DELIMITER)
    if len(fields) < FIELD_COUNT:
        logger.debug("Snippet %s has %d/%d fields, defaulting the rest",
                     snippet_id, len(fields), FIELD_COUNT)

    return Snippet(
        id=snippet_id,
        text=_as_str(_field(fields, 0)),
        tag=_as_str(_field(fields, 1)),
        alias=_as_str(_field(fields, 2)),
        pinned=_as_bool(_field(fields, 3)),
        use_count=max(0, _as_int(_field(fields, 4))),
        updated_at=_as_int(_field(fields, 5)),
    )


def _parse_json(raw: str):
    if not raw.startswith("["):
        return None
    try:
        value = json.loads(raw)
    except ValueError:
        # e.g. a legacy record whose text starts with "["
        return None
    return value if isinstance(value, list) else None


def _field(fields: List[Any], index: int) -> Any:
    return fields[index] if index < len(fields) else None


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return isinstance(value, str) and value.strip() == "true"


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        digits = value.strip()
        # Leading-integer parse, the way legacy counters were read
        end = 0
        while end < len(digits) and (digits[end].isdigit() or (end == 0 and digits[end] in "+-")):
            end += 1
        try:
            return int(digits[:end])
        except ValueError:
            return 0
    return 0
