# src/design2code/utils/digest.py

import json
import hashlib
from typing import Any, Iterable, Tuple


def content_digest(data: str | bytes) -> str:
    """sha256 hex digest of raw content."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def canonical_json(payload: Any) -> str:
    """
    Stable JSON encoding: sorted keys, no insignificant whitespace, unicode kept as-is.
    Two payloads that compare equal always produce the same string.
    """
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def json_digest(payload: Any) -> str:
    return content_digest(canonical_json(payload))


def path_items_digest(items: Iterable[Tuple[str, str]]) -> str:
    """
    Content address of one path conversion unit.
    `items` is an ordered sequence of (path_data, fill_ref); order is significant.
    """
    joined = "|".join(f"{data}:{fill}" for data, fill in items)
    return content_digest(joined)
