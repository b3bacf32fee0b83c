"""Pattern-only search requests: a quoted phrase or a list of #tags."""

import re
from typing import Optional

_TAG = re.compile(r"#([^\s#]+)")
_TAG_TRAILING = re.compile(r"[,\s;|&+]+$")
_TAG_SEPARATORS = re.compile(r"^[\s,;|&+]*$")


def get_quoted_query(text: str) -> Optional[str]:
    """Inner text of a fully quoted utterance (matching quotes, non-empty)."""
    text = text.strip()
    if len(text) < 3 or text[0] not in "\"'" or text[-1] != text[0]:
        return None
    inner = text[1:-1]
    if not inner.strip() or text[0] in inner:
        return None
    return inner.strip()


def get_tags_only(text: str) -> list[str]:
    """Tags of an utterance that consists of nothing but ``#tag`` tokens."""
    text = text.strip()
    if not text.startswith("#"):
        return []
    if not _TAG_SEPARATORS.match(_TAG.sub("", text)):
        return []
    tags = [_TAG_TRAILING.sub("", m) for m in _TAG.findall(text)]
    return [t for t in dict.fromkeys(tags) if t]


def exact_search_operations(text: str) -> Optional[list[dict]]:
    """Search operations for a quoted or tags-only query, else None."""
    quoted = get_quoted_query(text)
    if quoted:
        return [
            {"filenames": [quoted], "keywords": []},
            {"keywords": [f'"{quoted}"']},
        ]
    tags = get_tags_only(text)
    if tags:
        return [{"properties": [{"name": "tag", "value": t} for t in tags]}]
    return None
