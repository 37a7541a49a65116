"""Accept header parsing.

Produces the client's acceptable media types ranked by quality, the same
ordering a conventional content negotiator returns when no candidate list
is supplied: ``q`` descending, ties in header order.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from starlette.requests import Request

HTML = "text/html"
JSON = "application/json"


def _split_outside_quotes(value: str, sep: str) -> List[str]:
    parts: List[str] = []
    current: List[str] = []
    quoted = False
    for char in value:
        if char == '"':
            quoted = not quoted
        if char == sep and not quoted:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return parts


def _parse_entry(entry: str) -> Optional[Tuple[str, float]]:
    params = _split_outside_quotes(entry, ";")
    media_type = params[0].strip()
    main, slash, sub = media_type.partition("/")
    if not slash or not main or not sub or "/" in sub:
        return None

    quality = 1.0
    for param in params[1:]:
        key, eq, value = param.partition("=")
        if eq and key.strip().lower() == "q":
            try:
                quality = float(value.strip().strip('"'))
            except ValueError:
                return None
    return f"{main}/{sub}", quality


def accepted_media_types(header: Optional[str]) -> List[str]:
    """Return the media types in *header*, most preferred first.

    A missing header accepts anything (``["*/*"]``); an empty one accepts
    nothing. Entries with ``q=0`` and malformed entries are dropped.
    """
    if header is None:
        return ["*/*"]

    ranked: List[Tuple[float, int, str]] = []
    for index, entry in enumerate(_split_outside_quotes(header, ",")):
        parsed = _parse_entry(entry)
        if parsed is None:
            continue
        media_type, quality = parsed
        if quality <= 0:
            continue
        ranked.append((-quality, index, media_type))
    ranked.sort()
    return [media_type for _, _, media_type in ranked]


def prefers_html(request: Request) -> bool:
    """True when ``text/html`` ranks ahead of ``application/json``.

    Only the first of the two that appears in the ranked list counts; a
    wildcard never matches either.
    """
    for media_type in accepted_media_types(request.headers.get("accept")):
        if media_type in (HTML, JSON):
            return media_type == HTML
    return False
