"""Wiki-link extraction.

Recognized forms::

    [[Name]]            -> "Name"
    [[Name|Alias]]      -> "Name"
    [[Name#Heading]]    -> "Name"
    [[Name^block-id]]   -> "Name"
    [[#Heading]]        -> (dropped, in-document jump)
    [[^block-id]]       -> (dropped, in-document jump)
"""

from __future__ import annotations

import re

_WIKILINK_RE = re.compile(r"\[\[([^\]]+)\]\]")


def extract_links(text: str | None) -> list[str]:
    """Return the raw link targets of every ``[[...]]`` in *text*.

    Targets keep document order and are not de-duplicated.
    """
    links: list[str] = []
    if not text or not isinstance(text, str):
        return links

    for match in _WIKILINK_RE.finditer(text):
        raw = match.group(1).strip()
        if not raw:
            continue

        pipe_idx = raw.find("|")
        if pipe_idx >= 0:
            raw = raw[:pipe_idx].strip()

        if raw.startswith(("#", "^")):
            continue

        hash_idx = raw.find("#")
        if hash_idx >= 0:
            raw = raw[:hash_idx].strip()

        caret_idx = raw.find("^")
        if caret_idx >= 0:
            raw = raw[:caret_idx].strip()

        if raw:
            links.append(raw)

    return links
