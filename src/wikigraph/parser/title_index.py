"""Name matching for resolving [[Name]] links to documents.

Link names are compared after :func:`normalize_name_for_match`, so
``[[Deep-Seek_notes]]`` finds ``deep seek notes.md`` and parenthetical
qualifiers such as ``(PDF 原文)`` do not get in the way.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import NamedTuple

from ..models import Document

_PARENTHETICAL_RE = re.compile(r"[（(].*?[)）]")
_SEPARATOR_RUN_RE = re.compile(r"[_\-/\\]+")
_WHITESPACE_RE = re.compile(r"\s+")

# Scores for the non-short-circuit rules; a file-name match returns at once
SCORE_TITLE = 3
SCORE_NAME_CORE = 2
SCORE_TITLE_CORE = 1


class MatchKeys(NamedTuple):
    """Comparison keys of one document."""

    name: str
    title: str
    name_core: str
    title_core: str


def strip_parentheticals(text: str) -> str:
    return _PARENTHETICAL_RE.sub("", text)


def normalize_name_for_match(name: str | None) -> str:
    """Case-fold and simplify a link name or document name for comparison."""
    if not name:
        return ""
    s = str(name).strip().lower()
    s = strip_parentheticals(s)
    s = _SEPARATOR_RUN_RE.sub(" ", s)
    return _WHITESPACE_RE.sub(" ", s).strip()


def match_keys(doc: Document) -> MatchKeys:
    name = doc.name or ""
    title = doc.title or ""
    return MatchKeys(
        name=normalize_name_for_match(name),
        title=normalize_name_for_match(title),
        name_core=normalize_name_for_match(strip_parentheticals(name)),
        title_core=normalize_name_for_match(strip_parentheticals(title)),
    )


def resolve_link_target(name: str | None, docs: Mapping[str, Document]) -> str | None:
    """Resolve a link name to the normalized path of a document.

    Attempts resolution in order:
    1. File name match (returns immediately)
    2. Title match
    3. File name with parentheticals removed
    4. Title with parentheticals removed

    Ties within a rule keep the first document in *docs* order.

    Args:
        name: The raw link target from [[target]].
        docs: Documents keyed by normalized path, in corpus order.

    Returns:
        Normalized path of the best match, or None.
    """
    query = normalize_name_for_match(str(name or "").strip())
    if not query:
        return None

    best_path: str | None = None
    best_score = 0

    for norm_path, doc in docs.items():
        keys = match_keys(doc)

        if keys.name and keys.name == query:
            return norm_path

        if keys.title and keys.title == query:
            if best_score < SCORE_TITLE:
                best_score = SCORE_TITLE
                best_path = norm_path
            continue

        if keys.name_core and keys.name_core == query:
            if best_score < SCORE_NAME_CORE:
                best_score = SCORE_NAME_CORE
                best_path = norm_path
            continue

        if keys.title_core and keys.title_core == query and best_score < SCORE_TITLE_CORE:
            best_score = SCORE_TITLE_CORE
            best_path = norm_path

    return best_path
