"""Per-document metadata: name, title and sibling group."""

from __future__ import annotations

import logging
import re

import frontmatter

from ..models import Document
from ..paths import doc_name_from_path, normalize_path

log = logging.getLogger(__name__)

_H1_RE = re.compile(r"^#\s+(.+)$", re.MULTILINE)
# "deepseek (PDF 原文)" / "deepseek (PDF 翻译)" pair up as siblings
_PDF_SIBLING_RE = re.compile(r"^(.*)\s*\(PDF\s*(原文|翻译)\)\s*$")


def _strip_frontmatter(text: str) -> str:
    if not text.startswith("---"):
        return text
    try:
        post = frontmatter.loads(text)
    except Exception as e:
        log.debug("Front matter did not parse, using raw text: %s", e)
        return text
    # A "---" rule around plain headings is not front matter
    return post.content if post.metadata else text


def guess_title(text: str | None) -> str:
    """Return the first level-1 heading of *text*, or ``""``."""
    if not text or not isinstance(text, str):
        return ""
    match = _H1_RE.search(_strip_frontmatter(text))
    if not match:
        return ""
    return match.group(1).strip()


def sibling_group_key(name: str) -> str | None:
    """Base name shared by PDF original/translation pairs, if *name* is one."""
    match = _PDF_SIBLING_RE.match(name or "")
    if not match:
        return None
    base = match.group(1).strip()
    return base or None


def describe_document(path: str, text: str) -> Document:
    """Build the :class:`Document` for *path* from its full *text*."""
    name = doc_name_from_path(path)
    return Document(
        normalized_path=normalize_path(path),
        path=path,
        name=name,
        title=guess_title(text) or name,
        sibling_group_key=sibling_group_key(name),
    )
