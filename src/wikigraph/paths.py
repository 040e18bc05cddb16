"""Path canonicalization for index keys."""

from __future__ import annotations

import re

_SEPARATORS = re.compile(r"[\\/]")
_EXTENSION = re.compile(r"\.[^.]+$")


def normalize_path(path: str | None) -> str:
    """Return the map key for *path*: trimmed, with ``/`` as the only separator.

    Blank or missing input gives ``""``. The result is case-sensitive and
    ``normalize_path(normalize_path(p)) == normalize_path(p)``.
    """
    if not path:
        return ""
    s = str(path).strip()
    if not s:
        return ""
    return s.replace("\\", "/")


def doc_name_from_path(path: str | None) -> str:
    """File name of *path* without its extension (``notes/a.b.md`` -> ``a.b``)."""
    if not path:
        return ""
    name = _SEPARATORS.split(str(path))[-1]
    return _EXTENSION.sub("", name)
