"""Index persistence: plain-data serialization and storage backends.

The stored payload keeps sets as sorted lists::

    {
      "docs": {"notes/a.md": {"normalized_path": ..., "path": ..., ...}},
      "forward": {"notes/a.md": ["notes/b.md"]},
      "backward": {"notes/b.md": ["notes/a.md"]},
      "builtAt": 1718000000000,
      "vaultRoot": "/home/me/notes"
    }

Persistence is best effort: load and save never raise, they log and fall
back to an empty index / keep the in-memory one.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from pydantic import ValidationError

from .config import INDEX_STORAGE_KEY
from .graph import LinkGraph
from .models import Document
from .paths import doc_name_from_path

log = logging.getLogger(__name__)


@dataclass
class IndexState:
    """One generation of the index: documents, links and build metadata."""

    docs: dict[str, Document] = field(default_factory=dict)
    graph: LinkGraph = field(default_factory=LinkGraph)
    built_at: float = 0  # epoch milliseconds, 0 = never built
    corpus_root: str = ""

    @property
    def is_built(self) -> bool:
        return self.built_at > 0


# =============================================================================
# Serialization
# =============================================================================


def _serialize_map(mapping: Mapping[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in mapping.items():
        if isinstance(value, (set, frozenset)):
            result[key] = sorted(value)
        elif isinstance(value, Document):
            result[key] = value.model_dump()
        else:
            result[key] = value
    return result


def serialize_state(state: IndexState) -> dict[str, Any]:
    """Convert *state* to JSON-compatible plain data."""
    return {
        "docs": _serialize_map(state.docs),
        "forward": _serialize_map(state.graph.forward),
        "backward": _serialize_map(state.graph.backward),
        "builtAt": state.built_at,
        "vaultRoot": state.corpus_root,
    }


def _deserialize_document(key: str, raw: Any) -> Document | None:
    if not isinstance(raw, dict):
        return None
    data = dict(raw)
    data.setdefault("normalized_path", key)
    data.setdefault("path", key)
    data.setdefault("name", doc_name_from_path(data.get("path")))
    data.setdefault("title", data.get("name") or "")
    try:
        return Document.model_validate(data)
    except ValidationError as e:
        log.debug("Dropping malformed stored document %s: %s", key, e)
        return None


def _deserialize_adjacency(raw: Any) -> dict[str, list[str]]:
    if not isinstance(raw, dict):
        return {}
    result: dict[str, list[str]] = {}
    for key, values in raw.items():
        if not isinstance(values, list):
            values = []
        result[str(key)] = [v for v in values if isinstance(v, str)]
    return result


def deserialize_state(raw: Any) -> IndexState:
    """Rebuild an :class:`IndexState` from stored plain data.

    Missing or malformed parts fall back to empty values; this never raises.
    """
    if not isinstance(raw, dict):
        return IndexState()

    try:
        docs: dict[str, Document] = {}
        raw_docs = raw.get("docs")
        if isinstance(raw_docs, dict):
            for key, value in raw_docs.items():
                doc = _deserialize_document(str(key), value)
                if doc is not None:
                    docs[str(key)] = doc

        graph = LinkGraph.from_adjacency(
            _deserialize_adjacency(raw.get("forward")),
            _deserialize_adjacency(raw.get("backward")),
        )

        built_at = raw.get("builtAt")
        if isinstance(built_at, bool) or not isinstance(built_at, (int, float)) or built_at <= 0:
            built_at = 0

        corpus_root = raw.get("vaultRoot")
        if not isinstance(corpus_root, str):
            corpus_root = ""

        return IndexState(docs=docs, graph=graph, built_at=built_at, corpus_root=corpus_root)
    except Exception as e:
        log.warning("Discarding unreadable stored index: %s", e)
        return IndexState()


# =============================================================================
# Storage backends
# =============================================================================


@runtime_checkable
class StorageBackend(Protocol):
    """Async key-value store used for persistence."""

    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any) -> None: ...


class MemoryStorage:
    """In-process storage; values are kept as given."""

    def __init__(self) -> None:
        self.data: dict[str, Any] = {}

    async def get(self, key: str) -> Any | None:
        return self.data.get(key)

    async def set(self, key: str, value: Any) -> None:
        self.data[key] = value


class JsonFileStorage:
    """One JSON file per key under *root*."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _path_for(self, key: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_." else "_" for c in key)
        return self.root / f"{safe}.json"

    async def get(self, key: str) -> Any | None:
        path = self._path_for(key)
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    async def set(self, key: str, value: Any) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        self._path_for(key).write_text(json.dumps(value, indent=2, ensure_ascii=False), encoding="utf-8")


async def load_index(backend: StorageBackend, key: str = INDEX_STORAGE_KEY) -> IndexState:
    """Load the stored index, or an empty one when nothing usable is stored."""
    try:
        raw = await backend.get(key)
    except Exception as e:
        log.warning("Could not load stored index: %s", e)
        return IndexState()
    return deserialize_state(raw)


async def save_index(backend: StorageBackend, state: IndexState, key: str = INDEX_STORAGE_KEY) -> bool:
    """Persist *state*. Returns False (after logging) when the backend fails."""
    try:
        await backend.set(key, serialize_state(state))
    except Exception as e:
        log.warning("Could not persist index, keeping it in memory only: %s", e)
        return False
    return True
