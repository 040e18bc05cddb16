"""Link index engine: rebuilds, persistence and queries.

A rebuild runs in four steps over a snapshot of the corpus:

1. read every document and describe it (name, title, sibling group)
2. resolve every [[link]] against the full document table
3. cross-link sibling groups such as "X (PDF 原文)" / "X (PDF 翻译)"
4. hand the remaining unresolved names to the AI fallback

The new :class:`~wikigraph.store.IndexState` replaces the live one only
after all four steps finish, so queries never see a half-built index.
"""

from __future__ import annotations

import asyncio
import locale
import logging
import time
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from .ai_resolver import recommend_related, resolve_unmatched_links
from .config import ResolverSettings
from .corpus import CorpusSource, DocumentReader, FilesystemReader, OpenDocument
from .errors import CorpusUnavailableError, RebuildInProgressError
from .graph import LinkGraph
from .llm import AICapability
from .models import DocRef, Document, IndexSnapshot, IndexStats, RebuildResult, UnresolvedReference
from .parser import describe_document, extract_links, resolve_link_target
from .paths import doc_name_from_path, normalize_path
from .store import IndexState, StorageBackend, load_index, save_index

log = logging.getLogger(__name__)

OpenDocumentProvider = Callable[[], "OpenDocument | None"]


def _title_sort_key(ref: DocRef) -> tuple[str, str]:
    folded = ref.title.casefold()
    try:
        return locale.strxfrm(folded), ref.title
    except (ValueError, OSError):
        return folded, ref.title


async def build_index_state(
    files: Sequence[str],
    reader: DocumentReader,
    *,
    corpus_root: str = "",
    open_document: OpenDocument | None = None,
    ai: AICapability | None = None,
    settings: ResolverSettings | None = None,
) -> tuple[IndexState, RebuildResult]:
    """Build a complete index generation from *files*.

    Unreadable documents are skipped. AI failures only cost resolutions.
    """
    result = RebuildResult(corpus_root=corpus_root)
    open_key = normalize_path(open_document.path) if open_document else ""

    # Pass 1: the full document table, so links can point at later files
    docs: dict[str, Document] = {}
    texts: dict[str, str] = {}
    sibling_groups: dict[str, list[str]] = {}

    for path in files:
        if not path or not isinstance(path, str):
            continue
        key = normalize_path(path)
        if not key or key in docs:
            continue

        try:
            if open_document is not None and key == open_key:
                text = open_document.text
            else:
                text = await reader.read_text(path)
        except Exception as e:
            log.debug("Skipping unreadable document %s: %s", path, e)
            result.skipped += 1
            continue

        doc = describe_document(path, text)
        docs[key] = doc
        texts[key] = text
        if doc.sibling_group_key:
            sibling_groups.setdefault(doc.sibling_group_key, []).append(key)

    # Pass 2: wiki-link edges
    graph = LinkGraph()
    unresolved: list[UnresolvedReference] = []

    for key, text in texts.items():
        for raw_name in extract_links(text):
            target = resolve_link_target(raw_name, docs)
            if target is None:
                unresolved.append(UnresolvedReference(source=key, raw_name=raw_name))
                continue
            if graph.add_edge(key, target):
                result.link_edges += 1

    for members in sibling_groups.values():
        if len(members) >= 2:
            result.sibling_edges += graph.add_group(members)

    result.unresolved = len(unresolved)
    result.ai_resolved = await resolve_unmatched_links(ai, docs, graph, unresolved, settings)

    result.documents = len(docs)
    result.built_at = time.time() * 1000
    state = IndexState(docs=docs, graph=graph, built_at=result.built_at, corpus_root=corpus_root)
    return state, result


class BacklinkEngine:
    """Owns the live link index and serves rebuilds and queries.

    Args:
        corpus_root: Directory handed to the corpus source.
        corpus: Enumerates corpus files; optional when *fallback_files* is given.
        reader: Reads document text (defaults to the filesystem).
        ai: Optional AI capability for fallback resolution and related docs.
        storage: Optional persistence backend.
        settings: AI tuning parameters.
        fallback_files: Explicit file list used when enumeration fails.
        open_document: Returns the document open in the editor, if any.
    """

    def __init__(
        self,
        corpus_root: str | None = None,
        *,
        corpus: CorpusSource | None = None,
        reader: DocumentReader | None = None,
        ai: AICapability | None = None,
        storage: StorageBackend | None = None,
        settings: ResolverSettings | None = None,
        fallback_files: Iterable[str] | None = None,
        open_document: OpenDocumentProvider | None = None,
    ) -> None:
        self.corpus_root = str(corpus_root) if corpus_root else ""
        self.corpus = corpus
        self.reader: DocumentReader = reader or FilesystemReader()
        self.ai = ai
        self.storage = storage
        self.settings = settings or ResolverSettings()
        self.fallback_files = list(fallback_files or [])
        self.open_document = open_document

        self._state = IndexState()
        self._related_cache: dict[str, list[DocRef]] = {}
        self._rebuild_lock = asyncio.Lock()

    @property
    def state(self) -> IndexState:
        return self._state

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def load(self) -> IndexState:
        """Replace the live index with the persisted one (empty if none)."""
        if self.storage is None:
            return self._state
        self._state = await load_index(self.storage)
        self._related_cache.clear()
        if self._state.is_built:
            log.info("Loaded link index with %d documents", len(self._state.docs))
        return self._state

    async def save(self) -> bool:
        if self.storage is None:
            return False
        return await save_index(self.storage, self._state)

    # ------------------------------------------------------------------
    # Rebuild
    # ------------------------------------------------------------------

    def _current_document(self) -> OpenDocument | None:
        if self.open_document is None:
            return None
        try:
            return self.open_document()
        except Exception as e:
            log.debug("Open document unavailable: %s", e)
            return None

    async def _list_corpus(self, root: str, files: Sequence[str] | None) -> list[str]:
        if files:
            return list(files)

        listed: list[str] = []
        if self.corpus is not None and root:
            try:
                result = await self.corpus.list_files(root)
                listed = list(result) if isinstance(result, (list, tuple)) else []
            except Exception as e:
                log.info("Corpus enumeration failed, using fallback file list: %s", e)
        if listed:
            return listed

        if self.fallback_files:
            return list(self.fallback_files)

        current = self._current_document()
        if current is not None and normalize_path(current.path):
            log.info("Indexing only the open document %s", current.path)
            return [current.path]

        raise CorpusUnavailableError(
            "No documents available to index",
            details={"corpus_root": root, "suggestion": "Set a corpus root or pass an explicit file list"},
        )

    async def rebuild(self, root: str | None = None, files: Sequence[str] | None = None) -> RebuildResult:
        """Rebuild the index from the corpus and swap it in.

        Args:
            root: Corpus root for this rebuild (defaults to the engine's).
            files: Explicit files to index instead of enumerating the corpus.

        Raises:
            CorpusUnavailableError: If no file list can be obtained.
            RebuildInProgressError: If another rebuild is still running.
        """
        if self._rebuild_lock.locked():
            raise RebuildInProgressError("A rebuild is already running")

        async with self._rebuild_lock:
            corpus_root = str(root) if root else self.corpus_root
            paths = await self._list_corpus(corpus_root, files)

            state, result = await build_index_state(
                paths,
                self.reader,
                corpus_root=corpus_root,
                open_document=self._current_document(),
                ai=self.ai,
                settings=self.settings,
            )

            self._state = state
            self._related_cache.clear()
            await self.save()

        log.info(
            "Rebuilt link index: %d documents, %d link edges, %d sibling edges, %d unresolved (%d via AI)",
            result.documents,
            result.link_edges,
            result.sibling_edges,
            result.unresolved,
            result.ai_resolved,
        )
        return result

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _refs_for(self, keys: Iterable[str]) -> list[DocRef]:
        docs = self._state.docs
        refs: list[DocRef] = []
        for key in keys:
            doc = docs.get(key)
            real_path = doc.path if doc and doc.path else key
            name = doc.name if doc and doc.name else doc_name_from_path(real_path)
            title = doc.title if doc and doc.title else name
            refs.append(DocRef(path=real_path, title=title, name=name))
        refs.sort(key=_title_sort_key)
        return refs

    def backlinks_of(self, path: str | None) -> list[DocRef]:
        """Documents linking to *path*, sorted by title. Never raises."""
        try:
            key = normalize_path(path)
            if not key:
                return []
            return self._refs_for(self._state.graph.backward.get(key, ()))
        except Exception as e:
            log.warning("Backlink lookup failed for %s: %s", path, e)
            return []

    def links_of(self, path: str | None) -> list[DocRef]:
        """Documents *path* links to, sorted by title. Never raises."""
        try:
            key = normalize_path(path)
            if not key:
                return []
            return self._refs_for(self._state.graph.forward.get(key, ()))
        except Exception as e:
            log.warning("Link lookup failed for %s: %s", path, e)
            return []

    def backlinks_for_current(self) -> list[DocRef]:
        current = self._current_document()
        return self.backlinks_of(current.path if current else None)

    def get_index_snapshot(self) -> dict[str, Any]:
        """Plain-data copy of docs and both adjacency maps."""
        forward, backward = self._state.graph.to_lists()
        snapshot = IndexSnapshot(docs=dict(self._state.docs), forward=forward, backward=backward)
        return snapshot.model_dump()

    def stats(self) -> IndexStats:
        state = self._state
        linked = set(state.graph.forward) | set(state.graph.backward)
        return IndexStats(
            documents=len(state.docs),
            edges=state.graph.edge_count(),
            linked_documents=len(linked & set(state.docs)),
            built_at=state.built_at,
            corpus_root=state.corpus_root,
        )

    async def related_docs(self, path: str | None, *, refresh: bool = False) -> list[DocRef]:
        """AI-recommended documents related to *path*, cached until the next rebuild."""
        key = normalize_path(path)
        if not key:
            return []
        if not refresh and key in self._related_cache:
            return list(self._related_cache[key])

        if not self._state.docs:
            log.info("Link index is empty, rebuild it before asking for related documents")
            return []

        refs = await recommend_related(self.ai, self._state.docs, key, self.settings)
        if refs:
            self._related_cache[key] = refs
        return list(refs)

    def cached_related_docs(self, path: str | None) -> list[DocRef] | None:
        refs = self._related_cache.get(normalize_path(path))
        return list(refs) if refs is not None else None
