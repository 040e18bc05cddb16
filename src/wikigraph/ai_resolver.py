"""AI-assisted resolution for links the name matcher could not place.

Unresolved ``[[Name]]`` references are grouped by normalized name so each
distinct name costs at most one model call. For every group the model sees a
short list of plausible documents and answers with one id (or null). Any
failure only drops that group; the rebuild always carries on.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from .config import AI_SCORE_CROSS, AI_SCORE_EXACT, AI_SCORE_SUBSTRING, ResolverSettings
from .graph import LinkGraph
from .llm import AICapability, capability_available, extract_id_from_reply, extract_ids_from_reply
from .models import AICandidate, DocRef, Document, UnresolvedReference
from .parser.title_index import normalize_name_for_match

log = logging.getLogger(__name__)

RESOLVE_SYSTEM_PROMPT = "You resolve links in a Markdown knowledge base. Reply with JSON only."
RELATED_SYSTEM_PROMPT = "You recommend related notes in a knowledge base. Reply with a JSON array only."


@dataclass
class UnresolvedGroup:
    """All occurrences of one unresolved name."""

    key: str
    display: str  # First spelling seen
    sources: list[str] = field(default_factory=list)

    def add_source(self, source: str) -> None:
        if source not in self.sources:
            self.sources.append(source)


def group_unresolved(unresolved: Iterable[UnresolvedReference]) -> list[UnresolvedGroup]:
    """Group references by normalized name, in first-seen order."""
    groups: dict[str, UnresolvedGroup] = {}
    for ref in unresolved:
        if not ref.raw_name or not ref.source:
            continue
        key = normalize_name_for_match(ref.raw_name)
        if not key:
            continue
        group = groups.get(key)
        if group is None:
            group = groups[key] = UnresolvedGroup(key=key, display=ref.raw_name)
        group.add_source(ref.source)
    return list(groups.values())


def _overlaps(a: str, b: str) -> bool:
    return bool(a) and bool(b) and (a in b or b in a)


def score_candidate(query: str, doc: Document) -> int:
    """Similarity of *doc* to the normalized *query* (0 = not a candidate)."""
    name = normalize_name_for_match(doc.name)
    title = normalize_name_for_match(doc.title)

    score = 0
    if name and name == query:
        score += AI_SCORE_EXACT
    if title and title == query:
        score += AI_SCORE_EXACT
    if not score and _overlaps(name, query):
        score += AI_SCORE_SUBSTRING
    if not score and _overlaps(title, query):
        score += AI_SCORE_SUBSTRING
    if not score and _overlaps(name, title):
        score += AI_SCORE_CROSS
    return score


def build_candidates(query: str, docs: Mapping[str, Document], limit: int) -> list[AICandidate]:
    """Shortlist of documents worth showing the model, best first."""
    candidates: list[AICandidate] = []
    for doc_id, doc in docs.items():
        score = score_candidate(query, doc)
        if score > 0:
            candidates.append(
                AICandidate(id=doc_id, score=score, name=doc.name or "", title=doc.title or doc.name or "")
            )
    candidates.sort(key=lambda c: c.score, reverse=True)
    return candidates[:limit]


def build_resolution_prompt(name: str, candidates: list[AICandidate]) -> str:
    listing = json.dumps([c.to_prompt_dict() for c in candidates], ensure_ascii=False, indent=2)
    return "\n".join(
        [
            "Several notes contain an internal link of the form [[Name]], where Name is: "
            f'"{name}".',
            "Below are the candidate target documents. Pick the one [[Name]] most likely points to.",
            "If none of the candidates fits, answer null.",
            "",
            "Candidates (JSON array):",
            listing,
            "",
            "Answer with exactly one JSON object and nothing else:",
            '{"id": "<candidate id>"} or {"id": null}',
        ]
    )


async def resolve_unmatched_links(
    ai: AICapability | None,
    docs: Mapping[str, Document],
    graph: LinkGraph,
    unresolved: list[UnresolvedReference],
    settings: ResolverSettings | None = None,
) -> int:
    """Ask the model about unresolved names and add the accepted edges to *graph*.

    Returns:
        Number of edges added.
    """
    if not unresolved:
        return 0
    if ai is None or not await capability_available(ai):
        log.debug("AI fallback skipped: capability unavailable")
        return 0

    settings = settings or ResolverSettings()
    groups = group_unresolved(unresolved)
    if len(groups) > settings.ai_max_groups:
        log.info(
            "AI fallback limited to %d of %d unresolved names",
            settings.ai_max_groups,
            len(groups),
        )

    added = 0
    for group in groups[: settings.ai_max_groups]:
        candidates = build_candidates(group.key, docs, settings.ai_max_candidates)
        if not candidates:
            continue

        prompt = build_resolution_prompt(group.display, candidates)
        try:
            reply = await ai.query(prompt, system=RESOLVE_SYSTEM_PROMPT)
        except Exception as e:
            log.warning("AI resolution of [[%s]] failed: %s", group.display, e)
            continue

        picked = extract_id_from_reply(reply)
        if not picked:
            log.debug("AI gave no usable id for [[%s]]: %r", group.display, reply)
            continue
        if picked not in docs:
            log.warning("AI picked unknown document %r for [[%s]]", picked, group.display)
            continue

        for source in group.sources:
            if graph.add_edge(source, picked):
                added += 1
        log.debug("AI resolved [[%s]] -> %s", group.display, picked)

    return added


def build_related_prompt(current: dict[str, str], candidates: list[dict[str, str]], limit: int) -> str:
    return "\n".join(
        [
            "Recommend notes related to the current note by meaning.",
            "Current note (JSON object):",
            json.dumps(current, ensure_ascii=False, indent=2),
            "",
            "Other notes in the same knowledge base (JSON array of id, name, title):",
            json.dumps(candidates, ensure_ascii=False, indent=2),
            "",
            f"Pick at most {limit} of the most related notes, most related first.",
            "Only choose from the list above, never invent ids.",
            "",
            "Answer with a JSON array of id strings and nothing else, for example:",
            '["id1", "id2"]',
        ]
    )


async def recommend_related(
    ai: AICapability | None,
    docs: Mapping[str, Document],
    current: str,
    settings: ResolverSettings | None = None,
) -> list[DocRef]:
    """Ask the model for documents semantically related to *current*.

    Returns an empty list when the model is unavailable or its reply is unusable.
    """
    settings = settings or ResolverSettings()
    if ai is None or not docs or not await capability_available(ai):
        return []

    candidates = [
        {"id": doc_id, "name": doc.name or "", "title": doc.title or doc.name or ""}
        for doc_id, doc in docs.items()
        if doc_id != current
    ][: settings.related_max_candidates]
    if not candidates:
        return []

    current_doc = docs.get(current)
    current_meta = {
        "id": current,
        "name": current_doc.name if current_doc else "",
        "title": (current_doc.title or current_doc.name) if current_doc else "",
    }
    prompt = build_related_prompt(current_meta, candidates, settings.related_max_results)

    try:
        reply = await ai.query(prompt, system=RELATED_SYSTEM_PROMPT)
    except Exception as e:
        log.warning("AI related-document lookup failed for %s: %s", current, e)
        return []

    try:
        ids = extract_ids_from_reply(reply)
    except ValueError as e:
        log.warning("Could not parse related documents for %s: %s", current, e)
        return []

    refs: list[DocRef] = []
    for doc_id in ids:
        doc = docs.get(doc_id)
        if doc is None or doc_id == current:
            continue
        refs.append(DocRef(path=doc.path or doc_id, name=doc.name or "", title=doc.title or doc.name or ""))
        if len(refs) >= settings.related_max_results:
            break
    return refs
