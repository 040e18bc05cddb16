"""Pydantic models for the link index."""

from pydantic import BaseModel, ConfigDict, Field


class Document(BaseModel):
    """One corpus document as seen by a single index generation."""

    model_config = ConfigDict(frozen=True)

    normalized_path: str  # Index key (slash-canonical, case-sensitive)
    path: str  # Path as reported by the corpus source
    name: str  # File name without extension
    title: str  # First level-1 heading, else name
    sibling_group_key: str | None = None  # Base of "<base> (PDF 原文|翻译)" names


class DocRef(BaseModel):
    """A document reference returned by queries."""

    path: str
    title: str
    name: str


class UnresolvedReference(BaseModel):
    """A wiki-link the deterministic resolver could not match."""

    source: str  # Normalized path of the linking document
    raw_name: str


class AICandidate(BaseModel):
    """A document offered to the model as a possible link target."""

    id: str
    score: int = 0
    name: str = ""
    title: str = ""

    def to_prompt_dict(self) -> dict[str, str]:
        return {"id": self.id, "fileName": self.name, "title": self.title}


class RebuildResult(BaseModel):
    """Summary of a completed rebuild."""

    documents: int = 0
    skipped: int = 0
    link_edges: int = 0
    sibling_edges: int = 0
    unresolved: int = 0
    ai_resolved: int = 0
    built_at: float = 0
    corpus_root: str = ""


class IndexStats(BaseModel):
    documents: int = 0
    edges: int = 0
    linked_documents: int = 0
    built_at: float = 0
    corpus_root: str = ""


class IndexSnapshot(BaseModel):
    """Read-only plain-data view of the live index."""

    docs: dict[str, Document] = Field(default_factory=dict)
    forward: dict[str, list[str]] = Field(default_factory=dict)
    backward: dict[str, list[str]] = Field(default_factory=dict)
