"""wikigraph: bidirectional [[wiki-link]] index for a corpus of notes."""

__version__ = "0.1.0"

from .core import BacklinkEngine, build_index_state
from .errors import CorpusUnavailableError, WikigraphError
from .models import DocRef, Document
from .store import IndexState, deserialize_state, serialize_state

__all__ = [
    "BacklinkEngine",
    "CorpusUnavailableError",
    "DocRef",
    "Document",
    "IndexState",
    "WikigraphError",
    "__version__",
    "build_index_state",
    "deserialize_state",
    "serialize_state",
]
