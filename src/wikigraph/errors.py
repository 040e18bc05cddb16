"""Error types for wikigraph.

Every error carries a stable ``code`` so the CLI can report failures as JSON
(``wg --json-errors ...``) as well as plain text.
"""

from __future__ import annotations

import json
from typing import Any


class WikigraphError(Exception):
    """Base class for errors surfaced to callers."""

    code = "WIKIGRAPH_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class ConfigurationError(WikigraphError):
    """Raised when required configuration is missing."""

    code = "CONFIGURATION_ERROR"


class CorpusUnavailableError(WikigraphError):
    """No file list could be obtained for a rebuild."""

    code = "CORPUS_UNAVAILABLE"


class RebuildInProgressError(WikigraphError):
    """A second rebuild was started while one is still running."""

    code = "REBUILD_IN_PROGRESS"


class LLMProviderError(WikigraphError):
    """Raised when LLM provider is misconfigured or unavailable."""

    code = "LLM_PROVIDER_ERROR"


def format_error_json(error: Exception) -> str:
    """Render any exception the way ``WikigraphError.to_json`` does."""
    if isinstance(error, WikigraphError):
        return error.to_json()
    return json.dumps({"error": "UNEXPECTED_ERROR", "message": str(error)})
