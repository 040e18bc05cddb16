"""Configuration management for wikigraph.

This module contains all configurable constants for the link index.
Magic numbers are documented here rather than scattered throughout the codebase.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigurationError

log = logging.getLogger(__name__)

CONFIG_FILENAME = ".wgconfig"
INDEX_DIRNAME = ".wikigraph"


# =============================================================================
# Persistence
# =============================================================================

# Key under which the serialized index is stored in the persistence backend.
# Bump the suffix when the payload layout changes incompatibly.
INDEX_STORAGE_KEY = "backlinksIndex_v1"


# =============================================================================
# Corpus
# =============================================================================

# File patterns enumerated by the filesystem corpus source
CORPUS_GLOB = "*.md"


# =============================================================================
# AI Fallback Resolution
# =============================================================================

# Distinct unresolved names sent to the AI resolver per rebuild.
# Remaining names stay unresolved for that rebuild.
AI_MAX_GROUPS = 8

# Candidate documents listed in a single resolution prompt.
AI_MAX_CANDIDATES = 24

# Candidate scores: exact name/title match, substring either direction,
# and the weak name-vs-title overlap of the candidate itself.
AI_SCORE_EXACT = 3
AI_SCORE_SUBSTRING = 2
AI_SCORE_CROSS = 1


# =============================================================================
# AI Related Documents
# =============================================================================

# Other documents offered to the model when recommending related notes
RELATED_MAX_CANDIDATES = 60

# Recommendations kept per document
RELATED_MAX_RESULTS = 5


# =============================================================================
# LLM
# =============================================================================

DEFAULT_LLM_MODEL = "claude-3.5-haiku"

# Collation locale for sorting backlink titles ("" = process default)
SORT_LOCALE = os.environ.get("WIKIGRAPH_SORT_LOCALE", "")


@dataclass
class LLMConfig:
    """LLM provider selection from the ``llm:`` section of .wgconfig."""

    provider: str | None = None
    model: str = DEFAULT_LLM_MODEL
    max_tokens: int = 300

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "LLMConfig":
        if not isinstance(data, dict):
            return cls()
        provider = data.get("provider")
        max_tokens = cls.max_tokens
        raw_tokens = data.get("max_tokens")
        if raw_tokens is not None:
            try:
                max_tokens = int(raw_tokens)
            except (TypeError, ValueError):
                log.warning("Ignoring invalid llm.max_tokens value: %r", raw_tokens)
            if max_tokens <= 0:
                log.warning("Ignoring non-positive llm.max_tokens value: %r", raw_tokens)
                max_tokens = cls.max_tokens
        return cls(
            provider=str(provider) if provider else None,
            model=str(data.get("model") or DEFAULT_LLM_MODEL),
            max_tokens=max_tokens,
        )


@dataclass
class ResolverSettings:
    """Tuning parameters for AI-assisted resolution (``resolver:`` section)."""

    ai_max_groups: int = AI_MAX_GROUPS
    ai_max_candidates: int = AI_MAX_CANDIDATES
    related_max_candidates: int = RELATED_MAX_CANDIDATES
    related_max_results: int = RELATED_MAX_RESULTS

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ResolverSettings":
        defaults = cls()
        if not isinstance(data, dict):
            return defaults
        values: dict[str, int] = {}
        for name in ("ai_max_groups", "ai_max_candidates", "related_max_candidates", "related_max_results"):
            raw = data.get(name)
            if raw is None:
                continue
            try:
                values[name] = max(0, int(raw))
            except (TypeError, ValueError):
                log.warning("Ignoring invalid resolver.%s value: %r", name, raw)
        return cls(**{**defaults.__dict__, **values})


def _discover_config(start_dir: Path | None = None, max_depth: int = 10) -> tuple[Path, dict[str, Any]] | None:
    """Walk up from start_dir looking for a .wgconfig file.

    Returns:
        Tuple of (config_path, parsed_data) if found, None otherwise.
    """
    current = Path(start_dir or os.getcwd()).resolve()

    for _ in range(max_depth):
        config_file = current / CONFIG_FILENAME
        if config_file.exists():
            try:
                data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
            except (OSError, yaml.YAMLError) as e:
                log.warning("Could not read %s: %s", config_file, e)
                data = {}
            if isinstance(data, dict):
                return config_file, data
            return config_file, {}

        parent = current.parent
        if parent == current:  # Reached filesystem root
            break
        current = parent

    return None


def load_config_data(start_dir: Path | None = None) -> dict[str, Any]:
    """Return the parsed .wgconfig mapping, or an empty dict."""
    found = _discover_config(start_dir)
    return found[1] if found else {}


def get_corpus_root(start_dir: Path | None = None) -> Path:
    """Get the corpus root directory.

    Discovery order:
    1. WIKIGRAPH_ROOT environment variable
    2. corpus_path in the nearest .wgconfig (relative to that file)

    Raises:
        ConfigurationError: If no corpus root can be found.
    """
    root = os.environ.get("WIKIGRAPH_ROOT")
    if root:
        return Path(root)

    found = _discover_config(start_dir)
    if found:
        config_path, data = found
        corpus_path = data.get("corpus_path")
        if corpus_path:
            resolved = (config_path.parent / str(corpus_path)).resolve()
            if resolved.is_dir():
                return resolved

    raise ConfigurationError(
        "No corpus found. Set WIKIGRAPH_ROOT or add corpus_path to a .wgconfig file.",
        details={"suggestion": "export WIKIGRAPH_ROOT=/path/to/notes"},
    )


def get_index_root(corpus_root: Path | None = None) -> Path:
    """Get the directory holding persisted index files.

    Discovery order:
    1. WIKIGRAPH_INDEX_ROOT environment variable
    2. {corpus_root}/.wikigraph/
    """
    root = os.environ.get("WIKIGRAPH_INDEX_ROOT")
    if root:
        return Path(root)
    return (corpus_root or get_corpus_root()) / INDEX_DIRNAME


def get_llm_config(start_dir: Path | None = None) -> LLMConfig:
    return LLMConfig.from_dict(load_config_data(start_dir).get("llm"))


def get_resolver_settings(start_dir: Path | None = None) -> ResolverSettings:
    return ResolverSettings.from_dict(load_config_data(start_dir).get("resolver"))


__all__ = [
    "AI_MAX_CANDIDATES",
    "AI_MAX_GROUPS",
    "ConfigurationError",
    "INDEX_STORAGE_KEY",
    "LLMConfig",
    "ResolverSettings",
    "get_corpus_root",
    "get_index_root",
    "get_llm_config",
    "get_resolver_settings",
]
