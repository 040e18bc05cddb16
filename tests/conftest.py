"""Shared test fixtures for the wikigraph test suite.

Design:
- tmp_corpus: isolated corpus directory with WIKIGRAPH_ROOT / WIKIGRAPH_INDEX_ROOT set
- DictCorpus: in-memory corpus + reader for engine tests
- FakeAI / FailingStorage: stand-ins for the external collaborators
- Async tests use pytest-asyncio
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, Generator

import pytest
from click.testing import CliRunner


# ─────────────────────────────────────────────────────────────────────────────
# Collaborator fakes
# ─────────────────────────────────────────────────────────────────────────────


class DictCorpus:
    """Corpus source and document reader over a {path: text} mapping."""

    def __init__(self, files: dict[str, str], unreadable: set[str] | None = None) -> None:
        self.files = dict(files)
        self.unreadable = set(unreadable or ())
        self.reads: list[str] = []

    async def list_files(self, root: str) -> list[str]:
        return list(self.files)

    async def read_text(self, path: str) -> str:
        self.reads.append(path)
        if path in self.unreadable:
            raise OSError(f"cannot read {path}")
        return self.files[path]


class BrokenCorpus:
    """Corpus source whose enumeration always fails."""

    async def list_files(self, root: str) -> list[str]:
        raise RuntimeError("listing command not available")


class FakeAI:
    """AI capability returning canned replies.

    ``reply`` may be a string, a callable taking the prompt, or an exception
    instance to raise.
    """

    def __init__(self, reply: Any = '{"id": null}', available: bool = True) -> None:
        self.reply = reply
        self.available = available
        self.prompts: list[str] = []
        self.systems: list[str | None] = []

    async def is_available(self) -> bool:
        return self.available

    async def query(self, prompt: str, *, system: str | None = None) -> str:
        self.prompts.append(prompt)
        self.systems.append(system)
        if isinstance(self.reply, Exception):
            raise self.reply
        if callable(self.reply):
            return self.reply(prompt)
        return self.reply


class FailingStorage:
    """Persistence backend where every call fails."""

    async def get(self, key: str) -> Any:
        raise OSError("storage offline")

    async def set(self, key: str, value: Any) -> None:
        raise OSError("storage offline")


def reply_for(mapping: dict[str, str | None]) -> Callable[[str], str]:
    """Build a FakeAI reply function answering by the quoted name in the prompt."""

    def _reply(prompt: str) -> str:
        for name, doc_id in mapping.items():
            if f'"{name}"' in prompt:
                return json.dumps({"id": doc_id})
        return '{"id": null}'

    return _reply


# ─────────────────────────────────────────────────────────────────────────────
# Core Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def runner() -> CliRunner:
    """CLI runner with isolated environment.

    Quiet mode keeps log lines out of the captured output so JSON can be parsed.
    """
    return CliRunner(env={"WIKIGRAPH_QUIET": "1"})


@pytest.fixture(autouse=True)
def reset_package_logger() -> Generator[None, None, None]:
    """Drop handlers the CLI installs so they never outlive a CliRunner stream."""
    yield
    logger = logging.getLogger("wikigraph")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def tmp_corpus(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Create an isolated corpus directory and point wikigraph at it.

    Usage:
        def test_something(tmp_corpus):
            create_doc(tmp_corpus, "a.md", "[[b]]")
    """
    corpus_root = tmp_path / "notes"
    corpus_root.mkdir()
    index_root = tmp_path / "index"

    monkeypatch.setenv("WIKIGRAPH_ROOT", str(corpus_root))
    monkeypatch.setenv("WIKIGRAPH_INDEX_ROOT", str(index_root))
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)

    yield corpus_root


@pytest.fixture
def no_llm_keys(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """No provider keys and no .wgconfig in reach."""
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    monkeypatch.chdir(tmp_path)


# ─────────────────────────────────────────────────────────────────────────────
# Helper Functions (for test code, not fixtures)
# ─────────────────────────────────────────────────────────────────────────────


def create_doc(corpus_root: Path, path: str, content: str) -> Path:
    """Write a document below the corpus root.

    Usage in tests:
        from conftest import create_doc
        doc = create_doc(tmp_corpus, "guides/setup.md", "# Setup\\n\\nSee [[intro]]")
    """
    doc_path = corpus_root / path
    doc_path.parent.mkdir(parents=True, exist_ok=True)
    doc_path.write_text(content, encoding="utf-8")
    return doc_path
