"""Corpus collaborators: file enumeration and document reading."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from .config import CORPUS_GLOB

log = logging.getLogger(__name__)


@runtime_checkable
class CorpusSource(Protocol):
    """Lists the documents under a corpus root."""

    async def list_files(self, root: str) -> list[str]: ...


@runtime_checkable
class DocumentReader(Protocol):
    """Returns the full text of a document."""

    async def read_text(self, path: str) -> str: ...


@dataclass
class OpenDocument:
    """The document currently open in the host editor, with its live buffer."""

    path: str
    text: str


class FilesystemCorpus:
    """Enumerates markdown files below a directory, sorted for stable order."""

    def __init__(self, pattern: str = CORPUS_GLOB) -> None:
        self.pattern = pattern

    async def list_files(self, root: str) -> list[str]:
        base = Path(root)
        if not base.is_dir():
            raise FileNotFoundError(f"Corpus root is not a directory: {root}")

        files: list[str] = []
        for md_file in sorted(base.rglob(self.pattern)):
            # Skip the index directory and other hidden trees
            if any(part.startswith(".") for part in md_file.relative_to(base).parts):
                continue
            if md_file.is_file():
                files.append(str(md_file))
        return files


class FilesystemReader:
    """Reads documents from disk as UTF-8."""

    async def read_text(self, path: str) -> str:
        return Path(path).read_bytes().decode("utf-8")
