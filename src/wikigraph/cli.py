#!/usr/bin/env python3
"""
wg: CLI for the wikigraph link index

Usage:
    wg rebuild                     # Scan the corpus and rebuild the index
    wg backlinks notes/topic.md    # Documents linking to a document
    wg links notes/topic.md        # Documents a document links to
    wg related notes/topic.md      # AI-suggested related documents
    wg stats                       # Index summary
"""

from __future__ import annotations

import asyncio
import json
import locale
import logging
from pathlib import Path
from typing import Any, NoReturn

import click

from . import __version__ as WIKIGRAPH_VERSION

log = logging.getLogger(__name__)


def run_async(coro):
    """Run async function synchronously."""
    return asyncio.run(coro)


def output(data, as_json: bool = False):
    """Output data as JSON or formatted text."""
    if as_json:
        click.echo(json.dumps(data, indent=2, default=str, ensure_ascii=False))
    else:
        click.echo(data)


def _handle_error(ctx: click.Context, error: Exception, exit_code: int = 1) -> NoReturn:
    """Report *error* as text, or as JSON under --json-errors, and exit."""
    from .errors import WikigraphError, format_error_json

    json_errors = ctx.obj.get("json_errors", False) if ctx.obj else False

    if json_errors:
        click.echo(format_error_json(error), err=True)
    elif isinstance(error, WikigraphError):
        click.echo(f"Error: {error.message}", err=True)
        suggestion = error.details.get("suggestion") if error.details else None
        if suggestion:
            click.echo(f"Hint: {suggestion}", err=True)
    else:
        click.echo(f"Error: {error}", err=True)
    ctx.exit(exit_code)


def _apply_sort_locale() -> None:
    from .config import SORT_LOCALE

    if not SORT_LOCALE:
        return
    try:
        locale.setlocale(locale.LC_COLLATE, SORT_LOCALE)
    except locale.Error as e:
        log.warning("Unsupported WIKIGRAPH_SORT_LOCALE %r: %s", SORT_LOCALE, e)


def _build_engine(root: str | None = None, *, use_ai: bool = True):
    """Engine wired to the filesystem corpus, JSON storage and the LLM provider."""
    from .config import get_corpus_root, get_index_root, get_resolver_settings
    from .core import BacklinkEngine
    from .corpus import FilesystemCorpus, FilesystemReader
    from .llm import ProviderAICapability
    from .store import JsonFileStorage

    corpus_root = Path(root) if root else get_corpus_root()
    return BacklinkEngine(
        str(corpus_root),
        corpus=FilesystemCorpus(),
        reader=FilesystemReader(),
        ai=ProviderAICapability() if use_ai else None,
        storage=JsonFileStorage(get_index_root(corpus_root)),
        settings=get_resolver_settings(),
    )


async def _loaded_engine(root: str | None = None, *, use_ai: bool = True):
    engine = _build_engine(root, use_ai=use_ai)
    await engine.load()
    return engine


def _resolve_query_path(engine, path: str) -> str:
    """Accept paths relative to the corpus root as well as indexed paths."""
    from .paths import normalize_path

    if normalize_path(path) in engine.state.docs:
        return path
    candidate = Path(engine.corpus_root) / path
    if normalize_path(str(candidate)) in engine.state.docs:
        return str(candidate)
    return path


def _print_refs(refs: list, as_json: bool, empty_message: str) -> None:
    if as_json:
        output([ref.model_dump() for ref in refs], as_json=True)
        return
    if not refs:
        click.echo(empty_message)
        return
    for ref in refs:
        click.echo(f"{ref.title}  ({ref.path})")


# ─────────────────────────────────────────────────────────────────────────────
# Main CLI Group
# ─────────────────────────────────────────────────────────────────────────────


@click.group()
@click.version_option(version=WIKIGRAPH_VERSION, prog_name="wg")
@click.option(
    "--json-errors",
    "json_errors",
    is_flag=True,
    help="Output errors as JSON (for programmatic use)",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    envvar="WIKIGRAPH_QUIET",
    help="Suppress warnings, show only errors and essential output",
)
@click.pass_context
def cli(ctx: click.Context, json_errors: bool, quiet: bool):
    """wg: bidirectional [[wiki-link]] index for a folder of notes.

    \b
    Quick start:
      wg rebuild                     # Index WIKIGRAPH_ROOT (or .wgconfig corpus_path)
      wg backlinks notes/topic.md    # Who links here?
      wg links notes/topic.md        # Where does this link to?
      wg related notes/topic.md      # Ask the LLM for related notes
    """
    from ._logging import configure_logging, set_quiet_mode

    configure_logging()
    ctx.ensure_object(dict)
    ctx.obj["json_errors"] = json_errors
    ctx.obj["quiet"] = quiet

    if quiet:
        set_quiet_mode(True)

    _apply_sort_locale()


@cli.command()
@click.option("--root", type=click.Path(file_okay=False), help="Corpus root (default: configured root)")
@click.option("--no-ai", "no_ai", is_flag=True, help="Skip AI fallback resolution")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def rebuild(ctx: click.Context, root: str | None, no_ai: bool, as_json: bool):
    """Rebuild the link index from every markdown file in the corpus.

    \b
    Examples:
      wg rebuild
      wg rebuild --root ~/notes --no-ai
    """
    try:
        engine = _build_engine(root, use_ai=not no_ai)
        result = run_async(engine.rebuild())
    except Exception as exc:
        _handle_error(ctx, exc)

    if as_json:
        output(result.model_dump(), as_json=True)
    else:
        click.echo(
            f"✓ Indexed {result.documents} documents: {result.link_edges} link edges, "
            f"{result.sibling_edges} sibling edges, {result.ai_resolved} resolved by AI, "
            f"{result.unresolved} unresolved links"
        )


@cli.command()
@click.argument("path")
@click.option("--root", type=click.Path(file_okay=False), help="Corpus root (default: configured root)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def backlinks(ctx: click.Context, path: str, root: str | None, as_json: bool):
    """List documents that link to PATH."""
    try:
        engine = run_async(_loaded_engine(root, use_ai=False))
    except Exception as exc:
        _handle_error(ctx, exc)

    refs = engine.backlinks_of(_resolve_query_path(engine, path))
    _print_refs(refs, as_json, "No backlinks.")


@cli.command()
@click.argument("path")
@click.option("--root", type=click.Path(file_okay=False), help="Corpus root (default: configured root)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def links(ctx: click.Context, path: str, root: str | None, as_json: bool):
    """List documents that PATH links to."""
    try:
        engine = run_async(_loaded_engine(root, use_ai=False))
    except Exception as exc:
        _handle_error(ctx, exc)

    refs = engine.links_of(_resolve_query_path(engine, path))
    _print_refs(refs, as_json, "No outgoing links.")


@cli.command()
@click.argument("path")
@click.option("--root", type=click.Path(file_okay=False), help="Corpus root (default: configured root)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def related(ctx: click.Context, path: str, root: str | None, as_json: bool):
    """Ask the configured LLM for documents related to PATH."""

    async def _related():
        engine = await _loaded_engine(root)
        return await engine.related_docs(_resolve_query_path(engine, path))

    try:
        refs = run_async(_related())
    except Exception as exc:
        _handle_error(ctx, exc)

    _print_refs(refs, as_json, "No related documents (is the index built and an LLM configured?).")


@cli.command()
@click.option("--root", type=click.Path(file_okay=False), help="Corpus root (default: configured root)")
@click.pass_context
def snapshot(ctx: click.Context, root: str | None):
    """Dump the index (docs, forward, backward) as JSON."""
    try:
        engine = run_async(_loaded_engine(root, use_ai=False))
    except Exception as exc:
        _handle_error(ctx, exc)

    output(engine.get_index_snapshot(), as_json=True)


@cli.command()
@click.option("--root", type=click.Path(file_okay=False), help="Corpus root (default: configured root)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def stats(ctx: click.Context, root: str | None, as_json: bool):
    """Show index size and build time."""
    try:
        engine = run_async(_loaded_engine(root, use_ai=False))
    except Exception as exc:
        _handle_error(ctx, exc)

    info: dict[str, Any] = engine.stats().model_dump()
    if as_json:
        output(info, as_json=True)
        return
    if not info["built_at"]:
        click.echo("No index built yet. Run 'wg rebuild'.")
        return
    click.echo(f"Corpus:     {info['corpus_root']}")
    click.echo(f"Documents:  {info['documents']}")
    click.echo(f"Edges:      {info['edges']}")
    click.echo(f"Linked:     {info['linked_documents']}")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
