"""Standalone CLI for ingesting and querying ragdocs documents.

Usage::

    python -m ragdocs.cli ingest report.pdf notes.md --owner alice

    python -m ragdocs.cli search "quarterly revenue" --owner alice --hybrid

    python -m ragdocs.cli stats --owner alice

    python -m ragdocs.cli reap-stale --minutes 30

Uses the same settings (``.env`` / environment) and database as the API.
"""

from __future__ import annotations

import argparse
import asyncio
import mimetypes
import sys
from datetime import timedelta
from pathlib import Path
from typing import Any

from ragdocs.config.settings import Settings


async def _build(app_settings: Settings) -> dict[str, Any]:
    """Build the service graph.

    Imports are deferred so ``--help`` does not load the web stack.
    """
    from ragdocs.main import build_services

    return await build_services(app_settings)


def _guess_file_type(path: Path, override: str | None) -> str | None:
    if override:
        return override
    guessed, _ = mimetypes.guess_type(path.name)
    if guessed is None and path.suffix.lower() in {".md", ".markdown"}:
        return "text/markdown"
    return guessed


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def _handle_ingest(args: argparse.Namespace, app_settings: Settings) -> int:
    """Ingest one or more files for an owner."""
    from ragdocs.models.options import ProcessOptions

    components = await _build(app_settings)
    service = components["document_service"]
    options = ProcessOptions(generate_embeddings=not args.no_embeddings)

    failures = 0
    for raw_path in args.files:
        path = Path(raw_path)
        if not path.is_file():
            print(f"  {path}: not a file", file=sys.stderr)
            failures += 1
            continue
        file_type = _guess_file_type(path, args.type)
        if file_type is None:
            print(f"  {path}: cannot determine file type (use --type)", file=sys.stderr)
            failures += 1
            continue

        data = path.read_bytes()
        result = await service.process_document(
            data,
            original_filename=path.name,
            owner_id=args.owner,
            file_type=file_type,
            title=args.title if len(args.files) == 1 else None,
            storage_path=str(path.resolve()),
            options=options,
        )
        document = result.document
        if result.deduplicated:
            print(f"  {path}: already ingested as {document.id} ({document.status.value})")
        elif result.success:
            print(
                f"  {path}: {document.id} -> {len(result.chunks)} chunks, "
                f"{result.total_tokens} tokens, ${result.embedding_cost:.6f}, "
                f"{result.processing_time_ms} ms"
            )
        else:
            failures += 1
            print(f"  {path}: FAILED ({result.error})", file=sys.stderr)

    return 1 if failures else 0


async def _handle_search(args: argparse.Namespace, app_settings: Settings) -> int:
    """Run a semantic or hybrid search and print the hits."""
    from ragdocs.models.options import HybridSearchOptions, SearchOptions

    components = await _build(app_settings)
    search = components["search_service"]

    if args.hybrid:
        options = HybridSearchOptions.build(
            limit=args.limit,
            threshold=args.threshold if args.threshold is not None else app_settings.hybrid_default_threshold,
        )
        response = await search.hybrid_search(args.query, args.owner, options)
    else:
        options = SearchOptions.build(
            limit=args.limit,
            threshold=args.threshold if args.threshold is not None else app_settings.search_default_threshold,
        )
        response = await search.semantic_search(args.query, args.owner, options)

    print(
        f"{response.total_results} {response.search_type} results "
        f"(threshold {response.similarity_threshold}, {response.processing_time_ms} ms)"
    )
    for rank, hit in enumerate(response.results, start=1):
        snippet = " ".join(hit.content.split())[:160]
        print(f"\n{rank}. [{hit.similarity_score:.4f}] {hit.document_title} #{hit.chunk_index}")
        print(f"   {snippet}")
    return 0


async def _handle_stats(args: argparse.Namespace, app_settings: Settings) -> int:
    """Print an owner's document statistics."""
    components = await _build(app_settings)
    stats = await components["document_service"].get_user_document_stats(args.owner)

    print(f"Documents:        {stats.total_documents}")
    print(f"Total size:       {stats.total_size} bytes")
    print(f"Total chunks:     {stats.total_chunks}")
    print(f"Avg chunks/doc:   {stats.average_chunks_per_document}")
    if stats.status_counts:
        print("\nBy status:")
        for status, count in sorted(stats.status_counts.items()):
            print(f"  {status:<12} {count}")
    if stats.file_type_counts:
        print("\nBy file type:")
        for file_type, count in sorted(stats.file_type_counts.items()):
            print(f"  {file_type:<40} {count}")
    return 0


async def _handle_reap_stale(args: argparse.Namespace, app_settings: Settings) -> int:
    """Mark documents stuck in processing as failed."""
    minutes = args.minutes if args.minutes is not None else app_settings.stale_processing_minutes
    components = await _build(app_settings)
    reaped = await components["document_service"].reclassify_stale_documents(
        timedelta(minutes=minutes)
    )
    print(f"Marked {len(reaped)} stale document(s) as failed (older than {minutes} min).")
    for document in reaped:
        print(f"  {document.id}  {document.original_filename}")
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the ragdocs CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m ragdocs.cli",
        description="Ingest documents and query them from the command line.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # -- ingest --
    ingest_parser = subparsers.add_parser("ingest", help="Extract, chunk and embed files")
    ingest_parser.add_argument("files", nargs="+", help="Paths of the files to ingest")
    ingest_parser.add_argument("--owner", required=True, help="Owner id")
    ingest_parser.add_argument("--title", help="Title (single file only)")
    ingest_parser.add_argument("--type", help="MIME type override, e.g. text/markdown")
    ingest_parser.add_argument(
        "--no-embeddings",
        action="store_true",
        dest="no_embeddings",
        help="Store chunks without vectors (reprocess later)",
    )

    # -- search --
    search_parser = subparsers.add_parser("search", help="Search an owner's documents")
    search_parser.add_argument("query", help="Search text")
    search_parser.add_argument("--owner", required=True, help="Owner id")
    search_parser.add_argument("--hybrid", action="store_true", help="Blend in keyword scores")
    search_parser.add_argument("--limit", type=int, default=10, help="Max results (1-50)")
    search_parser.add_argument("--threshold", type=float, help="Min semantic similarity (0-1)")

    # -- stats --
    stats_parser = subparsers.add_parser("stats", help="Show an owner's document statistics")
    stats_parser.add_argument("--owner", required=True, help="Owner id")

    # -- reap-stale --
    reap_parser = subparsers.add_parser(
        "reap-stale", help="Mark documents stuck in processing as failed"
    )
    reap_parser.add_argument(
        "--minutes", type=int, help="Age threshold (default: STALE_PROCESSING_MINUTES)"
    )

    return parser


_HANDLERS = {
    "ingest": _handle_ingest,
    "search": _handle_search,
    "stats": _handle_stats,
    "reap-stale": _handle_reap_stale,
}


def main(argv: list[str] | None = None) -> None:
    """CLI entry point: parse the subcommand and dispatch to its handler."""
    from ragdocs.utils.errors import RagDocsError

    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    try:
        exit_code = asyncio.run(_HANDLERS[args.command](args, app_settings))
    except RagDocsError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
