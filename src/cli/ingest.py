# =============================================================================
# src/cli/ingest.py -- Knowledge base CLI
# =============================================================================
#
# Operator commands for a project's slice of the vector store, using the same
# providers and settings as the API server (src.main.build_services), so the
# CLI always embeds with the model the deployed app queries with.
#
# Subcommands:
#
#   ingest  -- Parse, chunk, embed and store one PDF for a project
#   ask     -- Stream an answer to stdout, then list its citations
#   stats   -- Chunk / document counts for a project
#
# Usage examples:
#   python -m src.cli ingest --project acme-01 --doc-type SOP --file sop.pdf
#   python -m src.cli ask --project acme-01 "What is the calibration interval?"
#   python -m src.cli stats --project acme-01
# =============================================================================

"""Command-line interface for the project knowledge base."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

from src.config.settings import Settings
from src.models.rag import DocType, IngestionStatus
from src.utils.errors import KnowledgeBaseError


def _build_components(app_settings: Settings) -> dict[str, Any]:
    # Deferred so that --help does not construct providers.
    from src.main import build_services

    return build_services(app_settings)


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_ingest(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Ingest one PDF."""
    service = components.get("ingestion_service")
    if service is None:
        print("Error: no embedding provider available.", file=sys.stderr)
        print("Set OPENAI_API_KEY or OLLAMA_BASE_URL.", file=sys.stderr)
        return 1

    path = Path(args.file)
    if not path.is_file():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return 1

    print(f"Ingesting {path.name} into project {args.project} as {args.doc_type}")
    result = await service.ingest_pdf(
        project_id=args.project,
        doc_type=args.doc_type,
        data=path.read_bytes(),
        filename=path.name,
    )

    print(result.message)
    print(f"  Pages:        {result.pages}")
    print(f"  Document ID:  {result.document_id}")
    print(f"  Time:         {result.ingestion_time:.2f}s")
    if result.status is IngestionStatus.NO_CONTENT:
        print("  Nothing was stored; the PDF has no extractable text.")
    return 0


async def _handle_ask(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Stream an answer, then print its citations."""
    service = components.get("qa_service")
    if service is None:
        print("Error: no embedding provider available.", file=sys.stderr)
        return 1

    stream = await service.ask(args.query, args.project)
    async for part in stream:
        print(part, end="", flush=True)
    print()

    result = stream.result
    if result is not None and result.citations:
        print("\nSources:")
        for citation in result.citations:
            print(f"  - {citation.doc_type}, page {citation.page_number}")
    return 0


async def _handle_stats(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Display project statistics."""
    vector_store = components["vector_store"]
    if not vector_store.is_available():
        print("Vector store not available.", file=sys.stderr)
        return 1

    stats = await vector_store.get_stats(args.project)

    print(f"Project {stats.project_id}")
    print("=" * 40)
    print(f"  Total chunks:     {stats.total_chunks}")
    print(f"  Total documents:  {stats.total_documents}")
    if stats.chunks_by_doc_type:
        print("\n  Chunks by document type:")
        for doc_type, count in sorted(stats.chunks_by_doc_type.items()):
            print(f"    {doc_type:<18} {count}")
    return 0


_HANDLERS = {
    "ingest": _handle_ingest,
    "ask": _handle_ask,
    "stats": _handle_stats,
}


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the knowledge base CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m src.cli",
        description="Ingest project documents and ask grounded questions about them.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    ingest_parser = subparsers.add_parser("ingest", help="Ingest a PDF document")
    ingest_parser.add_argument("--project", required=True, help="Project id")
    ingest_parser.add_argument(
        "--doc-type",
        required=True,
        dest="doc_type",
        help=f"Document type ({', '.join(t.value for t in DocType)})",
    )
    ingest_parser.add_argument("--file", required=True, help="Path to the PDF file")

    ask_parser = subparsers.add_parser("ask", help="Ask a question about a project")
    ask_parser.add_argument("--project", required=True, help="Project id")
    ask_parser.add_argument("query", help="The question")

    stats_parser = subparsers.add_parser("stats", help="Show project statistics")
    stats_parser.add_argument("--project", required=True, help="Project id")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.

    Exits 1 on bad usage or a pipeline error; the error class and message
    are printed to stderr.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()

    try:
        components = _build_components(app_settings)
        exit_code = asyncio.run(_HANDLERS[args.command](args, components))
    except KnowledgeBaseError as exc:
        print(f"Error ({type(exc).__name__}): {exc}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
