"""Standalone CLI for running the document pipeline on a local file.

Usage::

    python -m src.cli.process notes.txt
    python -m src.cli.process report.pdf --provider ollama --graph
    python -m src.cli.process book.epub --summarize executive --json
    python -m src.cli.process scan.png -o export.json

Text, Markdown, PNG/JPEG/WEBP/GIF, PDF and EPUB inputs are accepted.  The
report (or, with ``--json``, the export document) goes to stdout; progress
and logs go to stderr so stdout stays machine-readable.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

from src.models.document import DocumentState, InputKind, SummaryStyle, detect_input_kind
from src.models.pipeline import ProgressEvent
from src.models.provider import ProviderConfig, ProviderName

_MAX_FILE_SIZE = 50 * 1024 * 1024


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def _print_progress(event: ProgressEvent) -> None:
    if event.total:
        print(f"[{event.stage.value}] {event.current}/{event.total} {event.message}", file=sys.stderr)
    else:
        print(f"[{event.stage.value}] {event.message}", file=sys.stderr)


def format_text_report(state: DocumentState, metrics: Any | None = None) -> str:
    """Human-readable summary of a finished run."""
    lines: list[str] = []
    sep = "=" * 60

    lines.append(sep)
    lines.append("  Contextual Pipeline -- Report")
    lines.append(sep)
    lines.append(f"Source: {state.raw_input or '-'} ({state.input_kind.value})")
    stats = state.stats
    lines.append(
        f"Characters: {stats.original_length:,}  |  Chunks: {stats.chunk_count}  |  "
        f"Time: {stats.processing_time_ms / 1000:.1f}s"
    )
    lines.append("")

    for idx, chunk in enumerate(state.chunks.chunks, start=1):
        lines.append(f"--- Chunk {idx} [{chunk.sentiment or '-'}] ---")
        preview = chunk.original_text[:160].replace("\n", " ")
        lines.append(f"  Text:     {preview}{'...' if len(chunk.original_text) > 160 else ''}")
        if chunk.enriched_context:
            lines.append(f"  Context:  {chunk.enriched_context}")
        if chunk.keywords:
            lines.append(f"  Keywords: {', '.join(chunk.keywords)}")
        if chunk.entities and chunk.entities.all_names():
            lines.append(f"  Entities: {', '.join(chunk.entities.all_names())}")
        if chunk.summary:
            lines.append(f"  Summary:  {chunk.summary}")
        lines.append("")

    graph = state.knowledge_graph
    if graph is not None:
        lines.append("KNOWLEDGE GRAPH")
        lines.append("-" * 40)
        lines.append(f"  Nodes: {len(graph.nodes)}  |  Edges: {len(graph.edges)}")
        if metrics is not None:
            lines.append(f"  Density: {metrics.density:.3f}  |  Avg degree: {metrics.avg_degree:.2f}")
            if metrics.top_nodes:
                top = ", ".join(f"{n.label} ({n.val:g})" for n in metrics.top_nodes)
                lines.append(f"  Most connected: {top}")
        labels = {n.id: n.label for n in graph.nodes}
        for edge in graph.edges[:15]:
            lines.append(
                f"    {labels.get(edge.source, edge.source)} --[{edge.relation}]--> "
                f"{labels.get(edge.target, edge.target)}"
            )
        lines.append("")

    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Pipeline runner
# ---------------------------------------------------------------------------


def _read_input(path: Path, kind: InputKind) -> str | bytes | Path:
    if kind == InputKind.TEXT:
        return path.read_text(encoding="utf-8", errors="replace")
    if kind == InputKind.IMAGE:
        return path.read_bytes()
    return path


async def _run(args: argparse.Namespace) -> int:
    """Validate the input, run the pipeline and write the output.

    Returns 0 on success, 1 on validation or pipeline errors.
    """
    # Deferred: src.main builds the application on import.
    from src.graph.explorer import GraphExplorer
    from src.main import build_pipeline
    from src.pipeline.progress_tracker import ALL_RUNS
    from src.utils.errors import ContextPipelineError, GraphGenerationError
    from src.utils.logging import configure_logging

    configure_logging(log_level="WARNING" if args.quiet else args.log_level, stream=sys.stderr)

    path: Path = args.path
    if not path.exists():
        print(f"Error: File not found: {path}", file=sys.stderr)
        return 1
    kind = InputKind(args.kind) if args.kind else detect_input_kind(path.name)
    if kind is None:
        print(f"Error: Unsupported file type: {path.suffix or path.name}", file=sys.stderr)
        return 1
    if path.stat().st_size > _MAX_FILE_SIZE:
        print(f"Error: File too large. Maximum: {_MAX_FILE_SIZE:,} bytes.", file=sys.stderr)
        return 1

    components = build_pipeline()
    pipeline = components["pipeline"]
    exporter = components["export_service"]
    settings = components["settings"]
    if not args.quiet:
        components["progress_tracker"].register_listener(ALL_RUNS, _print_progress)

    config = (
        ProviderConfig(provider=ProviderName(args.provider), endpoint=args.endpoint, model_name=args.model)
        if args.provider
        else settings.default_provider_config()
    )

    try:
        state = await pipeline.run(
            _read_input(path, kind),
            kind,
            config,
            source_name=path.name,
            target_size=args.chunk_size,
        )
        if args.summarize:
            state = await pipeline.summarize_chunks(SummaryStyle(args.summarize), config)
    except ContextPipelineError as exc:
        record = pipeline.last_error
        print(f"Error: {record.message if record else exc.message}", file=sys.stderr)
        return 1

    metrics = None
    if args.graph:
        try:
            state = await pipeline.generate_graph(config)
            explorer = GraphExplorer(
                state.knowledge_graph,
                top_n=components["layout_options"]["top_n"],
                centroids=components["layout_options"]["centroids"],
            )
            metrics = explorer.metrics
        except GraphGenerationError as exc:
            print(f"Warning: {exc.message}", file=sys.stderr)

    export_json = exporter.to_json(exporter.build_export(state, pipeline.provider))

    if args.output:
        target = Path(args.output)
        if target.is_dir():
            target = target / exporter.default_filename("document")
        exporter.write(target, export_json)
        print(f"Export written to: {target}", file=sys.stderr)

    if args.json_output:
        print(export_json)
    elif not args.output or not args.quiet:
        print(format_text_report(state, metrics))
    return 0


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m src.cli.process",
        description=(
            "Run the contextual enrichment pipeline on a local document and "
            "print a report or the JSON export."
        ),
    )
    parser.add_argument("path", type=Path, help="Text, image, PDF or EPUB file.")
    parser.add_argument(
        "--kind",
        choices=[k.value for k in InputKind],
        default=None,
        help="Override input type detection.",
    )
    parser.add_argument(
        "--provider",
        choices=[p.value for p in ProviderName],
        default=None,
        help="AI provider (defaults to DEFAULT_PROVIDER).",
    )
    parser.add_argument("--model", default="", help="Model name override.")
    parser.add_argument("--endpoint", default="", help="Endpoint URL override.")
    parser.add_argument("--chunk-size", type=int, default=None, help="Target chunk size in characters.")
    parser.add_argument(
        "--summarize",
        choices=[s.value for s in SummaryStyle],
        default=None,
        help="Also summarize every chunk in this style.",
    )
    parser.add_argument("--graph", action="store_true", help="Also generate the knowledge graph.")
    parser.add_argument("--output", "-o", default=None, help="Write the JSON export to this file or directory.")
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Print the JSON export instead of the text report.",
    )
    parser.add_argument("--quiet", "-q", action="store_true", help="Only warnings on stderr, no progress.")
    parser.add_argument("--log-level", default="INFO", help="Log level for stderr output.")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.chunk_size is not None and args.chunk_size <= 0:
        print("Error: --chunk-size must be positive", file=sys.stderr)
        return 1
    # JSON mode implies quiet so stdout stays parseable.
    if args.json_output:
        args.quiet = True
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
