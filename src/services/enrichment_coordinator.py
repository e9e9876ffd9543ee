"""Sequential per-chunk enrichment and summarization.

Drives a capability across every chunk of a :class:`ChunkSequence`, one
call at a time in document order.  A failing chunk never stops the batch:
enrichment failures mark the chunk with :data:`ENRICHMENT_FAILED`,
summary failures leave the summary unset.

Each update produces a new snapshot (``version + 1``) that is handed to
``on_chunk`` together with ``(current, total)``, so observers can render
incremental progress without sharing mutable state.

Cancellation is polled before each call and again after it returns; a
result that arrives after cancellation is discarded.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from src.models.document import ENRICHMENT_FAILED, Chunk, ChunkSequence, Enrichment, Entities
from src.pipeline.cancellation import CancellationToken

logger = structlog.get_logger(logger_name=__name__)

EnrichOne = Callable[[str, str], Awaitable[Enrichment]]
SummarizeOne = Callable[[str], Awaitable[str]]
# Receives (snapshot, current, total); may be sync or async.
ChunkCallback = Callable[[ChunkSequence, int, int], object]

DEFAULT_SENTIMENT = "Neutral"


def apply_enrichment(chunk: Chunk, enrichment: Enrichment) -> Chunk:
    """Return *chunk* with the enrichment fields filled, defaulting gaps."""
    return chunk.model_copy(
        update={
            "enriched_context": enrichment.context or "",
            "keywords": list(enrichment.keywords or []),
            "sentiment": enrichment.sentiment or DEFAULT_SENTIMENT,
            "entities": enrichment.entities or Entities(),
        }
    )


def _cancelled(token: CancellationToken | None) -> bool:
    return token is not None and token.is_cancelled


async def _emit(on_chunk: ChunkCallback | None, seq: ChunkSequence, current: int, total: int) -> None:
    if on_chunk is None:
        return
    result = on_chunk(seq, current, total)
    if asyncio.iscoroutine(result):
        await result


class EnrichmentCoordinator:
    """Runs enrich/summarize capabilities over a chunk sequence."""

    async def enrich_all(
        self,
        chunks: ChunkSequence,
        doc_summary: str,
        enrich_one: EnrichOne,
        token: CancellationToken | None = None,
        on_chunk: ChunkCallback | None = None,
    ) -> ChunkSequence:
        """Enrich every chunk in order.

        Parameters
        ----------
        chunks:
            The snapshot to enrich.
        doc_summary:
            Document-level context passed to every call.
        enrich_one:
            ``async (text, doc_summary) -> Enrichment``.
        token:
            Optional cancellation token, polled around each call.
        on_chunk:
            Called once per attempted chunk with the new snapshot.

        Returns
        -------
        ChunkSequence
            The last snapshot.  On cancellation, chunks not yet attempted
            are returned untouched.
        """
        seq = chunks
        total = chunks.size
        attempted = 0

        for chunk in chunks.chunks:
            if _cancelled(token):
                logger.info("enrichment_cancelled", attempted=attempted, total=total)
                break

            try:
                enrichment = await enrich_one(chunk.original_text, doc_summary)
                updated = apply_enrichment(chunk, enrichment)
            except Exception as exc:
                logger.warning("chunk_enrichment_failed", chunk_id=chunk.id, error=str(exc))
                updated = chunk.model_copy(update={"enriched_context": ENRICHMENT_FAILED})

            if _cancelled(token):
                logger.info("enrichment_cancelled", attempted=attempted, total=total, discarded=chunk.id)
                break

            seq = seq.with_chunk(updated)
            attempted += 1
            await _emit(on_chunk, seq, attempted, total)

        return seq

    async def summarize_all(
        self,
        chunks: ChunkSequence,
        summarize_one: SummarizeOne,
        token: CancellationToken | None = None,
        on_chunk: ChunkCallback | None = None,
    ) -> ChunkSequence:
        """Summarize every chunk that has no summary yet.

        Chunks that already carry a summary are skipped, so re-running on a
        fully summarized sequence makes no capability calls.  Progress counts
        only the chunks that needed a summary.
        """
        pending = [c for c in chunks.chunks if c.summary is None]
        seq = chunks
        total = len(pending)
        done = 0

        for chunk in pending:
            if _cancelled(token):
                logger.info("summarization_cancelled", done=done, total=total)
                break

            try:
                summary = await summarize_one(chunk.original_text)
            except Exception as exc:
                logger.warning("chunk_summary_failed", chunk_id=chunk.id, error=str(exc))
                summary = None

            if _cancelled(token):
                logger.info("summarization_cancelled", done=done, total=total, discarded=chunk.id)
                break

            if summary is not None:
                seq = seq.with_chunk(chunk.model_copy(update={"summary": summary}))
            done += 1
            await _emit(on_chunk, seq, done, total)

        return seq
