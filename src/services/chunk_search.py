"""Case-insensitive chunk filter.

A chunk matches when the query occurs in its original text, its enriched
context, any keyword, or any entity name.  A blank query matches
everything.  Result order is document order.
"""

from __future__ import annotations

from collections.abc import Iterable

from src.models.document import Chunk


def chunk_matches(chunk: Chunk, query: str) -> bool:
    q = query.lower()
    if q in chunk.original_text.lower():
        return True
    if chunk.enriched_context and q in chunk.enriched_context.lower():
        return True
    if chunk.keywords and any(q in k.lower() for k in chunk.keywords):
        return True
    if chunk.entities and any(q in name.lower() for name in chunk.entities.all_names()):
        return True
    return False


def filter_chunks(chunks: Iterable[Chunk], query: str | None) -> list[Chunk]:
    if not query or not query.strip():
        return list(chunks)
    return [c for c in chunks if chunk_matches(c, query.strip())]
