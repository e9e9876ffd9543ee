"""Paragraph-aware chunking of normalized text.

Text is split on blank lines, then paragraphs are packed greedily into
chunks: a paragraph joins the current chunk while the joined text
(paragraphs separated by ``"\\n\\n"``) stays within ``target_size``
characters.  A paragraph that is longer than ``target_size`` on its own is
never cut; it becomes a single oversized chunk.  Output order is source
order and the output is never empty for non-empty input.
"""

from __future__ import annotations

import re
import uuid

import structlog

from src.models.document import Chunk, ChunkSequence

logger = structlog.get_logger(logger_name=__name__)

PARAGRAPH_SEPARATOR = "\n\n"
_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")


class Segmenter:
    """Deterministic paragraph-aware segmenter.

    Parameters
    ----------
    target_size:
        Default maximum chunk length in characters, used when
        :meth:`segment` is called without an explicit size.
    """

    def __init__(self, target_size: int = 300) -> None:
        if target_size <= 0:
            raise ValueError("target_size must be positive")
        self._target_size = target_size

    @property
    def target_size(self) -> int:
        return self._target_size

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def segment(self, text: str, target_size: int | None = None) -> list[str]:
        """Split *text* into ordered chunk strings.

        Parameters
        ----------
        text:
            Normalized document text.
        target_size:
            Maximum chunk length; defaults to the instance's size.

        Returns
        -------
        list[str]
            Chunks in document order.  Empty input returns ``[]``.
        """
        size = target_size if target_size is not None else self._target_size
        if size <= 0:
            raise ValueError("target_size must be positive")
        if not text:
            return []

        paragraphs = self._split_paragraphs(text)
        if not paragraphs:
            return [text]
        if len(paragraphs) == 1:
            return paragraphs

        chunks: list[str] = []
        current = ""
        for paragraph in paragraphs:
            if not current:
                current = paragraph
                continue
            candidate = f"{current}{PARAGRAPH_SEPARATOR}{paragraph}"
            if len(candidate) <= size:
                current = candidate
            else:
                chunks.append(current)
                current = paragraph
        chunks.append(current)
        return chunks

    def build_chunks(self, text: str, target_size: int | None = None) -> ChunkSequence:
        """Segment *text* and wrap each piece in a :class:`Chunk` with a fresh id."""
        size = target_size if target_size is not None else self._target_size
        segments = self.segment(text, size)
        batch = uuid.uuid4().hex[:12]
        chunks = [
            Chunk(id=f"chk_{batch}_{idx}", original_text=segment)
            for idx, segment in enumerate(segments)
        ]
        logger.debug(
            "segmentation_complete",
            num_chunks=len(chunks),
            target_size=size,
            oversized=sum(1 for s in segments if len(s) > size),
        )
        return ChunkSequence.of(chunks)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _split_paragraphs(text: str) -> list[str]:
        """Split on blank lines, discarding whitespace-only paragraphs."""
        parts = _PARAGRAPH_BREAK_RE.split(text)
        return [p.strip() for p in parts if p.strip()]
