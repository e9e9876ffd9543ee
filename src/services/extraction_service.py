"""Routes binary containers to the matching text extractor.

The extractors are blocking (PyMuPDF, ebooklib), so they run in a worker
thread to keep the event loop responsive.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog

from src.interfaces.text_extractor import ITextExtractor
from src.models.document import InputKind
from src.providers.extraction.epub_extractor import EPUBTextExtractor
from src.providers.extraction.pdf_extractor import PDFTextExtractor
from src.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)


class TextExtractionService:
    """Pulls plain text out of PDF / EPUB inputs."""

    def __init__(self, extractors: dict[InputKind, ITextExtractor] | None = None) -> None:
        self._extractors: dict[InputKind, ITextExtractor] = (
            extractors
            if extractors is not None
            else {InputKind.PDF: PDFTextExtractor(), InputKind.EPUB: EPUBTextExtractor()}
        )

    def supports(self, kind: InputKind) -> bool:
        return kind in self._extractors

    async def extract(self, source: str | Path | bytes, kind: InputKind) -> str:
        """Return the container's text in document order.

        Raises
        ------
        ExtractionError
            If no extractor handles *kind* or the container is unreadable.
        """
        extractor = self._extractors.get(kind)
        if extractor is None:
            raise ExtractionError(message=f"No text extractor for input kind '{kind.value}'")

        try:
            text = await asyncio.to_thread(extractor.extract, source)
        except ExtractionError:
            raise
        except Exception as exc:
            raise ExtractionError(
                message=f"Text extraction failed: {exc}",
                provider_name=extractor.get_provider_name(),
            ) from exc

        logger.info(
            "text_extracted",
            kind=kind.value,
            extractor=extractor.get_provider_name(),
            chars=len(text),
        )
        return text
