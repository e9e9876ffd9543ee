"""PDF text extractor backed by PyMuPDF (``fitz``).

Extracts text page by page in document order.  Pages are joined with a
blank line so the segmenter sees each page as at least one paragraph.
Scanned PDFs without a text layer yield an empty string; the pipeline
then reports an empty document.
"""

from __future__ import annotations

from pathlib import Path

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from src.interfaces.text_extractor import ITextExtractor
from src.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)


class PDFTextExtractor(ITextExtractor):
    """Reads the text layer of PDF files."""

    def extract(self, source: str | Path | bytes) -> str:
        try:
            if isinstance(source, bytes):
                doc = fitz.open(stream=source, filetype="pdf")
            else:
                doc = fitz.open(str(source))
        except Exception as exc:
            logger.error("pdf_open_failed", error=str(exc))
            raise ExtractionError(
                message=f"Could not open PDF: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        pages: list[str] = []
        try:
            for page in doc:
                text = page.get_text("text").strip()
                if text:
                    pages.append(text)
        finally:
            doc.close()

        if not pages:
            logger.warning("pdf_no_text_extracted")
        logger.info("pdf_extracted", pages=len(pages))
        return "\n\n".join(pages)

    def get_provider_name(self) -> str:
        return "pymupdf"
