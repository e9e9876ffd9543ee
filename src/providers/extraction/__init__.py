"""Binary-container text extractors (PDF, EPUB)."""

from src.providers.extraction.epub_extractor import EPUBTextExtractor
from src.providers.extraction.pdf_extractor import PDFTextExtractor

__all__ = ["EPUBTextExtractor", "PDFTextExtractor"]
