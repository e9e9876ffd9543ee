"""Abstract base class for binary-container text extractors."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path


# Concrete implementations: PDFTextExtractor, EPUBTextExtractor
# Located in: src/providers/extraction/
class ITextExtractor(ABC):
    """Pulls plain text out of a document container (PDF, EPUB, ...)."""

    @abstractmethod
    def extract(self, source: str | Path | bytes) -> str:
        """Return page/section text concatenated in document order.

        Parameters
        ----------
        source:
            A filesystem path or the raw file bytes.

        Raises
        ------
        src.utils.errors.ExtractionError
            If the container cannot be opened or parsed.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the backing library's name, e.g. ``"pymupdf"``."""
