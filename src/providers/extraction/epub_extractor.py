"""EPUB text extractor backed by ebooklib and BeautifulSoup.

Walks the book spine (reading order), strips the XHTML of each document
item and joins the sections with blank lines.
"""

from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path

import ebooklib
import structlog
from bs4 import BeautifulSoup
from ebooklib import epub

from src.interfaces.text_extractor import ITextExtractor
from src.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

# Collapse runs of whitespace while keeping paragraph breaks.
_MULTI_NEWLINE = re.compile(r"\n{3,}")
_MULTI_SPACE = re.compile(r"[ \t]{2,}")


class EPUBTextExtractor(ITextExtractor):
    """Reads the document items of EPUB files in spine order."""

    def extract(self, source: str | Path | bytes) -> str:
        if isinstance(source, bytes):
            # ebooklib only reads from a path.
            fd, tmp_path = tempfile.mkstemp(suffix=".epub")
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(source)
                return self._extract_path(tmp_path)
            finally:
                os.unlink(tmp_path)
        return self._extract_path(str(source))

    def _extract_path(self, file_path: str) -> str:
        try:
            book = epub.read_epub(file_path, options={"ignore_ncx": True})
        except Exception as exc:
            logger.error("epub_open_failed", error=str(exc))
            raise ExtractionError(
                message=f"Could not open EPUB: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        sections = [text for text in (_item_text(item) for item in _reading_order(book)) if text]
        if not sections:
            logger.warning("epub_no_text_extracted")
        logger.info("epub_extracted", sections=len(sections))
        return "\n\n".join(sections)

    def get_provider_name(self) -> str:
        return "ebooklib"


def _reading_order(book: epub.EpubBook) -> list:
    """Document items in spine order, falling back to manifest order."""
    items = []
    for entry in book.spine:
        idref = entry[0] if isinstance(entry, tuple) else entry
        item = book.get_item_with_id(idref)
        if item is not None and item.get_type() == ebooklib.ITEM_DOCUMENT:
            items.append(item)
    if not items:
        items = list(book.get_items_of_type(ebooklib.ITEM_DOCUMENT))
    return items


def _item_text(item) -> str:
    html_content = item.get_content().decode("utf-8", errors="replace")
    soup = BeautifulSoup(html_content, "html.parser")
    text = soup.get_text(separator="\n")
    text = _MULTI_SPACE.sub(" ", text)
    text = _MULTI_NEWLINE.sub("\n\n", text)
    return text.strip()
