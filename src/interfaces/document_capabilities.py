"""Abstract interface for the AI capabilities the pipeline consumes.

The orchestrator and the enrichment coordinator depend only on this
interface.  Each backend (cloud or local) is one implementation; routing
between them happens once, when the capabilities object is built from a
:class:`~src.models.provider.ProviderConfig`.

Every method may raise.  Callers apply the failure policy: normalization
errors fail the run, per-chunk enrichment errors are isolated to the chunk,
graph errors are isolated to the graph action.  Implementations must *not*
raise on malformed structured output; they return neutral defaults instead.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.document import Chunk, Enrichment, InputKind, SummaryStyle
from src.models.graph import KnowledgeGraph


# Concrete implementation: LLMDocumentCapabilities
# Located in: src/providers/capabilities/
class IDocumentCapabilities(ABC):
    """Contract for normalize / summarize / enrich / graph-extract."""

    @abstractmethod
    async def normalize(self, text: str, kind: InputKind) -> str:
        """Clean plain text, or OCR an image.

        For ``InputKind.IMAGE`` *text* is a ``data:`` URL or bare base64
        string.  Returns an empty string when nothing is readable.
        """

    @abstractmethod
    async def summarize_document(self, text: str) -> str:
        """Return a short high-level summary used as context for every chunk."""

    @abstractmethod
    async def enrich_chunk(self, text: str, doc_summary: str) -> Enrichment:
        """Return context, keywords, sentiment and entities for one chunk."""

    @abstractmethod
    async def summarize_chunk(self, text: str, style: SummaryStyle = SummaryStyle.BULLET) -> str:
        """Return a concise summary of one chunk in the requested style."""

    @abstractmethod
    async def extract_graph(self, chunks: list[Chunk]) -> KnowledgeGraph:
        """Return entity nodes and relationship edges for the chunk set."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the backing provider's identifier."""
