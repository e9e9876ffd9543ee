"""Document-side models: chunks, enrichment, stats and the document state.

All models are frozen Pydantic v2 models.  Updates produce new instances via
``model_copy(update={...})``; the chunk collection is a versioned
:class:`ChunkSequence` so each enrichment step yields a new snapshot that
observers can compare by ``version``.

Serialized names are camelCase (``originalText``, ``enrichedContext``) so
the JSON export matches the artifact consumed by downstream tools.
"""

from __future__ import annotations

from enum import Enum
from pathlib import PurePath

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.models.graph import KnowledgeGraph

_CAMEL = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

# Written to ``Chunk.enriched_context`` when the enrich capability raised.
ENRICHMENT_FAILED = "Enrichment failed"


class InputKind(str, Enum):  # noqa: UP042
    """How the raw input must be turned into text."""

    TEXT = "text"
    IMAGE = "image"
    PDF = "pdf"
    EPUB = "epub"

    @property
    def is_container(self) -> bool:
        """Binary containers go through the extraction service first."""
        return self in (InputKind.PDF, InputKind.EPUB)


_KIND_BY_CONTENT_TYPE = {
    "application/pdf": InputKind.PDF,
    "application/epub+zip": InputKind.EPUB,
    "text/plain": InputKind.TEXT,
    "text/markdown": InputKind.TEXT,
}
_KIND_BY_SUFFIX = {
    ".pdf": InputKind.PDF,
    ".epub": InputKind.EPUB,
    ".txt": InputKind.TEXT,
    ".md": InputKind.TEXT,
    ".png": InputKind.IMAGE,
    ".jpg": InputKind.IMAGE,
    ".jpeg": InputKind.IMAGE,
    ".webp": InputKind.IMAGE,
    ".gif": InputKind.IMAGE,
}


def detect_input_kind(filename: str | None, content_type: str | None = None) -> InputKind | None:
    """Pick the input kind from a MIME type, falling back to the file suffix."""
    content_type = (content_type or "").split(";")[0].strip().lower()
    if content_type in _KIND_BY_CONTENT_TYPE:
        return _KIND_BY_CONTENT_TYPE[content_type]
    if content_type.startswith("image/"):
        return InputKind.IMAGE
    return _KIND_BY_SUFFIX.get(PurePath(filename or "").suffix.lower())


class SummaryStyle(str, Enum):  # noqa: UP042
    BULLET = "bullet"
    EXECUTIVE = "executive"
    TECHNICAL = "technical"


class Entities(BaseModel):
    """Named entities found in one chunk.  Not deduplicated by the core."""

    model_config = _CAMEL

    people: list[str] = Field(default_factory=list)
    organizations: list[str] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)

    def all_names(self) -> list[str]:
        return [*self.people, *self.organizations, *self.locations]


class Enrichment(BaseModel):
    """Structured result of the enrich-one-chunk capability.

    Every field is optional; missing values are defaulted when the result is
    applied to a chunk.
    """

    model_config = _CAMEL

    context: str | None = None
    keywords: list[str] | None = None
    sentiment: str | None = None
    entities: Entities | None = None

    @classmethod
    def neutral(cls) -> Enrichment:
        """Stand-in used when the capability's payload could not be parsed."""
        return cls(
            context="Analysis failed",
            keywords=[],
            sentiment="Neutral",
            entities=Entities(),
        )


class Chunk(BaseModel):
    """A contiguous text segment plus its enrichment metadata."""

    model_config = _CAMEL

    id: str
    original_text: str
    enriched_context: str | None = None
    keywords: list[str] | None = None
    sentiment: str | None = None
    entities: Entities | None = None
    summary: str | None = None

    @property
    def is_enriched(self) -> bool:
        return self.enriched_context is not None and self.enriched_context != ENRICHMENT_FAILED

    @property
    def enrichment_failed(self) -> bool:
        return self.enriched_context == ENRICHMENT_FAILED


class ChunkSequence(BaseModel):
    """Owned, versioned, ordered collection of chunks.

    Order is document order.  ``with_chunk`` replaces a chunk by ``id`` and
    returns a new snapshot with ``version + 1``; the receiver is unchanged.
    """

    model_config = ConfigDict(frozen=True)

    chunks: tuple[Chunk, ...] = ()
    version: int = 0

    @classmethod
    def of(cls, chunks: list[Chunk] | tuple[Chunk, ...]) -> ChunkSequence:
        ids = [c.id for c in chunks]
        if len(ids) != len(set(ids)):
            raise ValueError("chunk ids must be unique")
        return cls(chunks=tuple(chunks))

    def get(self, chunk_id: str) -> Chunk | None:
        for chunk in self.chunks:
            if chunk.id == chunk_id:
                return chunk
        return None

    def index_of(self, chunk_id: str) -> int:
        for idx, chunk in enumerate(self.chunks):
            if chunk.id == chunk_id:
                return idx
        return -1

    def with_chunk(self, updated: Chunk) -> ChunkSequence:
        """Return a new snapshot where the chunk with ``updated.id`` is replaced."""
        idx = self.index_of(updated.id)
        if idx < 0:
            raise KeyError(updated.id)
        items = list(self.chunks)
        items[idx] = updated
        return ChunkSequence(chunks=tuple(items), version=self.version + 1)

    @property
    def size(self) -> int:
        return len(self.chunks)


class PipelineStats(BaseModel):
    model_config = _CAMEL

    original_length: int = 0
    chunk_count: int = 0
    processing_time_ms: int = 0


class DocumentState(BaseModel):
    """Aggregate root for one pipeline run.

    ``raw_input`` is a short descriptor (file name, or a preview of pasted
    text), never the full payload.
    """

    model_config = _CAMEL

    raw_input: str | None = None
    input_kind: InputKind = InputKind.TEXT
    parsed_text: str = ""
    chunks: ChunkSequence = Field(default_factory=ChunkSequence)
    stats: PipelineStats = Field(default_factory=PipelineStats)
    knowledge_graph: KnowledgeGraph | None = None
