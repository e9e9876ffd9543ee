"""Domain models -- re-exports all public model classes.

Submodules by concern:
    - document.py  -- chunks, enrichment, stats, document state
    - graph.py     -- knowledge graph nodes and edges
    - pipeline.py  -- stage machine, progress, error records
    - provider.py  -- provider routing config
    - export.py    -- the JSON export artifact
"""

from __future__ import annotations

from src.models.document import (
    ENRICHMENT_FAILED,
    Chunk,
    ChunkSequence,
    DocumentState,
    Enrichment,
    Entities,
    InputKind,
    PipelineStats,
    SummaryStyle,
)
from src.models.export import ExportDocument, ExportMetadata
from src.models.graph import GraphEdge, GraphNode, KnowledgeGraph
from src.models.pipeline import (
    ALLOWED_TRANSITIONS,
    PipelineErrorRecord,
    PipelineProgress,
    PipelineStage,
    ProgressEvent,
)
from src.models.provider import ProviderConfig, ProviderName

__all__ = [
    "ALLOWED_TRANSITIONS",
    "ENRICHMENT_FAILED",
    "Chunk",
    "ChunkSequence",
    "DocumentState",
    "Enrichment",
    "Entities",
    "ExportDocument",
    "ExportMetadata",
    "GraphEdge",
    "GraphNode",
    "InputKind",
    "KnowledgeGraph",
    "PipelineErrorRecord",
    "PipelineProgress",
    "PipelineStage",
    "PipelineStats",
    "ProgressEvent",
    "ProviderConfig",
    "ProviderName",
    "SummaryStyle",
]
