"""Export artifact models.

The export is one-way: produced on demand, never read back in.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from src.models.document import Chunk, InputKind, PipelineStats
from src.models.graph import KnowledgeGraph
from src.models.provider import ProviderName


class ExportMetadata(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    timestamp: datetime
    stats: PipelineStats
    source_type: InputKind
    provider: ProviderName


class ExportDocument(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    metadata: ExportMetadata
    chunks: list[Chunk]
    knowledge_graph: KnowledgeGraph | None = None
