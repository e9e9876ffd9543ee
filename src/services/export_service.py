"""JSON export of the document state and of the knowledge graph alone.

The export is one-way: it is produced on demand and never read back in.
Field names are camelCase and unset optional fields are omitted.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import structlog

from src.models.document import DocumentState
from src.models.export import ExportDocument, ExportMetadata
from src.models.graph import KnowledgeGraph
from src.models.provider import ProviderName
from src.utils.errors import PipelineError

logger = structlog.get_logger(logger_name=__name__)


class ExportService:
    """Builds and serializes export artifacts."""

    def build_export(
        self,
        state: DocumentState,
        provider: ProviderName,
        now: datetime | None = None,
    ) -> ExportDocument:
        """Assemble the export document for *state*.

        Raises
        ------
        PipelineError
            If the state has no chunks yet.
        """
        if state.chunks.size == 0:
            raise PipelineError(message="Nothing to export: the document has no chunks")

        metadata = ExportMetadata(
            timestamp=now or datetime.now(tz=timezone.utc),  # noqa: UP017
            stats=state.stats,
            source_type=state.input_kind,
            provider=provider,
        )
        return ExportDocument(
            metadata=metadata,
            chunks=list(state.chunks.chunks),
            knowledge_graph=state.knowledge_graph,
        )

    def to_dict(self, document: ExportDocument) -> dict[str, Any]:
        return document.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self, document: ExportDocument, indent: int = 2) -> str:
        return json.dumps(self.to_dict(document), indent=indent, ensure_ascii=False)

    def graph_to_json(self, graph: KnowledgeGraph | None, indent: int = 2) -> str:
        """Serialize the knowledge graph on its own.

        Raises
        ------
        PipelineError
            If no graph has been generated.
        """
        if graph is None:
            raise PipelineError(message="No knowledge graph has been generated")
        return json.dumps(graph.model_dump(mode="json"), indent=indent, ensure_ascii=False)

    def write(self, path: str | Path, content: str) -> Path:
        """Write serialized export *content* to *path*; returns the resolved path."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        logger.info("export_written", path=str(target), bytes=len(content.encode("utf-8")))
        return target

    @staticmethod
    def default_filename(kind: str = "document", now: datetime | None = None) -> str:
        """``contextual-pipeline-<ms>.json`` or ``knowledge-graph-<ms>.json``."""
        stamp = int((now or datetime.now(tz=timezone.utc)).timestamp() * 1000)  # noqa: UP017
        prefix = "knowledge-graph" if kind == "graph" else "contextual-pipeline"
        return f"{prefix}-{stamp}.json"
