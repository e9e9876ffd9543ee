"""The isolated "generate knowledge graph" action.

Runs the graph-extraction capability over a document's chunks.  Any failure
is wrapped in :class:`GraphGenerationError`; the service never touches the
document state, so the caller decides whether the result still applies.
"""

from __future__ import annotations

import structlog

from src.interfaces.document_capabilities import IDocumentCapabilities
from src.models.document import DocumentState
from src.models.graph import KnowledgeGraph
from src.utils.errors import GraphGenerationError

logger = structlog.get_logger(logger_name=__name__)


class KnowledgeGraphService:
    """Generates a :class:`KnowledgeGraph` from a document's chunks."""

    async def generate(
        self,
        state: DocumentState,
        capabilities: IDocumentCapabilities,
    ) -> KnowledgeGraph:
        """Extract the knowledge graph of *state*'s chunks.

        Raises
        ------
        GraphGenerationError
            If there are no chunks or the capability call fails.
        """
        chunks = list(state.chunks.chunks)
        if not chunks:
            raise GraphGenerationError(message="No chunks available to build a Knowledge Graph")

        try:
            graph = await capabilities.extract_graph(chunks)
        except Exception as exc:
            logger.error(
                "graph_generation_failed",
                provider=capabilities.get_provider_name(),
                error=str(exc),
            )
            raise GraphGenerationError(provider_name=capabilities.get_provider_name()) from exc

        logger.info(
            "graph_generated",
            provider=capabilities.get_provider_name(),
            nodes=len(graph.nodes),
            edges=len(graph.edges),
        )
        return graph
