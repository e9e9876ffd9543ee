"""Unit tests for ExportService and the chunk search filter."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from src.models.document import (
    Chunk,
    ChunkSequence,
    DocumentState,
    Entities,
    InputKind,
    PipelineStats,
)
from src.models.graph import KnowledgeGraph
from src.models.provider import ProviderName
from src.services.chunk_search import chunk_matches, filter_chunks
from src.services.export_service import ExportService
from src.utils.errors import PipelineError

_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)  # noqa: UP017


def _state(graph: KnowledgeGraph | None = None) -> DocumentState:
    chunks = ChunkSequence.of(
        [
            Chunk(
                id="c0",
                original_text="Acme opened an office in Lisbon.",
                enriched_context="Expansion news.",
                keywords=["office"],
                sentiment="Positive",
                entities=Entities(organizations=["Acme"], locations=["Lisbon"]),
            ),
            Chunk(id="c1", original_text="Nothing else happened."),
        ]
    )
    return DocumentState(
        raw_input="news.txt",
        input_kind=InputKind.TEXT,
        parsed_text="...",
        chunks=chunks,
        stats=PipelineStats(original_length=54, chunk_count=2, processing_time_ms=1200),
        knowledge_graph=graph,
    )


# ======================================================================
# ExportService
# ======================================================================


class TestExportService:
    @pytest.fixture()
    def exporter(self) -> ExportService:
        return ExportService()

    def test_export_shape(self, exporter: ExportService) -> None:
        data = exporter.to_dict(exporter.build_export(_state(), ProviderName.OLLAMA, now=_NOW))

        assert set(data) == {"metadata", "chunks"}
        assert data["metadata"]["sourceType"] == "text"
        assert data["metadata"]["provider"] == "ollama"
        assert data["metadata"]["stats"] == {
            "originalLength": 54,
            "chunkCount": 2,
            "processingTimeMs": 1200,
        }
        assert data["metadata"]["timestamp"].startswith("2024-05-01T12:00:00")
        first = data["chunks"][0]
        assert first["originalText"] == "Acme opened an office in Lisbon."
        assert first["enrichedContext"] == "Expansion news."
        assert first["entities"]["locations"] == ["Lisbon"]

    def test_unset_fields_are_omitted(self, exporter: ExportService) -> None:
        data = exporter.to_dict(exporter.build_export(_state(), ProviderName.OPENAI, now=_NOW))

        assert data["chunks"][1] == {"id": "c1", "originalText": "Nothing else happened."}

    def test_graph_is_included_when_present(self, exporter: ExportService, chain_graph: KnowledgeGraph) -> None:
        data = exporter.to_dict(exporter.build_export(_state(chain_graph), ProviderName.OPENAI))

        assert len(data["knowledgeGraph"]["nodes"]) == 4
        assert data["knowledgeGraph"]["edges"][0]["relation"] == "works at"

    def test_to_json_keeps_unicode(self, exporter: ExportService) -> None:
        state = _state()
        state = state.model_copy(
            update={"chunks": state.chunks.with_chunk(Chunk(id="c1", original_text="Zürich café"))}
        )

        text = exporter.to_json(exporter.build_export(state, ProviderName.OPENAI))

        assert "Zürich café" in text
        assert json.loads(text)["chunks"][1]["originalText"] == "Zürich café"

    def test_empty_document_cannot_be_exported(self, exporter: ExportService) -> None:
        with pytest.raises(PipelineError):
            exporter.build_export(DocumentState(), ProviderName.OPENAI)

    def test_graph_export(self, exporter: ExportService, chain_graph: KnowledgeGraph) -> None:
        data = json.loads(exporter.graph_to_json(chain_graph))
        assert [n["id"] for n in data["nodes"]] == ["A", "B", "C", "D"]

    def test_graph_export_without_graph(self, exporter: ExportService) -> None:
        with pytest.raises(PipelineError):
            exporter.graph_to_json(None)

    def test_write_creates_parent_dirs(self, exporter: ExportService, tmp_path: Path) -> None:
        target = exporter.write(tmp_path / "out" / "export.json", '{"ok": true}')

        assert target.read_text(encoding="utf-8") == '{"ok": true}'

    def test_default_filenames(self) -> None:
        stamp = int(_NOW.timestamp() * 1000)

        assert ExportService.default_filename("document", _NOW) == f"contextual-pipeline-{stamp}.json"
        assert ExportService.default_filename("graph", _NOW) == f"knowledge-graph-{stamp}.json"


# ======================================================================
# Chunk search
# ======================================================================


class TestChunkSearch:
    @pytest.fixture()
    def chunks(self) -> tuple[Chunk, ...]:
        return _state().chunks.chunks

    @pytest.mark.parametrize("query", ["lisbon", "EXPANSION", "offi", "acme"])
    def test_matches_text_context_keywords_entities(self, chunks, query: str) -> None:
        assert chunk_matches(chunks[0], query)

    def test_entity_only_match(self) -> None:
        chunk = Chunk(id="x", original_text="They met there.", entities=Entities(people=["Grace Hopper"]))
        assert chunk_matches(chunk, "hopper")

    def test_no_match(self, chunks) -> None:
        assert filter_chunks(chunks, "tokyo") == []

    def test_blank_query_returns_all_in_order(self, chunks) -> None:
        assert [c.id for c in filter_chunks(chunks, "  ")] == ["c0", "c1"]
        assert [c.id for c in filter_chunks(chunks, None)] == ["c0", "c1"]

    def test_filter_keeps_document_order(self, chunks) -> None:
        assert [c.id for c in filter_chunks(chunks, "e")] == ["c0", "c1"]
