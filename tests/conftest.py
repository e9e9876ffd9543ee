"""Shared pytest fixtures for the context-pipeline test suite."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from src.config.settings import Settings
from src.interfaces.document_capabilities import IDocumentCapabilities
from src.models.document import (
    Chunk,
    ChunkSequence,
    Enrichment,
    Entities,
    InputKind,
    SummaryStyle,
)
from src.models.graph import GraphEdge, GraphNode, KnowledgeGraph

# ---------------------------------------------------------------------------
# Fake capabilities
# ---------------------------------------------------------------------------


class FakeCapabilities(IDocumentCapabilities):
    """Scripted :class:`IDocumentCapabilities` that records every call.

    ``normalized`` replaces the normalize output (``None`` echoes the input),
    ``enrichments`` maps chunk text to a canned result, and chunk texts in
    ``fail_on`` raise.  When ``gate`` is set, ``enrich_chunk`` signals
    ``entered`` and then waits for the gate, which lets tests hold a run
    mid-flight.  ``graph_gate`` does the same for ``extract_graph`` with
    ``graph_entered``.
    """

    def __init__(
        self,
        *,
        normalized: str | None = None,
        enrichments: dict[str, Enrichment] | None = None,
        fail_on: tuple[str, ...] = (),
        graph: KnowledgeGraph | None = None,
        graph_error: Exception | None = None,
        normalize_error: Exception | None = None,
        summary_error: Exception | None = None,
        on_enrich: Callable[[int], None] | None = None,
        gate: asyncio.Event | None = None,
        graph_gate: asyncio.Event | None = None,
    ) -> None:
        self.normalized = normalized
        self.enrichments = enrichments or {}
        self.fail_on = set(fail_on)
        self.graph = graph if graph is not None else KnowledgeGraph()
        self.graph_error = graph_error
        self.normalize_error = normalize_error
        self.summary_error = summary_error
        self.on_enrich = on_enrich
        self.gate = gate
        self.graph_gate = graph_gate
        self.entered = asyncio.Event()
        self.graph_entered = asyncio.Event()
        self.calls: list[tuple[str, str]] = []

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)

    async def normalize(self, text: str, kind: InputKind) -> str:
        self.calls.append(("normalize", text))
        if self.normalize_error is not None:
            raise self.normalize_error
        return text if self.normalized is None else self.normalized

    async def summarize_document(self, text: str) -> str:
        self.calls.append(("summarize_document", text))
        return "A short test document."

    async def enrich_chunk(self, text: str, doc_summary: str) -> Enrichment:
        self.calls.append(("enrich_chunk", text))
        if self.gate is not None:
            self.entered.set()
            await self.gate.wait()
        if self.on_enrich is not None:
            self.on_enrich(self.count("enrich_chunk"))
        if text in self.fail_on:
            raise RuntimeError(f"enrichment failed for {text[:20]!r}")
        return self.enrichments.get(
            text,
            Enrichment(
                context=f"About {text[:20]}",
                keywords=["test"],
                sentiment="Informational",
                entities=Entities(),
            ),
        )

    async def summarize_chunk(self, text: str, style: SummaryStyle = SummaryStyle.BULLET) -> str:
        self.calls.append(("summarize_chunk", text))
        if self.summary_error is not None:
            raise self.summary_error
        return f"{SummaryStyle(style).value}: {text[:12]}"

    async def extract_graph(self, chunks: list[Chunk]) -> KnowledgeGraph:
        self.calls.append(("extract_graph", str(len(chunks))))
        if self.graph_gate is not None:
            self.graph_entered.set()
            await self.graph_gate.wait()
        if self.graph_error is not None:
            raise self.graph_error
        return self.graph

    def get_provider_name(self) -> str:
        return "fake"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any local ``.env``, with no chunking pause."""
    return Settings(
        _env_file=None,
        default_provider="openai",
        openai_api_key="sk-test",
        anthropic_api_key="",
        chunking_delay_seconds=0.0,
        max_text_length=1_000,
        chunk_target_size=300,
    )


@pytest.fixture
def app_config() -> dict[str, Any]:
    """Minimal resolved config, so tests do not depend on config/config.yaml."""
    return {
        "prompt_limits": {"default": {"summary_char_limit": 10000}},
        "layout": {
            "cluster_strength": 0.1,
            "centroids": {
                "person": [-150, -100],
                "organization": [150, -100],
                "location": [0, 150],
            },
        },
    }


@pytest.fixture
def fake_capabilities() -> FakeCapabilities:
    return FakeCapabilities()


@pytest.fixture
def capabilities_cls() -> type[FakeCapabilities]:
    """The fake class itself, for tests that need a scripted instance."""
    return FakeCapabilities


@pytest.fixture
def make_chunks() -> Callable[..., ChunkSequence]:
    """Factory: ``make_chunks("a", "b")`` -> sequence with ids ``c0``, ``c1``."""

    def _make(*texts: str) -> ChunkSequence:
        return ChunkSequence.of([Chunk(id=f"c{i}", original_text=t) for i, t in enumerate(texts)])

    return _make


@pytest.fixture
def chain_graph() -> KnowledgeGraph:
    """A - B - C - D path with one node of each category."""
    return KnowledgeGraph(
        nodes=[
            GraphNode(id="A", label="Alice", type="Person"),
            GraphNode(id="B", label="Acme Corp", type="Organization"),
            GraphNode(id="C", label="Berlin", type="Location"),
            GraphNode(id="D", label="Dana", type="Person"),
        ],
        edges=[
            GraphEdge(source="A", target="B", relation="works at"),
            GraphEdge(source="B", target="C", relation="based in"),
            GraphEdge(source="C", target="D", relation="home of"),
        ],
    )
