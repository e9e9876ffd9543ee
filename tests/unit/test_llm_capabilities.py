"""Unit tests for LLMDocumentCapabilities -- prompting and lenient parsing."""

from __future__ import annotations

import base64
import io
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from PIL import Image

from src.interfaces.llm_provider import ILLMProvider
from src.models.document import Chunk, Enrichment, Entities, InputKind, SummaryStyle
from src.providers.capabilities.llm_capabilities import (
    LLMDocumentCapabilities,
    extract_json_object,
)
from src.utils.errors import LLMError


def _mock_llm(response: str = "", *, vision: bool = True) -> MagicMock:
    llm = MagicMock(spec=ILLMProvider)
    llm.complete = AsyncMock(return_value=response)
    llm.vision_extract = AsyncMock(return_value="  scanned text  ")
    llm.supports_vision.return_value = vision
    llm.get_provider_name.return_value = "mock"
    return llm


def _png_b64() -> str:
    buf = io.BytesIO()
    Image.new("RGB", (40, 20), color=(255, 255, 255)).save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode("ascii")


_ENRICHMENT_JSON = json.dumps(
    {
        "context": "A product launch.",
        "keywords": ["launch", "product"],
        "sentiment": "Positive",
        "entities": {"people": ["Ada"], "organizations": ["Acme"], "locations": ["Berlin"]},
    }
)


# ======================================================================
# extract_json_object
# ======================================================================


class TestExtractJsonObject:
    def test_plain_object(self) -> None:
        assert extract_json_object('{"a": 1}') == {"a": 1}

    def test_fenced_object(self) -> None:
        assert extract_json_object('```json\n{"a": 1}\n```') == {"a": 1}

    def test_object_inside_prose(self) -> None:
        assert extract_json_object('Sure! Here it is: {"a": [1, 2]} Hope it helps.') == {"a": [1, 2]}

    def test_garbage_returns_none(self) -> None:
        assert extract_json_object("I cannot help with that.") is None

    def test_non_object_returns_none(self) -> None:
        assert extract_json_object("[1, 2, 3]") is None


# ======================================================================
# Enrichment
# ======================================================================


class TestEnrichChunk:
    @pytest.mark.asyncio
    async def test_parses_fenced_response(self) -> None:
        caps = LLMDocumentCapabilities(_mock_llm(f"```json\n{_ENRICHMENT_JSON}\n```"))

        result = await caps.enrich_chunk("Acme launched in Berlin.", "Launch news.")

        assert result.context == "A product launch."
        assert result.keywords == ["launch", "product"]
        assert result.sentiment == "Positive"
        assert result.entities == Entities(people=["Ada"], organizations=["Acme"], locations=["Berlin"])

    @pytest.mark.asyncio
    async def test_prompt_carries_chunk_and_summary(self) -> None:
        llm = _mock_llm(_ENRICHMENT_JSON)
        caps = LLMDocumentCapabilities(llm)

        await caps.enrich_chunk("CHUNK BODY", "DOC SUMMARY")

        prompt = llm.complete.call_args.kwargs["user_prompt"]
        assert "CHUNK BODY" in prompt
        assert "DOC SUMMARY" in prompt

    @pytest.mark.asyncio
    async def test_malformed_response_is_neutral(self) -> None:
        caps = LLMDocumentCapabilities(_mock_llm("not json at all"))

        result = await caps.enrich_chunk("text", "summary")

        assert result == Enrichment.neutral()
        assert result.sentiment == "Neutral"

    @pytest.mark.asyncio
    async def test_wrong_shape_is_neutral(self) -> None:
        caps = LLMDocumentCapabilities(_mock_llm('{"keywords": "not-a-list"}'))

        result = await caps.enrich_chunk("text", "summary")

        assert result == Enrichment.neutral()

    @pytest.mark.asyncio
    async def test_partial_payload_is_accepted(self) -> None:
        caps = LLMDocumentCapabilities(_mock_llm('{"context": "Only context."}'))

        result = await caps.enrich_chunk("text", "summary")

        assert result.context == "Only context."
        assert result.keywords is None

    @pytest.mark.asyncio
    async def test_llm_errors_propagate(self) -> None:
        llm = _mock_llm()
        llm.complete.side_effect = LLMError(message="down", provider_name="mock")
        caps = LLMDocumentCapabilities(llm)

        with pytest.raises(LLMError):
            await caps.enrich_chunk("text", "summary")


# ======================================================================
# Normalization and summaries
# ======================================================================


class TestNormalizeAndSummaries:
    @pytest.mark.asyncio
    async def test_normalize_text_strips_response(self) -> None:
        caps = LLMDocumentCapabilities(_mock_llm("  clean text \n"))

        assert await caps.normalize("raw   text", InputKind.TEXT) == "clean text"

    @pytest.mark.asyncio
    async def test_normalize_image_uses_vision(self) -> None:
        llm = _mock_llm()
        caps = LLMDocumentCapabilities(llm)

        result = await caps.normalize(f"data:image/png;base64,{_png_b64()}", InputKind.IMAGE)

        assert result == "scanned text"
        llm.vision_extract.assert_awaited_once()
        llm.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_image_without_vision_raises(self) -> None:
        caps = LLMDocumentCapabilities(_mock_llm(vision=False))

        with pytest.raises(LLMError):
            await caps.normalize(_png_b64(), InputKind.IMAGE)

    @pytest.mark.asyncio
    async def test_document_summary_is_truncated_by_limit(self) -> None:
        llm = _mock_llm("Summary.")
        caps = LLMDocumentCapabilities(llm, limits={"summary_char_limit": 5})

        await caps.summarize_document("abcdefghij")

        prompt = llm.complete.call_args.kwargs["user_prompt"]
        assert prompt.endswith("abcde")

    @pytest.mark.asyncio
    async def test_empty_document_summary_has_fallback(self) -> None:
        caps = LLMDocumentCapabilities(_mock_llm("   "))

        assert await caps.summarize_document("text") == "No context available."

    @pytest.mark.asyncio
    async def test_chunk_summary_style_reaches_prompt(self) -> None:
        llm = _mock_llm("- point")
        caps = LLMDocumentCapabilities(llm)

        result = await caps.summarize_chunk("text", SummaryStyle.TECHNICAL)

        assert result == "- point"
        assert "TL;DR" in llm.complete.call_args.kwargs["user_prompt"]


# ======================================================================
# Graph extraction
# ======================================================================


class TestExtractGraph:
    @staticmethod
    def _chunks(n: int) -> list[Chunk]:
        return [
            Chunk(id=f"c{i}", original_text=f"chunk number {i}", entities=Entities(people=[f"P{i}"]))
            for i in range(n)
        ]

    @pytest.mark.asyncio
    async def test_coerces_loose_payload(self) -> None:
        payload = {
            "nodes": [
                {"id": "ada", "label": "Ada", "type": "Person"},
                {"id": "acme"},
                {"label": "no id"},
                "junk",
            ],
            "edges": [
                {"source": "ada", "target": "acme", "relation": "founded"},
                {"source": "ada"},
            ],
        }
        caps = LLMDocumentCapabilities(_mock_llm(json.dumps(payload)))

        graph = await caps.extract_graph(self._chunks(1))

        assert [n.id for n in graph.nodes] == ["ada", "acme"]
        assert graph.nodes[1].label == "acme"
        assert graph.nodes[1].type == ""
        assert len(graph.edges) == 1
        assert graph.edges[0].relation == "founded"

    @pytest.mark.asyncio
    async def test_unparseable_payload_is_empty_graph(self) -> None:
        caps = LLMDocumentCapabilities(_mock_llm("no graph for you"))

        graph = await caps.extract_graph(self._chunks(2))

        assert graph.is_empty
        assert graph.edges == []

    @pytest.mark.asyncio
    async def test_chunk_limit_caps_prompt(self) -> None:
        llm = _mock_llm('{"nodes": [], "edges": []}')
        caps = LLMDocumentCapabilities(llm, limits={"graph_chunk_limit": 2})

        await caps.extract_graph(self._chunks(5))

        prompt = llm.complete.call_args.kwargs["user_prompt"]
        assert "chunk number 1" in prompt
        assert "chunk number 2" not in prompt

    def test_provider_name_comes_from_llm(self) -> None:
        assert LLMDocumentCapabilities(_mock_llm()).get_provider_name() == "mock"
