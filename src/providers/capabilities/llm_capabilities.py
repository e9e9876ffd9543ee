"""LLM-backed implementation of :class:`IDocumentCapabilities`.

One instance wraps one :class:`ILLMProvider`; switching between a cloud and
a local backend means building a different provider, never branching on a
provider string inside the pipeline.  Prompt sizing (how much of the
document goes into the summary prompt, how many chunks feed the graph
prompt) comes from the ``prompt_limits`` section of ``config/config.yaml``.

Structured responses (enrichment, graph) are parsed leniently: code fences
and chatter around the JSON object are stripped, and anything that still
fails to parse or validate degrades to a neutral / empty result with a
warning log.  Those failures are never raised.
"""

from __future__ import annotations

import json
import re
from typing import Any

import structlog
from pydantic import ValidationError

from src.interfaces.document_capabilities import IDocumentCapabilities
from src.interfaces.llm_provider import ILLMProvider
from src.models.document import Chunk, Enrichment, InputKind, SummaryStyle
from src.models.graph import GraphEdge, GraphNode, KnowledgeGraph
from src.utils.errors import LLMError
from src.utils.image_utils import decode_image_payload, prepare_for_vision

logger = structlog.get_logger(logger_name=__name__)

_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)
_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

DEFAULT_LIMITS: dict[str, Any] = {
    "summary_char_limit": 10000,
    "graph_chunk_limit": None,
    "graph_text_preview": 200,
}

_SENTIMENTS = "Neutral, Positive, Negative, Informational"

_STYLE_INSTRUCTIONS = {
    SummaryStyle.BULLET: "one or two concise bullet points",
    SummaryStyle.EXECUTIVE: "a short professional paragraph",
    SummaryStyle.TECHNICAL: "a data-heavy TL;DR that keeps figures and names",
}

_OCR_PROMPT = (
    "Perform OCR on this image. Extract all readable text. Return ONLY the "
    "extracted text in its original language. No markdown formatting blocks."
)

_NORMALIZE_SYSTEM = (
    "You clean raw document text. Remove excessive whitespace and fix broken "
    "lines. Keep paragraph breaks as blank lines. Return only the clean text "
    "in its original language; do not translate or summarize."
)

_ENRICH_SYSTEM = (
    "You are a contextual enrichment engine. You answer with a single JSON "
    "object and nothing else."
)

_GRAPH_SYSTEM = (
    "You are a knowledge graph generator. You answer with a single JSON "
    "object and nothing else."
)


def extract_json_object(response: str) -> dict[str, Any] | None:
    """Pull a JSON object out of an LLM response.

    Handles markdown code fences and prose around the object.  Returns
    ``None`` when no object can be decoded.
    """
    text = response.strip()

    fence_match = _JSON_FENCE_RE.search(text)
    if fence_match:
        text = fence_match.group(1).strip()

    if not text.startswith("{"):
        brace_match = _JSON_OBJECT_RE.search(text)
        if brace_match:
            text = brace_match.group(0)

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        logger.warning("json_parse_failed", error=str(exc), preview=text[:120])
        return None
    if not isinstance(parsed, dict):
        logger.warning("json_object_parse_not_dict", type=type(parsed).__name__)
        return None
    return parsed


class LLMDocumentCapabilities(IDocumentCapabilities):
    """Document capabilities implemented with prompts over an LLM provider."""

    def __init__(self, llm: ILLMProvider, limits: dict[str, Any] | None = None) -> None:
        self._llm = llm
        self._limits = {**DEFAULT_LIMITS, **(limits or {})}

    # ------------------------------------------------------------------
    # Normalization
    # ------------------------------------------------------------------

    async def normalize(self, text: str, kind: InputKind) -> str:
        if kind == InputKind.IMAGE:
            return await self._ocr(text)

        cleaned = await self._llm.complete(
            system_prompt=_NORMALIZE_SYSTEM,
            user_prompt=f"TEXT:\n{text}",
            temperature=0.0,
        )
        return cleaned.strip()

    async def _ocr(self, payload: str) -> str:
        if not self._llm.supports_vision():
            raise LLMError(
                message="Image input requires a vision-capable model",
                provider_name=self._llm.get_provider_name(),
            )
        image_bytes = prepare_for_vision(decode_image_payload(payload))
        text = await self._llm.vision_extract(image_bytes, _OCR_PROMPT)
        logger.info("image_ocr_complete", provider=self._llm.get_provider_name(), chars=len(text))
        return text.strip()

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    async def summarize_document(self, text: str) -> str:
        limit = self._limits["summary_char_limit"]
        truncated = text[:limit] if limit else text
        summary = await self._llm.complete(
            system_prompt="You write short high-level document summaries.",
            user_prompt=(
                "Summarize the following document in 2 sentences to provide "
                "high-level context. Write the summary in the SAME language as "
                f"the document:\n\n{truncated}"
            ),
        )
        return summary.strip() or "No context available."

    async def summarize_chunk(self, text: str, style: SummaryStyle = SummaryStyle.BULLET) -> str:
        instruction = _STYLE_INSTRUCTIONS[SummaryStyle(style)]
        summary = await self._llm.complete(
            system_prompt="You summarize text segments.",
            user_prompt=(
                f"Summarize this text concisely as {instruction}. Write the "
                "summary in the SAME language as the text:\n\n"
                f'"{text}"'
            ),
            max_tokens=512,
        )
        return summary.strip() or "Could not generate summary."

    # ------------------------------------------------------------------
    # Structured outputs
    # ------------------------------------------------------------------

    async def enrich_chunk(self, text: str, doc_summary: str) -> Enrichment:
        response = await self._llm.complete(
            system_prompt=_ENRICH_SYSTEM,
            user_prompt=(
                f"DOCUMENT SUMMARY: {doc_summary}\n\n"
                f'CURRENT CHUNK: "{text}"\n\n'
                "Analyze the chunk in relation to the document summary and return JSON:\n"
                '{"context": "<one sentence on what this chunk is about>", '
                '"keywords": ["<up to 3 keywords>"], '
                f'"sentiment": "<exactly one of: {_SENTIMENTS}>", '
                '"entities": {"people": [], "organizations": [], "locations": []}}\n'
                "Write context, keywords and entities in the SAME language as the chunk."
            ),
            temperature=0.2,
            max_tokens=1024,
        )

        data = extract_json_object(response)
        if data is None:
            return Enrichment.neutral()
        try:
            return Enrichment.model_validate(data)
        except ValidationError as exc:
            logger.warning("enrichment_payload_invalid", errors=exc.error_count())
            return Enrichment.neutral()

    async def extract_graph(self, chunks: list[Chunk]) -> KnowledgeGraph:
        chunk_limit = self._limits["graph_chunk_limit"]
        preview = self._limits["graph_text_preview"]
        selected = chunks[:chunk_limit] if chunk_limit else chunks

        context_data = "\n---\n".join(
            f'Text: "{c.original_text[:preview]}..."\n'
            f"Entities Found: {json.dumps(c.entities.model_dump() if c.entities else None, ensure_ascii=False)}"
            for c in selected
        )
        response = await self._llm.complete(
            system_prompt=_GRAPH_SYSTEM,
            user_prompt=(
                "Analyze the text chunks and their extracted entities.\n"
                "1. Identify unique entities (nodes) representing People, "
                "Organizations, Locations, or Concepts. Merge duplicates.\n"
                "2. Identify relationships (edges) between these entities based on the text.\n"
                "Node labels and edge relations MUST stay in the same language as the input.\n"
                'Return JSON: {"nodes": [{"id": "<snake_case id>", "label": "...", '
                '"type": "Person|Organization|Location|Concept"}], '
                '"edges": [{"source": "<node id>", "target": "<node id>", "relation": "..."}]}\n\n'
                f"INPUT DATA:\n{context_data}"
            ),
            temperature=0.2,
        )

        data = extract_json_object(response)
        if data is None:
            return KnowledgeGraph()
        graph = _coerce_graph(data)
        logger.info(
            "graph_extracted",
            provider=self._llm.get_provider_name(),
            nodes=len(graph.nodes),
            edges=len(graph.edges),
        )
        return graph

    def get_provider_name(self) -> str:
        return self._llm.get_provider_name()


def _coerce_graph(data: dict[str, Any]) -> KnowledgeGraph:
    """Build a graph from loosely-shaped JSON, skipping unusable items."""
    raw_nodes = _as_list(data.get("nodes"))
    raw_edges = _as_list(data.get("edges"))

    nodes: list[GraphNode] = []
    for item in raw_nodes:
        if not isinstance(item, dict) or item.get("id") in (None, ""):
            continue
        node_id = str(item["id"])
        nodes.append(
            GraphNode(
                id=node_id,
                label=str(item.get("label") or node_id),
                type=str(item.get("type") or ""),
            )
        )

    edges: list[GraphEdge] = []
    for item in raw_edges:
        if not isinstance(item, dict) or not item.get("source") or not item.get("target"):
            continue
        edges.append(
            GraphEdge(
                source=str(item["source"]),
                target=str(item["target"]),
                relation=str(item.get("relation") or ""),
            )
        )

    skipped = len(raw_nodes) + len(raw_edges) - len(nodes) - len(edges)
    if skipped:
        logger.warning("graph_items_skipped", count=skipped)
    return KnowledgeGraph(nodes=nodes, edges=edges)


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []
