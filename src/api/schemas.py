"""Pydantic request/response schemas for the context-pipeline API.

Request schemas end with ``Request``, response schemas with ``Response``.
Document payloads reuse the domain models directly, so chunk fields come out
camelCased (``originalText``, ``enrichedContext``) just like the export.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from src.models.document import Chunk, DocumentState, SummaryStyle
from src.models.pipeline import PipelineErrorRecord, PipelineStage
from src.models.provider import ProviderConfig, ProviderName


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class ProviderSelection(BaseModel):
    """Optional per-request provider routing.

    Omitting ``provider`` uses the server's default provider settings.
    """

    provider: ProviderName | None = None
    endpoint: str = ""
    model: str = ""

    def to_config(self, default: ProviderConfig) -> ProviderConfig:
        if self.provider is None:
            return default
        return ProviderConfig(provider=self.provider, endpoint=self.endpoint, model_name=self.model)


class TextRunRequest(ProviderSelection):
    """Pasted text to run through the pipeline."""

    text: str = Field(min_length=1)
    run_id: str | None = Field(default=None, description="Subscribe to /ws/progress/{run_id} first")
    chunk_size: int | None = Field(default=None, gt=0)
    background: bool = Field(default=False, description="Return immediately and run in the background")


class SummarizeRequest(ProviderSelection):
    style: SummaryStyle = SummaryStyle.BULLET


class GraphGenerateRequest(ProviderSelection):
    pass


class NodeRequest(BaseModel):
    node_id: str | None = None


class ToggleRequest(BaseModel):
    enabled: bool


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)


class PhysicsRequest(BaseModel):
    charge: float | None = None
    link_distance: float | None = Field(default=None, gt=0)
    particle_speed: float | None = Field(default=None, ge=0)


class TickRequest(BaseModel):
    steps: int = Field(default=1, ge=1, le=1000)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class ProgressInfo(BaseModel):
    current: int = 0
    total: int = 0
    percent: float = 0.0


class StatusResponse(BaseModel):
    """Current stage, enrichment progress and the dismissible error, if any."""

    run_id: str
    stage: PipelineStage
    busy: bool
    provider: ProviderName
    progress: ProgressInfo
    error: PipelineErrorRecord | None = None


class RunResponse(StatusResponse):
    document: DocumentState | None = None


class ChunksResponse(BaseModel):
    query: str = ""
    total: int
    chunks: list[Chunk]


class CancelResponse(BaseModel):
    cancelled: bool


class ConnectionItem(BaseModel):
    relation: str
    node_id: str
    label: str


class ConnectionsResponse(BaseModel):
    node_id: str
    connections: list[ConnectionItem]


class SearchResponse(BaseModel):
    match: str | None = None
    graph: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error body returned by the error-handling middleware."""

    error: str
    detail: str
    provider: str | None = None


class HealthResponse(BaseModel):
    status: str
    version: str
    stage: PipelineStage
    providers: list[str] = Field(default_factory=list)


class ProviderInfo(BaseModel):
    name: ProviderName
    configured: bool
    default: bool
    model: str = ""


class ProvidersResponse(BaseModel):
    providers: list[ProviderInfo]
