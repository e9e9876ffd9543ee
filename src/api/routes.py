"""FastAPI routes for the contextual document pipeline.

Service dependencies are resolved from ``app.state`` via ``Depends`` using
the ``Annotated`` pattern, so handlers can be tested with stand-in objects.

Endpoint map (all under ``/api/v1``)::

    POST /documents/text                 run the pipeline on pasted text
    POST /documents/upload               run it on an uploaded file
    GET  /status                         stage, progress, dismissible error
    POST /cancel                         cooperative cancel of the active run
    POST /reset                          back to IDLE with an empty document
    POST /error/dismiss                  clear the error banner
    GET  /chunks?q=                      chunks, optionally filtered
    POST /chunks/summarize               summarize every pending chunk
    POST /chunks/{chunk_id}/summarize    summarize one chunk
    POST /graph/generate                 extract the knowledge graph
    GET  /graph                          visible graph, metrics, highlights
    POST /graph/focus | /graph/prune | /graph/select | /graph/hover
    POST /graph/search | /graph/physics | /graph/cluster | /graph/tick
    GET  /graph/nodes/{node_id}/connections
    GET  /export                         document export (JSON download)
    GET  /export/graph                   knowledge graph only
    GET  /health, /providers
"""

from __future__ import annotations

import io
import uuid
from typing import Annotated, Any

import structlog
from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    Form,
    HTTPException,
    Query,
    Request,
    UploadFile,
)
from fastapi.responses import JSONResponse, Response
from PIL import Image, UnidentifiedImageError

from src.api.schemas import (
    CancelResponse,
    ChunksResponse,
    ConnectionItem,
    ConnectionsResponse,
    ErrorResponse,
    GraphGenerateRequest,
    HealthResponse,
    NodeRequest,
    PhysicsRequest,
    ProgressInfo,
    ProviderInfo,
    ProvidersResponse,
    RunResponse,
    SearchRequest,
    SearchResponse,
    StatusResponse,
    SummarizeRequest,
    TextRunRequest,
    TickRequest,
    ToggleRequest,
)
from src.config.settings import Settings
from src.graph.explorer import GraphExplorer
from src.models.document import Chunk, InputKind, detect_input_kind
from src.models.provider import ProviderConfig, ProviderName
from src.pipeline.orchestrator import DocumentPipeline
from src.services.chunk_search import filter_chunks
from src.services.export_service import ExportService
from src.utils.errors import ContextPipelineError
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_MAX_FILE_SIZE = 25 * 1024 * 1024
_UPLOAD_CHUNK_SIZE = 64 * 1024
# Images are capped before they are held for the vision call.
_MAX_IMAGE_DIM = 2048


def _downscale_if_oversized(image_data: bytes, max_dim: int) -> bytes:
    """Downscale an image whose largest side exceeds *max_dim* pixels.

    Returns the original bytes when the image already fits or cannot be
    decoded; the vision step reports undecodable images itself.
    """
    try:
        img = Image.open(io.BytesIO(image_data))
        largest = max(img.size)
        if largest <= max_dim:
            return image_data

        img = img.convert("RGB")
        scale = max_dim / largest
        new_size = (int(img.size[0] * scale), int(img.size[1] * scale))
        img = img.resize(new_size, Image.LANCZOS)

        buf = io.BytesIO()
        img.save(buf, format="JPEG", quality=95)
        _logger.info(
            "image_downscaled",
            original_largest_dim=largest,
            new_size=new_size,
            original_bytes=len(image_data),
            new_bytes=buf.tell(),
        )
        return buf.getvalue()
    except (UnidentifiedImageError, OSError) as exc:
        _logger.warning("image_downscale_failed", error=str(exc))
        return image_data


# ---------------------------------------------------------------------------
# Dependency injection helpers -- resolve singletons from app.state
# ---------------------------------------------------------------------------


def _get_pipeline(request: Request) -> DocumentPipeline:
    return request.app.state.pipeline


def _get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _get_export_service(request: Request) -> ExportService:
    return request.app.state.export_service


PipelineDep = Annotated[DocumentPipeline, Depends(_get_pipeline)]
SettingsDep = Annotated[Settings, Depends(_get_settings)]
ExportDep = Annotated[ExportService, Depends(_get_export_service)]


def _get_explorer(request: Request) -> GraphExplorer:
    explorer: GraphExplorer | None = request.app.state.explorer
    if explorer is None:
        raise HTTPException(status_code=404, detail="No knowledge graph has been generated yet.")
    return explorer


ExplorerDep = Annotated[GraphExplorer, Depends(_get_explorer)]


def _new_explorer(request: Request, pipeline: DocumentPipeline) -> GraphExplorer:
    options: dict[str, Any] = request.app.state.layout_options
    explorer = GraphExplorer(
        pipeline.state.knowledge_graph,
        top_n=options["top_n"],
        centroids=options["centroids"],
        cluster_strength=options["cluster_strength"],
    )
    request.app.state.explorer = explorer
    return explorer


def _status(pipeline: DocumentPipeline) -> StatusResponse:
    progress = pipeline.progress
    return StatusResponse(
        run_id=pipeline.run_id,
        stage=pipeline.stage,
        busy=pipeline.is_busy,
        provider=pipeline.provider,
        progress=ProgressInfo(current=progress.current, total=progress.total, percent=progress.percent),
        error=pipeline.last_error,
    )


def _run_response(pipeline: DocumentPipeline, *, include_document: bool = True) -> RunResponse:
    return RunResponse(
        **_status(pipeline).model_dump(),
        document=pipeline.state if include_document else None,
    )


async def _run_in_background(pipeline: DocumentPipeline, **kwargs: Any) -> None:
    """Run the pipeline after the response was sent.

    Failures are already recorded on ``pipeline.last_error`` and broadcast
    as an ERROR progress event; they are only logged here.
    """
    try:
        await pipeline.run(**kwargs)
    except ContextPipelineError as exc:
        _logger.error("background_run_failed", run_id=kwargs.get("run_id"), error=str(exc))


async def _start_run(
    request: Request,
    pipeline: DocumentPipeline,
    background_tasks: BackgroundTasks,
    *,
    raw_input: str | bytes,
    kind: InputKind,
    config: ProviderConfig,
    background: bool,
    source_name: str | None,
    target_size: int | None,
    run_id: str | None,
) -> RunResponse:
    run_id = run_id or uuid.uuid4().hex
    # Rejected requests (busy, oversized) leave the current document untouched.
    pipeline.precheck(raw_input, kind)
    # A new document invalidates any graph session built on the old one.
    request.app.state.explorer = None
    kwargs: dict[str, Any] = {
        "raw_input": raw_input,
        "input_kind": kind,
        "config": config,
        "source_name": source_name,
        "target_size": target_size,
        "run_id": run_id,
    }

    if background:
        background_tasks.add_task(_run_in_background, pipeline, **kwargs)
        response = _run_response(pipeline, include_document=False)
        return response.model_copy(update={"run_id": run_id})

    await pipeline.run(**kwargs)
    return _run_response(pipeline)


# ---------------------------------------------------------------------------
# Document endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/documents/text",
    response_model=RunResponse,
    responses={409: {"model": ErrorResponse}, 413: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Run the pipeline on pasted text",
)
async def run_text(
    body: TextRunRequest,
    request: Request,
    pipeline: PipelineDep,
    settings: SettingsDep,
    background_tasks: BackgroundTasks,
) -> RunResponse:
    return await _start_run(
        request,
        pipeline,
        background_tasks,
        raw_input=body.text,
        kind=InputKind.TEXT,
        config=body.to_config(settings.default_provider_config()),
        background=body.background,
        source_name=None,
        target_size=body.chunk_size,
        run_id=body.run_id,
    )


@router.post(
    "/documents/upload",
    response_model=RunResponse,
    responses={413: {"model": ErrorResponse}, 415: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Run the pipeline on an uploaded text, image, PDF or EPUB file",
)
async def run_upload(
    file: UploadFile,
    request: Request,
    pipeline: PipelineDep,
    settings: SettingsDep,
    background_tasks: BackgroundTasks,
    provider: Annotated[ProviderName | None, Form()] = None,
    endpoint: Annotated[str, Form()] = "",
    model: Annotated[str, Form()] = "",
    chunk_size: Annotated[int | None, Form(gt=0)] = None,
    run_id: Annotated[str | None, Form()] = None,
    background: Annotated[bool, Form()] = False,
) -> RunResponse:
    kind = detect_input_kind(file.filename, file.content_type)
    if kind is None:
        raise HTTPException(
            status_code=415,
            detail=f"Unsupported file type: {file.content_type or file.filename}",
        )

    # Read in chunks so oversized uploads are rejected early.
    parts: list[bytes] = []
    total_size = 0
    while True:
        part = await file.read(_UPLOAD_CHUNK_SIZE)
        if not part:
            break
        total_size += len(part)
        if total_size > _MAX_FILE_SIZE:
            raise HTTPException(
                status_code=413,
                detail=f"File too large. Maximum: {_MAX_FILE_SIZE // (1024 * 1024)} MB.",
            )
        parts.append(part)
    data = b"".join(parts)
    del parts

    raw_input: str | bytes = data
    if kind == InputKind.TEXT:
        raw_input = data.decode("utf-8", errors="replace")
    elif kind == InputKind.IMAGE:
        raw_input = _downscale_if_oversized(data, _MAX_IMAGE_DIM)

    _logger.info("document_uploaded", filename=file.filename, kind=kind.value, bytes=total_size)

    selection = ProviderConfig(provider=provider, endpoint=endpoint, model_name=model) if provider else None
    return await _start_run(
        request,
        pipeline,
        background_tasks,
        raw_input=raw_input,
        kind=kind,
        config=selection or settings.default_provider_config(),
        background=background,
        source_name=file.filename,
        target_size=chunk_size,
        run_id=run_id,
    )


# ---------------------------------------------------------------------------
# Run control
# ---------------------------------------------------------------------------


@router.get("/status", response_model=StatusResponse, summary="Current stage and progress")
async def get_status(pipeline: PipelineDep) -> StatusResponse:
    return _status(pipeline)


@router.post("/cancel", response_model=CancelResponse, summary="Cancel the active run")
async def cancel_run(pipeline: PipelineDep) -> CancelResponse:
    return CancelResponse(cancelled=pipeline.cancel())


@router.post("/reset", response_model=StatusResponse, summary="Discard the document and return to IDLE")
async def reset_pipeline(request: Request, pipeline: PipelineDep) -> StatusResponse:
    pipeline.reset()
    request.app.state.explorer = None
    return _status(pipeline)


@router.post("/error/dismiss", response_model=StatusResponse, summary="Clear the error banner")
async def dismiss_error(pipeline: PipelineDep) -> StatusResponse:
    pipeline.dismiss_error()
    return _status(pipeline)


# ---------------------------------------------------------------------------
# Chunks
# ---------------------------------------------------------------------------


@router.get("/chunks", response_model=ChunksResponse, summary="List or search chunks")
async def list_chunks(
    pipeline: PipelineDep,
    q: Annotated[str, Query(description="Case-insensitive search over text, context, keywords, entities")] = "",
) -> ChunksResponse:
    chunks = filter_chunks(pipeline.state.chunks.chunks, q)
    return ChunksResponse(query=q, total=pipeline.state.chunks.size, chunks=chunks)


@router.post("/chunks/summarize", response_model=ChunksResponse, summary="Summarize all pending chunks")
async def summarize_chunks(
    body: SummarizeRequest,
    pipeline: PipelineDep,
    settings: SettingsDep,
) -> ChunksResponse:
    state = await pipeline.summarize_chunks(
        body.style,
        config=body.to_config(settings.default_provider_config()),
    )
    return ChunksResponse(total=state.chunks.size, chunks=list(state.chunks.chunks))


@router.post(
    "/chunks/{chunk_id}/summarize",
    response_model=Chunk,
    responses={404: {"model": ErrorResponse}},
    summary="Summarize one chunk",
)
async def summarize_chunk(
    chunk_id: str,
    body: SummarizeRequest,
    pipeline: PipelineDep,
    settings: SettingsDep,
) -> Chunk:
    if pipeline.state.chunks.get(chunk_id) is None:
        raise HTTPException(status_code=404, detail=f"Chunk not found: {chunk_id}")
    state = await pipeline.summarize_chunk(
        chunk_id,
        body.style,
        config=body.to_config(settings.default_provider_config()),
    )
    return state.chunks.get(chunk_id)


# ---------------------------------------------------------------------------
# Knowledge graph
# ---------------------------------------------------------------------------


@router.post(
    "/graph/generate",
    responses={502: {"model": ErrorResponse}},
    summary="Extract the knowledge graph from the current chunks",
)
async def generate_graph(
    body: GraphGenerateRequest,
    request: Request,
    pipeline: PipelineDep,
    settings: SettingsDep,
) -> dict[str, Any]:
    await pipeline.generate_graph(config=body.to_config(settings.default_provider_config()))
    return _new_explorer(request, pipeline).to_dict()


@router.get("/graph", responses={404: {"model": ErrorResponse}}, summary="Visible graph and metrics")
async def get_graph(explorer: ExplorerDep) -> dict[str, Any]:
    return explorer.to_dict()


@router.post("/graph/focus", summary="Isolate a node and its neighbors (null clears)")
async def focus_node(body: NodeRequest, explorer: ExplorerDep) -> dict[str, Any]:
    if body.node_id is None:
        explorer.clear_focus()
    else:
        explorer.focus(body.node_id)
    return explorer.to_dict()


@router.post("/graph/prune", summary="Hide nodes with at most one connection")
async def prune_leaves(body: ToggleRequest, explorer: ExplorerDep) -> dict[str, Any]:
    explorer.set_prune_leaves(body.enabled)
    return explorer.to_dict()


@router.post("/graph/select", summary="Select a node (null clears)")
async def select_node(body: NodeRequest, explorer: ExplorerDep) -> dict[str, Any]:
    explorer.select(body.node_id)
    return explorer.to_dict()


@router.post("/graph/hover", summary="Hover a node (null clears)")
async def hover_node(body: NodeRequest, explorer: ExplorerDep) -> dict[str, Any]:
    explorer.hover(body.node_id)
    return explorer.to_dict()


@router.post("/graph/search", response_model=SearchResponse, summary="Select the first visible label match")
async def search_graph(body: SearchRequest, explorer: ExplorerDep) -> SearchResponse:
    match = explorer.search(body.query)
    return SearchResponse(match=match.id if match else None, graph=explorer.to_dict())


@router.post("/graph/physics", summary="Update charge, link distance and particle speed")
async def set_physics(body: PhysicsRequest, explorer: ExplorerDep) -> dict[str, Any]:
    explorer.set_physics(body.charge, body.link_distance, body.particle_speed)
    return explorer.to_dict()


@router.post("/graph/cluster", summary="Toggle the cluster-by-type force")
async def set_cluster(body: ToggleRequest, explorer: ExplorerDep) -> dict[str, Any]:
    explorer.set_cluster_by_type(body.enabled)
    return explorer.to_dict()


@router.post("/graph/tick", summary="Advance the layout simulation")
async def tick_layout(body: TickRequest, explorer: ExplorerDep) -> dict[str, Any]:
    explorer.tick(body.steps)
    return explorer.to_dict()


@router.get(
    "/graph/nodes/{node_id}/connections",
    response_model=ConnectionsResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Relations of a visible node",
)
async def node_connections(node_id: str, explorer: ExplorerDep) -> ConnectionsResponse:
    if explorer.view.node(node_id) is None:
        raise HTTPException(status_code=404, detail=f"Node not visible: {node_id}")
    return ConnectionsResponse(
        node_id=node_id,
        connections=[
            ConnectionItem(relation=relation, node_id=other.id, label=other.label)
            for relation, other in explorer.connections(node_id)
        ],
    )


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


@router.get("/export", responses={409: {"model": ErrorResponse}}, summary="Download the document export")
async def export_document(pipeline: PipelineDep, exporter: ExportDep) -> JSONResponse:
    document = exporter.build_export(pipeline.state, pipeline.provider)
    filename = ExportService.default_filename("document")
    return JSONResponse(
        content=exporter.to_dict(document),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/export/graph", responses={409: {"model": ErrorResponse}}, summary="Download the knowledge graph")
async def export_graph(pipeline: PipelineDep, exporter: ExportDep) -> Response:
    content = exporter.graph_to_json(pipeline.state.knowledge_graph)
    filename = ExportService.default_filename("graph")
    return Response(
        content=content,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------------------------------------------------------------------------
# System endpoints
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Application health check")
async def health_check(request: Request, pipeline: PipelineDep, settings: SettingsDep) -> HealthResponse:
    providers = settings.get_available_llm_providers()
    return HealthResponse(
        status="healthy" if providers else "degraded",
        version=request.app.version,
        stage=pipeline.stage,
        providers=providers,
    )


@router.get("/providers", response_model=ProvidersResponse, summary="List AI providers")
async def list_providers(settings: SettingsDep) -> ProvidersResponse:
    configured = set(settings.get_available_llm_providers())
    models = {
        ProviderName.OPENAI: settings.openai_text_model,
        ProviderName.ANTHROPIC: settings.anthropic_model,
        ProviderName.OLLAMA: settings.ollama_model,
    }
    return ProvidersResponse(
        providers=[
            ProviderInfo(
                name=name,
                configured=name.value in configured,
                default=name == settings.default_provider,
                model=models[name],
            )
            for name in ProviderName
        ]
    )
