"""context-pipeline FastAPI application entry point.

Wires providers, services and routes together via dependency injection.
Loads configuration from ``.env`` and ``config/config.yaml`` and configures
structured logging.

``build_llm_provider`` / ``build_capabilities_factory`` / ``build_pipeline``
are also used by the CLI (``python -m src.cli.process``).
"""

from __future__ import annotations

from collections.abc import Callable
from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI, WebSocket

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router as api_router
from src.api.websocket import websocket_progress
from src.config.loader import load_config, provider_limits
from src.config.settings import Settings
from src.graph.layout import CLUSTER_STRENGTH, DEFAULT_CENTROIDS
from src.interfaces.document_capabilities import IDocumentCapabilities
from src.interfaces.llm_provider import ILLMProvider
from src.models.provider import ProviderConfig, ProviderName
from src.pipeline.orchestrator import DocumentPipeline
from src.pipeline.progress_tracker import ProgressTracker
from src.providers.capabilities.llm_capabilities import LLMDocumentCapabilities
from src.providers.llm.anthropic_provider import AnthropicLLMProvider
from src.providers.llm.ollama_provider import OllamaLLMProvider
from src.providers.llm.openai_provider import OpenAILLMProvider
from src.services.export_service import ExportService
from src.utils.errors import ConfigurationError
from src.utils.logging import configure_logging, get_logger

APP_VERSION = "0.1.0"

CapabilitiesFactory = Callable[[ProviderConfig], IDocumentCapabilities]

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def build_llm_provider(config: ProviderConfig, app_settings: Settings) -> ILLMProvider:
    """Build the :class:`ILLMProvider` for one routing config.

    Raises
    ------
    ConfigurationError
        A cloud provider is selected without its API key.
    """
    model = config.model_name or None
    if config.provider == ProviderName.OLLAMA:
        return OllamaLLMProvider(settings=app_settings, model=model, base_url=config.endpoint or None)
    if config.provider == ProviderName.ANTHROPIC:
        if not app_settings.anthropic_api_key:
            raise ConfigurationError(
                message="ANTHROPIC_API_KEY is not set", provider_name="anthropic"
            )
        return AnthropicLLMProvider(settings=app_settings, model=model)
    if config.provider == ProviderName.OPENAI:
        endpoint = config.endpoint or app_settings.openai_base_url
        # Custom OpenAI-compatible servers may not need a key.
        if not app_settings.openai_api_key and not endpoint:
            raise ConfigurationError(message="OPENAI_API_KEY is not set", provider_name="openai")
        return OpenAILLMProvider(settings=app_settings, model=model, base_url=endpoint or None)
    raise ConfigurationError(message=f"Unknown provider: {config.provider}")


def build_capabilities_factory(
    app_settings: Settings,
    app_config: dict[str, Any],
) -> CapabilitiesFactory:
    """Return a cached ``ProviderConfig -> IDocumentCapabilities`` factory."""
    cache: dict[ProviderConfig, IDocumentCapabilities] = {}

    def capabilities_for(config: ProviderConfig) -> IDocumentCapabilities:
        if config not in cache:
            llm = build_llm_provider(config, app_settings)
            cache[config] = LLMDocumentCapabilities(
                llm,
                limits=provider_limits(app_config, config.provider.value),
            )
            _logger.info(
                "capabilities_built",
                provider=llm.get_provider_name(),
                model=config.model_name or "default",
            )
        return cache[config]

    return capabilities_for


def layout_options(app_config: dict[str, Any], app_settings: Settings) -> dict[str, Any]:
    """Explorer settings from the ``layout`` section of the YAML config."""
    layout = app_config.get("layout", {})
    centroids = {
        key: (float(point[0]), float(point[1]))
        for key, point in (layout.get("centroids") or DEFAULT_CENTROIDS).items()
    }
    return {
        "centroids": centroids,
        "cluster_strength": float(layout.get("cluster_strength", CLUSTER_STRENGTH)),
        "top_n": app_settings.graph_top_n,
    }


def build_pipeline(
    custom_settings: Settings | None = None,
    capabilities_for: CapabilitiesFactory | None = None,
    app_config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Construct the pipeline and its collaborators.

    Parameters
    ----------
    custom_settings:
        Application settings.  Uses module-level ``settings`` if not provided.
    capabilities_for:
        Capability factory override (tests inject fakes here).
    app_config:
        Resolved YAML config; loaded when omitted.

    Returns
    -------
    dict
        Components keyed by role name, ready to be put on ``app.state``.
    """
    s = custom_settings or settings
    resolved_config = app_config if app_config is not None else load_config(settings=s)
    tracker = ProgressTracker()
    pipeline = DocumentPipeline(
        capabilities_for or build_capabilities_factory(s, resolved_config),
        s,
        progress_tracker=tracker,
    )
    return {
        "settings": s,
        "config": resolved_config,
        "pipeline": pipeline,
        "progress_tracker": tracker,
        "export_service": ExportService(),
        "layout_options": layout_options(resolved_config, s),
        "explorer": None,
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    app_settings: Settings = application.state.settings
    _logger.info(
        "app_startup",
        version=APP_VERSION,
        environment=app_settings.app_env,
        default_provider=app_settings.default_provider.value,
        providers=app_settings.get_available_llm_providers(),
    )
    yield
    application.state.pipeline.reset()
    _logger.info("app_shutdown")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(
    custom_settings: Settings | None = None,
    capabilities_for: CapabilitiesFactory | None = None,
    app_config: dict[str, Any] | None = None,
) -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="context-pipeline API",
        version=APP_VERSION,
        description=(
            "Ingest text, images, PDFs or EPUBs, enrich every chunk with "
            "context, keywords, sentiment and entities, and explore the "
            "resulting knowledge graph."
        ),
        lifespan=_lifespan,
    )

    for key, value in build_pipeline(custom_settings, capabilities_for, app_config).items():
        setattr(application.state, key, value)

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    application.include_router(api_router)

    @application.websocket("/ws/progress/{run_id}")
    async def ws_progress(websocket: WebSocket, run_id: str) -> None:
        await websocket_progress(websocket, run_id)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
