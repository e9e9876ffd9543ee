"""Central orchestrator for the document enrichment pipeline.

Sequences extraction -> normalization -> chunking -> per-chunk enrichment
as a small state machine::

    IDLE -> PARSING -> CHUNKING -> ENRICHING -> COMPLETE
               \\__________\\___________\\______-> ERROR

Each step replaces the frozen :class:`DocumentState` via ``model_copy`` and
broadcasts progress through the injected :class:`ProgressTracker`.

Cancellation is cooperative.  Every run gets a :class:`CancellationToken`
that is polled after each suspension point (extraction, normalization, the
chunking delay, the document summary, every chunk).  Once it is observed the
run stops where it is: no COMPLETE or ERROR transition, the in-flight result
is dropped, and :meth:`DocumentPipeline.run` returns the state as it stands.

Failures are classified into user-facing :class:`PipelineErrorRecord`
entries (the dismissible banner) and re-raised.  Per-chunk enrichment
failures are isolated by the :class:`EnrichmentCoordinator` and never reach
this level.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Callable
from pathlib import Path

import structlog

from src.config.settings import Settings
from src.interfaces.document_capabilities import IDocumentCapabilities
from src.models.document import (
    ChunkSequence,
    DocumentState,
    InputKind,
    PipelineStats,
    SummaryStyle,
)
from src.models.pipeline import (
    ALLOWED_TRANSITIONS,
    PipelineErrorRecord,
    PipelineProgress,
    PipelineStage,
)
from src.models.provider import ProviderConfig, ProviderName
from src.pipeline.cancellation import CancellationToken
from src.pipeline.progress_tracker import ProgressTracker
from src.services.enrichment_coordinator import EnrichmentCoordinator
from src.services.extraction_service import TextExtractionService
from src.services.graph_service import KnowledgeGraphService
from src.services.segmenter import Segmenter
from src.utils.errors import (
    ContextWindowExceededError,
    EmptyDocumentError,
    ExtractionError,
    GraphGenerationError,
    InputTooLargeError,
    PipelineError,
    ProviderUnavailableError,
)
from src.utils.image_utils import to_data_url
from src.utils.logging import get_logger

CONTEXT_WINDOW_MESSAGE = (
    "The document is too large for the selected model's context window. "
    "Try a shorter document or switch to a model with a larger context window."
)
GENERIC_FAILURE_MESSAGE = "An error occurred during pipeline processing."

CapabilitiesFactory = Callable[[ProviderConfig], IDocumentCapabilities]
RawInput = str | bytes | Path


class DocumentPipeline:
    """Owns one live :class:`DocumentState` and the stage machine around it.

    All collaborators are injected; only ``capabilities_for`` and
    ``settings`` are required.  ``capabilities_for`` turns a routing
    :class:`ProviderConfig` into an :class:`IDocumentCapabilities`, so the
    pipeline never branches on the provider itself.
    """

    def __init__(
        self,
        capabilities_for: CapabilitiesFactory,
        settings: Settings,
        extraction_service: TextExtractionService | None = None,
        segmenter: Segmenter | None = None,
        coordinator: EnrichmentCoordinator | None = None,
        progress_tracker: ProgressTracker | None = None,
        graph_service: KnowledgeGraphService | None = None,
    ) -> None:
        self._capabilities_for = capabilities_for
        self._settings = settings
        self._extraction = extraction_service or TextExtractionService()
        self._segmenter = segmenter or Segmenter(settings.chunk_target_size)
        self._coordinator = coordinator or EnrichmentCoordinator()
        self._tracker = progress_tracker or ProgressTracker()
        self._graph_service = graph_service or KnowledgeGraphService()
        self._logger: structlog.BoundLogger = get_logger(__name__)

        self._stage = PipelineStage.IDLE
        self._state = DocumentState()
        self._progress = PipelineProgress()
        self._last_error: PipelineErrorRecord | None = None
        self._token: CancellationToken | None = None
        self._run_id = ""
        self._provider: ProviderName = settings.default_provider
        self._busy = False
        # Bumped whenever the document is replaced (new run or reset).
        self._epoch = 0

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def stage(self) -> PipelineStage:
        return self._stage

    @property
    def state(self) -> DocumentState:
        return self._state

    @property
    def progress(self) -> PipelineProgress:
        return self._progress

    @property
    def last_error(self) -> PipelineErrorRecord | None:
        return self._last_error

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def provider(self) -> ProviderName:
        """Provider used by the most recent run."""
        return self._provider

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def tracker(self) -> ProgressTracker:
        return self._tracker

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(
        self,
        raw_input: RawInput,
        input_kind: InputKind | str,
        config: ProviderConfig | None = None,
        token: CancellationToken | None = None,
        *,
        source_name: str | None = None,
        target_size: int | None = None,
        run_id: str | None = None,
    ) -> DocumentState:
        """Run the full pipeline on one input.

        Parameters
        ----------
        raw_input:
            Text for ``text``; a ``data:`` URL, base64 string or bytes for
            ``image``; a path or bytes for ``pdf`` / ``epub``.
        input_kind:
            How to interpret *raw_input*.
        config:
            Provider routing; defaults to the configured default provider.
        token:
            Cancellation token for this run; one is created when omitted.
        source_name:
            Short descriptor stored as ``raw_input`` (e.g. a file name).
        target_size:
            Chunk size override for this run.
        run_id:
            Identifier for progress events; generated when omitted.

        Returns
        -------
        DocumentState
            The final state (COMPLETE), or the state at the point the run
            was cancelled.

        Raises
        ------
        InputTooLargeError
            Plain text over ``max_text_length``.  No stage transition.
        PipelineError
            Another run or action is already in progress.
        ContextPipelineError
            Any failure that moved the run to ERROR.
        """
        kind = InputKind(input_kind)
        raw_input = self.precheck(raw_input, kind)

        config = config or self._settings.default_provider_config()
        capabilities = self._capabilities_for(config)

        self._busy = True
        self._run_id = run_id or uuid.uuid4().hex
        self._token = token or CancellationToken()
        self._provider = config.provider
        try:
            return await self._run(raw_input, kind, capabilities, source_name, target_size)
        finally:
            self._busy = False

    async def _run(
        self,
        raw_input: RawInput,
        kind: InputKind,
        capabilities: IDocumentCapabilities,
        source_name: str | None,
        target_size: int | None,
    ) -> DocumentState:
        token = self._token
        run_id = self._run_id
        started = time.monotonic()

        self._epoch += 1
        self._state = DocumentState(
            raw_input=source_name or _describe(raw_input, kind),
            input_kind=kind,
        )
        self._progress = PipelineProgress()
        self._last_error = None
        self._stage = PipelineStage.PARSING
        self._logger.info(
            "pipeline_run_start",
            run_id=run_id,
            kind=kind.value,
            provider=capabilities.get_provider_name(),
        )
        await self._tracker.update(run_id, PipelineStage.PARSING, message="Parsing document...")

        try:
            # --- PARSING: extraction + normalization ---
            if kind.is_container:
                source = raw_input if isinstance(raw_input, bytes) else Path(raw_input)
                raw_text = await self._extraction.extract(source, kind)
                if self._halted("extraction"):
                    return self._state
            elif kind == InputKind.IMAGE and isinstance(raw_input, bytes):
                raw_text = to_data_url(raw_input)
            else:
                raw_text = str(raw_input)

            parsed = await capabilities.normalize(raw_text, kind)
            if self._halted("normalization"):
                return self._state
            if not parsed or not parsed.strip():
                raise EmptyDocumentError(provider_name=capabilities.get_provider_name())
            self._state = self._state.model_copy(update={"parsed_text": parsed})

            # --- CHUNKING ---
            await self._transition(PipelineStage.CHUNKING, "Chunking text...")
            await asyncio.sleep(self._settings.chunking_delay_seconds)
            if self._halted("chunking"):
                return self._state

            chunks = self._segmenter.build_chunks(parsed, target_size)
            self._state = self._state.model_copy(
                update={
                    "chunks": chunks,
                    "stats": PipelineStats(original_length=len(parsed), chunk_count=chunks.size),
                }
            )
            self._logger.info("pipeline_chunked", run_id=run_id, chunks=chunks.size)

            # --- ENRICHING ---
            self._progress = PipelineProgress(current=0, total=chunks.size)
            await self._transition(PipelineStage.ENRICHING, "Summarizing document...")
            doc_summary = await capabilities.summarize_document(parsed)
            if self._halted("document_summary"):
                return self._state

            await self._coordinator.enrich_all(
                chunks,
                doc_summary,
                capabilities.enrich_chunk,
                token=token,
                on_chunk=self._on_chunk_enriched,
            )
            if self._halted("enrichment"):
                return self._state

            # --- COMPLETE ---
            elapsed_ms = int((time.monotonic() - started) * 1000)
            self._state = self._state.model_copy(
                update={"stats": self._state.stats.model_copy(update={"processing_time_ms": elapsed_ms})}
            )
            await self._transition(PipelineStage.COMPLETE, "Pipeline complete")
            self._logger.info(
                "pipeline_run_complete",
                run_id=run_id,
                chunks=self._state.chunks.size,
                failed=sum(1 for c in self._state.chunks.chunks if c.enrichment_failed),
                processing_time_ms=elapsed_ms,
            )
            return self._state

        except Exception as exc:
            if token.is_cancelled:
                self._logger.info("pipeline_error_after_cancel", run_id=run_id, error=str(exc))
                return self._state
            await self._fail(exc)
            raise

    # ------------------------------------------------------------------
    # Post-run actions
    # ------------------------------------------------------------------

    async def summarize_chunks(
        self,
        style: SummaryStyle | str = SummaryStyle.BULLET,
        config: ProviderConfig | None = None,
        token: CancellationToken | None = None,
    ) -> DocumentState:
        """Summarize every chunk that does not have a summary yet."""
        style = SummaryStyle(style)
        if self._busy:
            raise PipelineError(message="A pipeline run is already in progress")
        capabilities = self._capabilities_for(config or self._settings.default_provider_config())

        async def summarize_one(text: str) -> str:
            return await capabilities.summarize_chunk(text, style)

        self._busy = True
        self._token = token or CancellationToken()
        try:
            await self._coordinator.summarize_all(
                self._state.chunks,
                summarize_one,
                token=self._token,
                on_chunk=self._on_chunk_summarized,
            )
        finally:
            self._busy = False
        return self._state

    async def summarize_chunk(
        self,
        chunk_id: str,
        style: SummaryStyle | str = SummaryStyle.BULLET,
        config: ProviderConfig | None = None,
    ) -> DocumentState:
        """Summarize one chunk.  Unknown ids are ignored; failures are logged only."""
        chunk = self._state.chunks.get(chunk_id)
        if chunk is None:
            self._logger.debug("summarize_unknown_chunk", chunk_id=chunk_id)
            return self._state

        capabilities = self._capabilities_for(config or self._settings.default_provider_config())
        try:
            summary = await capabilities.summarize_chunk(chunk.original_text, SummaryStyle(style))
        except Exception as exc:
            self._logger.warning("chunk_summary_failed", chunk_id=chunk_id, error=str(exc))
            return self._state

        current = self._state.chunks.get(chunk_id)
        if current is not None:
            self._replace_chunks(self._state.chunks.with_chunk(current.model_copy(update={"summary": summary})))
        return self._state

    async def generate_graph(self, config: ProviderConfig | None = None) -> DocumentState:
        """Build the knowledge graph from the current chunks.

        Raises
        ------
        GraphGenerationError
            The failure is recorded as :attr:`last_error`; chunks and stage
            are left untouched.
        PipelineError
            The document was replaced (new run or reset) while the graph was
            being extracted; the result is discarded.
        """
        capabilities = self._capabilities_for(config or self._settings.default_provider_config())
        epoch = self._epoch
        try:
            graph = await self._graph_service.generate(self._state, capabilities)
        except GraphGenerationError as exc:
            if epoch == self._epoch:
                self._last_error = PipelineErrorRecord(
                    stage=self._stage,
                    kind="graph_generation",
                    message=exc.message,
                )
            raise

        if epoch != self._epoch:
            self._logger.info("graph_result_discarded", run_id=self._run_id, reason="document_replaced")
            raise PipelineError(message="The document changed while the knowledge graph was being generated")

        # Applied to the live state so chunk updates made meanwhile survive.
        self._state = self._state.model_copy(update={"knowledge_graph": graph})
        return self._state

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def cancel(self) -> bool:
        """Signal the active run or action to stop.  Returns ``False`` if idle."""
        if self._token is None or not self._busy:
            return False
        self._token.cancel("user")
        self._logger.info("pipeline_cancel_requested", run_id=self._run_id, stage=self._stage.value)
        return True

    def reset(self) -> None:
        """Cancel anything in flight and return to IDLE with an empty state."""
        if self._token is not None:
            self._token.cancel("reset")
        self._epoch += 1
        self._state = DocumentState()
        self._progress = PipelineProgress()
        self._last_error = None
        self._stage = PipelineStage.IDLE
        # A reconnecting client must not replay the discarded run.
        self._tracker.forget(self._run_id)
        self._logger.info("pipeline_reset", run_id=self._run_id)

    def dismiss_error(self) -> None:
        self._last_error = None

    def precheck(self, raw_input: RawInput, input_kind: InputKind | str) -> RawInput:
        """Reject a run request before anything changes.

        Returns the input as :meth:`run` processes it (text decoded to ``str``).

        Raises
        ------
        PipelineError
            A run or action is already in progress.
        InputTooLargeError
            Plain text over ``max_text_length``.
        """
        if self._busy:
            raise PipelineError(message="A pipeline run is already in progress")
        if InputKind(input_kind) == InputKind.TEXT:
            text_input = raw_input.decode("utf-8") if isinstance(raw_input, bytes) else str(raw_input)
            self.check_input_size(text_input)
            return text_input
        return raw_input

    def check_input_size(self, text: str) -> None:
        """Raise :class:`InputTooLargeError` for text over ``max_text_length``."""
        limit = self._settings.max_text_length
        if len(text) > limit:
            self._logger.warning("input_too_large", length=len(text), limit=limit)
            error = InputTooLargeError(
                message=f"Input is {len(text):,} characters; the limit is {limit:,}",
                length=len(text),
                limit=limit,
            )
            self._last_error = PipelineErrorRecord(
                stage=self._stage,
                kind="input_too_large",
                message=error.message,
            )
            raise error

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _transition(self, target: PipelineStage, message: str = "") -> None:
        if target not in ALLOWED_TRANSITIONS[self._stage]:
            raise PipelineError(
                message=f"Invalid stage transition {self._stage.value} -> {target.value}"
            )
        self._stage = target
        await self._tracker.update(
            self._run_id,
            target,
            self._progress.current,
            self._progress.total,
            message,
        )

    def _halted(self, point: str) -> bool:
        if self._token is not None and self._token.is_cancelled:
            self._logger.info(
                "pipeline_run_cancelled",
                run_id=self._run_id,
                stage=self._stage.value,
                at=point,
            )
            return True
        return False

    def _replace_chunks(self, chunks: ChunkSequence) -> None:
        self._state = self._state.model_copy(update={"chunks": chunks})

    async def _on_chunk_enriched(self, chunks: ChunkSequence, current: int, total: int) -> None:
        self._replace_chunks(chunks)
        self._progress = PipelineProgress(current=current, total=total)
        await self._tracker.update(
            self._run_id,
            PipelineStage.ENRICHING,
            current,
            total,
            f"Enriched chunk {current} of {total}",
        )

    async def _on_chunk_summarized(self, chunks: ChunkSequence, current: int, total: int) -> None:
        self._replace_chunks(chunks)
        await self._tracker.update(
            self._run_id,
            self._stage,
            current,
            total,
            f"Summarized chunk {current} of {total}",
        )

    async def _fail(self, exc: Exception) -> None:
        kind, message = classify_failure(exc)
        failed_stage = self._stage
        self._logger.error(
            "pipeline_run_failed",
            run_id=self._run_id,
            stage=failed_stage.value,
            kind=kind,
            error=str(exc),
        )
        self._last_error = PipelineErrorRecord(stage=failed_stage, kind=kind, message=message)
        if PipelineStage.ERROR in ALLOWED_TRANSITIONS[self._stage]:
            await self._transition(PipelineStage.ERROR, message)


def classify_failure(exc: BaseException) -> tuple[str, str]:
    """Map an exception to ``(kind, user-facing message)``."""
    if isinstance(exc, ContextWindowExceededError):
        return "context_window_exceeded", CONTEXT_WINDOW_MESSAGE
    if isinstance(exc, ProviderUnavailableError):
        return "provider_unavailable", exc.message
    if isinstance(exc, EmptyDocumentError):
        return "empty_document", exc.message
    if isinstance(exc, ExtractionError):
        return "extraction_failed", exc.message
    return "pipeline_failure", GENERIC_FAILURE_MESSAGE


def _describe(raw_input: RawInput, kind: InputKind) -> str:
    if isinstance(raw_input, Path):
        return raw_input.name
    if isinstance(raw_input, bytes):
        return f"<{kind.value}: {len(raw_input):,} bytes>"
    if kind == InputKind.TEXT:
        preview = raw_input[:80].replace("\n", " ")
        return preview + ("..." if len(raw_input) > 80 else "")
    if kind == InputKind.IMAGE:
        return f"<image: {len(raw_input):,} chars>"
    return Path(raw_input).name
