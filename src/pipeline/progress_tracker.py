"""Pipeline progress tracking with callback-based listener notification.

Keeps the latest :class:`ProgressEvent` for each run and broadcasts every
update to the listeners registered for that run (WebSocket handlers) and to
listeners registered for :data:`ALL_RUNS` (the CLI progress printer).

    Orchestrator --update()--> ProgressTracker --callback(event)--> WebSocket
                                                                --> CLI printer

Listener errors are caught and logged so a dropped socket never stalls the
pipeline.  Callbacks may be sync or async.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import structlog

from src.models.pipeline import PipelineStage, ProgressEvent
from src.utils.logging import get_logger

# Register under this key to receive events for every run.
ALL_RUNS = "*"

ProgressListener = Callable[[ProgressEvent], object]


class ProgressTracker:
    """Tracks and broadcasts pipeline progress via callbacks."""

    def __init__(self) -> None:
        self._latest: dict[str, ProgressEvent] = {}
        self._listeners: dict[str, list[ProgressListener]] = {}
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def update(
        self,
        run_id: str,
        stage: PipelineStage,
        current: int = 0,
        total: int = 0,
        message: str = "",
    ) -> ProgressEvent:
        """Record a progress update and notify listeners.

        Parameters
        ----------
        run_id:
            The pipeline run being reported.
        stage:
            The run's current stage.
        current, total:
            Chunks attempted so far / chunks in the run (ENRICHING only).
        message:
            Human-readable status line.
        """
        event = ProgressEvent(
            run_id=run_id,
            stage=stage,
            current=current,
            total=total,
            message=message,
        )
        self._latest[run_id] = event

        self._logger.debug(
            "progress_update",
            run_id=run_id,
            stage=stage.value,
            current=current,
            total=total,
            message=message,
        )

        await self._notify_listeners(event)
        return event

    def register_listener(self, run_id: str, callback: ProgressListener) -> None:
        """Register *callback* for events of *run_id* (or :data:`ALL_RUNS`)."""
        listeners = self._listeners.setdefault(run_id, [])
        if callback not in listeners:
            listeners.append(callback)
            self._logger.debug(
                "listener_registered",
                run_id=run_id,
                total_listeners=len(listeners),
            )

    def unregister_listener(self, run_id: str, callback: ProgressListener) -> None:
        listeners = self._listeners.get(run_id, [])
        if callback in listeners:
            listeners.remove(callback)
            self._logger.debug(
                "listener_unregistered",
                run_id=run_id,
                remaining_listeners=len(listeners),
            )
        if not listeners:
            self._listeners.pop(run_id, None)

    def get_latest(self, run_id: str) -> ProgressEvent | None:
        """Return the last event recorded for *run_id*, if any."""
        return self._latest.get(run_id)

    def forget(self, run_id: str) -> None:
        """Drop the stored snapshot and listeners of a finished run."""
        self._latest.pop(run_id, None)
        self._listeners.pop(run_id, None)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _notify_listeners(self, event: ProgressEvent) -> None:
        listeners = [
            *self._listeners.get(event.run_id, []),
            *self._listeners.get(ALL_RUNS, []),
        ]
        for callback in listeners:
            try:
                result = callback(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "listener_callback_error",
                    run_id=event.run_id,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )
