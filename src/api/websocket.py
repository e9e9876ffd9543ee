"""WebSocket endpoint for real-time pipeline progress.

A client opens ``/ws/progress/{run_id}`` before starting a run with the same
``run_id``; every :class:`ProgressEvent` for that run is then pushed as JSON::

    {"run_id": "...", "stage": "ENRICHING", "current": 3, "total": 10,
     "percent": 30.0, "message": "Enriched chunk 3 of 10"}

The ``receive_text`` loop only keeps the connection open; pushes happen from
the listener registered with the :class:`ProgressTracker`.
"""

from __future__ import annotations

import structlog
from fastapi import WebSocket, WebSocketDisconnect

from src.models.pipeline import PipelineProgress, ProgressEvent
from src.pipeline.progress_tracker import ProgressTracker
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


def event_payload(event: ProgressEvent) -> dict:
    progress = PipelineProgress(current=event.current, total=event.total)
    return {
        "run_id": event.run_id,
        "stage": event.stage.value,
        "current": event.current,
        "total": event.total,
        "percent": progress.percent,
        "message": event.message,
    }


async def websocket_progress(websocket: WebSocket, run_id: str) -> None:
    """Stream progress events for *run_id* until the client disconnects."""
    progress_tracker: ProgressTracker = websocket.app.state.progress_tracker

    await websocket.accept()
    _logger.info("websocket_connected", run_id=run_id)

    async def _on_progress(event: ProgressEvent) -> None:
        # Errors (e.g. a socket closed mid-send) are logged by the tracker.
        await websocket.send_json(event_payload(event))

    progress_tracker.register_listener(run_id, _on_progress)

    try:
        latest = progress_tracker.get_latest(run_id)
        if latest is not None:
            await websocket.send_json(event_payload(latest))

        while True:
            await websocket.receive_text()

    except WebSocketDisconnect:
        _logger.info("websocket_disconnected", run_id=run_id)

    finally:
        progress_tracker.unregister_listener(run_id, _on_progress)
        _logger.debug("websocket_listener_cleaned_up", run_id=run_id)
