"""Pipeline state-machine models.

Defines the stage enum, the allowed in-run transitions, progress snapshots
and the error record shown to the user as a dismissible banner.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# PipelineStage -- the state machine that drives a run.
# ---------------------------------------------------------------------------
class PipelineStage(str, Enum):  # noqa: UP042
    """Stages of a pipeline run.

        IDLE -> PARSING -> CHUNKING -> ENRICHING -> COMPLETE
                   \\__________\\___________\\______-> ERROR
    """

    IDLE = "IDLE"
    PARSING = "PARSING"          # extraction + normalization
    CHUNKING = "CHUNKING"        # paragraph-aware segmentation
    ENRICHING = "ENRICHING"      # document summary + per-chunk enrichment
    COMPLETE = "COMPLETE"
    ERROR = "ERROR"

    @property
    def is_active(self) -> bool:
        return self in (PipelineStage.PARSING, PipelineStage.CHUNKING, PipelineStage.ENRICHING)


# Transitions allowed *within* a run.  Starting a new run (-> PARSING) and
# reset (-> IDLE) are allowed from any stage and are not listed here.
ALLOWED_TRANSITIONS: dict[PipelineStage, frozenset[PipelineStage]] = {
    PipelineStage.IDLE: frozenset(),
    PipelineStage.PARSING: frozenset({PipelineStage.CHUNKING, PipelineStage.ERROR}),
    PipelineStage.CHUNKING: frozenset({PipelineStage.ENRICHING, PipelineStage.ERROR}),
    PipelineStage.ENRICHING: frozenset({PipelineStage.COMPLETE, PipelineStage.ERROR}),
    PipelineStage.COMPLETE: frozenset(),
    PipelineStage.ERROR: frozenset(),
}


class PipelineProgress(BaseModel):
    """``current`` of ``total`` chunks attempted during ENRICHING."""

    model_config = ConfigDict(frozen=True)

    current: int = 0
    total: int = 0

    @property
    def percent(self) -> float:
        if self.total <= 0:
            return 0.0
        return round(100.0 * self.current / self.total, 1)


class ProgressEvent(BaseModel):
    """One broadcast from the progress tracker to its listeners."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    stage: PipelineStage
    current: int = 0
    total: int = 0
    message: str = ""


class PipelineErrorRecord(BaseModel):
    """A user-facing error produced by a run or a post-run action.

    ``kind`` names the taxonomy entry (e.g. ``"empty_document"``) so
    clients can choose how to render it.
    """

    model_config = ConfigDict(frozen=True)

    stage: PipelineStage
    kind: str
    message: str
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )
