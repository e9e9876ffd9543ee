"""Pipeline orchestration components.

Only the leaf modules are re-exported here; import the orchestrator from
``src.pipeline.orchestrator`` (it depends on ``src.services``, which in turn
uses the cancellation token).
"""

from src.pipeline.cancellation import CancellationToken
from src.pipeline.progress_tracker import ALL_RUNS, ProgressTracker

__all__ = [
    "ALL_RUNS",
    "CancellationToken",
    "ProgressTracker",
]
